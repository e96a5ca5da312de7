import pytest

from advisor.models.records import PreviewRow
from advisor.services.table_import import (
    TableReadError,
    UnsupportedFileType,
    build_result,
    detect_delimiter,
    find_column_indices,
    find_header_row,
    load_upload,
    parse_csv,
    parse_row,
    parse_table,
    parse_xlsx,
    split_text,
    validate_positions,
)

from conftest import make_xlsx


# ---------- delimiter ----------
@pytest.mark.parametrize(
    "text, expected",
    [
        ("a\tb\tc\na\tb\tc", "\t"),
        ("a;b;c\na;b;c", ";"),
        ("a,b,c", ","),
        ("", ","),
        ("a,b;c", ","),  # semicolon must beat comma strictly
        ("a\tb,c;d", ","),  # tab must beat both strictly
    ],
)
def test_detect_delimiter(text, expected):
    assert detect_delimiter(text) == expected


def test_detect_delimiter_only_looks_at_first_five_lines():
    text = "a;b\n" * 5 + "x,y,z,w,v,u,t\n" * 3
    assert detect_delimiter(text) == ";"


def test_split_text_skips_empty_lines_and_honours_quotes():
    rows = split_text('Symbol,Qty\n\n"BRK.B","1,200"\n', ",")
    assert rows == [["Symbol", "Qty"], ["BRK.B", "1,200"]]


# ---------- header + columns ----------
def test_find_header_row_first_row():
    idx, headers = find_header_row([["Date", "Symbol", "Qty"], ["2024-01-01", "AAPL", "10"]])
    assert idx == 0
    assert headers == ["date", "symbol", "qty"]


def test_find_header_row_after_preamble():
    rows = [["Brokerage export"], ["As of 2024-06-30"], [" Instrument ", "Units", "Avg Cost"], ["AAPL", "1", "2"]]
    idx, headers = find_header_row(rows)
    assert idx == 2
    assert headers == ["instrument", "units", "avg cost"]


def test_find_header_row_falls_back_to_first_row():
    idx, headers = find_header_row([["foo", "bar"], ["AAPL", "10"]])
    assert idx == 0
    assert headers == ["foo", "bar"]


def test_find_header_row_only_scans_five_rows():
    rows = [["x"]] * 5 + [["Ticker", "Quantity"]]
    idx, _ = find_header_row(rows)
    assert idx == 0


def test_find_column_indices_substring_and_first_match():
    headers = ["account", "ticker symbol", "total shares", "entry price", "cost basis"]
    assert find_column_indices(headers) == (1, 2, 3)


def test_find_column_indices_missing_cost():
    assert find_column_indices(["symbol", "qty"]) == (0, 1, -1)


# ---------- rows ----------
def test_parse_row_valid_with_cost():
    row = parse_row(["aapl ", "10", "150.50"], 0, 1, 2)
    assert row.ticker == "AAPL"
    assert row.quantity == 10
    assert row.avg_cost == 150.50
    assert row.error is None


def test_parse_row_missing_quantity():
    row = parse_row(["MSFT", "", ""], 0, 1, 2)
    assert (row.ticker, row.quantity, row.error) == ("MSFT", 0, "Missing quantity")


def test_parse_row_short_row_is_missing_quantity():
    row = parse_row(["MSFT"], 0, 1, -1)
    assert row.error == "Missing quantity"


def test_parse_row_blank_ticker_dropped():
    assert parse_row(["", "10", ""], 0, 1, 2) is None
    assert parse_row(["   ", "10", ""], 0, 1, 2) is None


@pytest.mark.parametrize("qty", ["-5", "0", "abc", "Infinity", "1e999"])
def test_parse_row_invalid_quantity(qty):
    row = parse_row(["GOOG", qty, ""], 0, 1, 2)
    assert row.error == "Invalid quantity"
    assert row.quantity == 0


def test_parse_row_thousands_separators():
    row = parse_row(["BRK.B", "1,200", "2,345.75"], 0, 1, 2)
    assert row.quantity == 1200
    assert row.avg_cost == 2345.75


def test_parse_row_leading_number_is_read():
    row = parse_row(["VTI", "12 sh", ""], 0, 1, 2)
    assert row.quantity == 12
    assert row.avg_cost is None


@pytest.mark.parametrize("cost", ["-1", "n/a"])
def test_parse_row_invalid_cost_keeps_quantity(cost):
    row = parse_row(["AAPL", "10", cost], 0, 1, 2)
    assert row.error == "Invalid average cost format"
    assert row.quantity == 10


def test_parse_row_zero_cost_allowed():
    assert parse_row(["AAPL", "10", "0"], 0, 1, 2).avg_cost == 0


def test_parse_row_cost_ignored_without_cost_column():
    row = parse_row(["AAPL", "10", "junk"], 0, 1, -1)
    assert row.error is None
    assert row.avg_cost is None


# ---------- orchestration ----------
def test_parse_table_row_numbers_and_totals():
    text = (
        "Account summary\n"
        "Symbol,Quantity,Avg Cost\n"
        "AAPL,10,150.50\n"
        "MSFT,,\n"
        ",5,\n"
        "GOOG,-5,\n"
    )
    result = parse_table(text)

    assert [r.ticker for r in result.valid_rows] == ["AAPL"]
    assert [(r.row_number, r.error) for r in result.invalid_rows] == [
        (4, "Missing quantity"),
        (6, "Invalid quantity"),
    ]
    assert result.total_imported == 1
    assert result.total_skipped == 2


def test_blank_ticker_rows_vanish_from_counts():
    rows = [["Ticker", "Qty"], ["AAPL", "1"], ["", "2"], ["", ""], ["MSFT", "x"]]
    result = build_result(rows)
    fed = len(rows) - 1
    blank = 2
    assert result.total_imported + result.total_skipped == fed - blank


def test_parse_table_semicolon_and_tab():
    semi = parse_table("Ticker;Shares;Purchase Price\nSAP;3;120,5\n")
    # comma is a thousands separator here, not a decimal mark
    assert semi.valid_rows[0].avg_cost == 1205

    tab = parse_table("Ticker\tShares\nNVDA\t4\n")
    assert tab.valid_rows[0].ticker == "NVDA"
    assert tab.valid_rows[0].quantity == 4


def test_parse_table_undetectable_columns():
    result = parse_table("Symbol,Price\nAAPL,10\n")
    assert result.valid_rows == []
    assert [(r.row_number, r.error) for r in result.invalid_rows] == [
        (0, "Could not detect ticker and quantity columns")
    ]
    assert result.total_imported == 0
    assert result.total_skipped == 1


def test_parse_table_empty_text_is_empty_result():
    for text in ("", "\n\n"):
        result = parse_table(text)
        assert result.valid_rows == [] and result.invalid_rows == []
        assert (result.total_imported, result.total_skipped) == (0, 0)


def test_parse_csv_is_parse_table():
    text = "Ticker,Qty\nAAPL,1\n"
    assert parse_csv(text) == parse_table(text)


# ---------- spreadsheet ----------
def test_parse_xlsx_first_sheet_only():
    content = make_xlsx(
        [["Report"], ["Symbol", "Quantity", "Average Cost"], ["AAPL", 10, 150.5], ["MSFT", None, None]],
        [["Symbol", "Quantity"], ["IGNORED", 1]],
    )
    result = parse_xlsx(content)

    assert [(r.ticker, r.quantity, r.avg_cost) for r in result.valid_rows] == [("AAPL", 10, 150.5)]
    assert [(r.row_number, r.error) for r in result.invalid_rows] == [(4, "Missing quantity")]


def test_parse_xlsx_empty_sheet():
    result = parse_xlsx(make_xlsx([]))
    assert [(r.row_number, r.error) for r in result.invalid_rows] == [(0, "No data found in file")]
    assert (result.total_imported, result.total_skipped) == (0, 1)


def test_parse_xlsx_unreadable_bytes():
    with pytest.raises(TableReadError):
        parse_xlsx(b"definitely not a workbook")


def test_parse_table_unclosed_quote_in_large_paste():
    text = "Ticker,Qty\n\"AAPL,10\n" + "MSFT,1\n" * 20000
    result = parse_table(text)

    assert result.invalid_rows == []
    assert result.total_imported == 20001
    assert result.valid_rows[-1].ticker == "MSFT"


def test_parse_table_ignores_nul_bytes():
    result = parse_table("Ticker,Qty\nAAPL,1\x00\n")
    assert [(r.ticker, r.quantity) for r in result.valid_rows] == [("AAPL", 1)]


@pytest.mark.parametrize("filename", ["legacy.xls", "statement.pdf", "holdings.txt", ""])
def test_load_upload_rejects_unsupported_types(filename):
    with pytest.raises(UnsupportedFileType):
        load_upload(b"Ticker,Qty\nAAPL,1\n", filename)


def test_load_upload_routes_by_extension():
    xlsx = make_xlsx([["Ticker", "Qty"], ["AAPL", 2]])
    assert load_upload(xlsx, "Holdings.XLSX").valid_rows[0].ticker == "AAPL"

    csv_bytes = "\ufeffTicker,Qty\nMSFT,3\n".encode("utf-8")
    result = load_upload(csv_bytes, "holdings.csv")
    assert result.valid_rows[0].ticker == "MSFT"
    assert result.valid_rows[0].quantity == 3


# ---------- positions ----------
def test_validate_positions_filters_and_strips():
    rows = [
        PreviewRow(ticker="AAPL", quantity=10, avg_cost=150.5, raw_row=["AAPL", "10", "150.5"]),
        PreviewRow(ticker="MSFT", quantity=0, error="Missing quantity"),
        PreviewRow(ticker="GOOG", quantity=2),
        PreviewRow(ticker=" ", quantity=1),
    ]
    positions = validate_positions(rows)

    assert [p.ticker for p in positions] == ["AAPL", "GOOG"]
    assert set(positions[0].model_dump()) == {"ticker", "quantity", "avg_cost"}
    assert positions[1].avg_cost is None
