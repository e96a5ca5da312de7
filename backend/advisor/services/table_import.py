from __future__ import annotations

import csv
import io
import math
import re
from typing import List, Optional, Tuple

import pandas as pd
from loguru import logger

from advisor.models.records import (
    HeaderMap,
    InvalidRow,
    Position,
    PreviewRow,
    RawTable,
    ValidationResult,
)

# ---------- Header synonyms (matched by containment, first hit wins) ----------
COMMON_HEADERS = {
    "ticker": ["ticker", "symbol", "symbol/cusip", "instrument"],
    "quantity": ["quantity", "qty", "shares", "units"],
    "cost": [
        "entry price",
        "avg cost",
        "average cost",
        "purchase price",
        "entry",
        "cost",
    ],
}

HEADER_SCAN_ROWS = 5
DELIMITER_SCAN_LINES = 5

ERR_NO_COLUMNS = "Could not detect ticker and quantity columns"
ERR_NO_DATA = "No data found in file"
ERR_MISSING_QTY = "Missing quantity"
ERR_INVALID_QTY = "Invalid quantity"
ERR_INVALID_COST = "Invalid average cost format"

_LEADING_DECIMAL = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

class TableReadError(ValueError):
    """Raised when uploaded bytes cannot be read as a table at all."""

class UnsupportedFileType(TableReadError):
    pass

def _norm(s: str) -> str:
    return str(s).strip().lower()

def _matches(cell: str, field: str) -> bool:
    return any(syn in cell for syn in COMMON_HEADERS[field])

def _parse_decimal(s: str) -> Optional[float]:
    """
    Lenient decimal read: drop thousands commas, take the longest leading
    decimal literal ("10 sh" -> 10.0). None when nothing parses or the
    value is not finite.
    """
    m = _LEADING_DECIMAL.match(s.replace(",", "").strip())
    if not m:
        return None
    val = float(m.group(0))
    return val if math.isfinite(val) else None

def _cell(row: List[str], idx: int) -> Optional[str]:
    if idx < 0 or idx >= len(row):
        return None
    val = row[idx]
    return None if val is None else str(val)

# ---------- Front-ends: raw input -> RawTable ----------
def detect_delimiter(text: str) -> str:
    lines = text.split("\n")[:DELIMITER_SCAN_LINES]
    tabs = sum(line.count("\t") for line in lines)
    commas = sum(line.count(",") for line in lines)
    semis = sum(line.count(";") for line in lines)

    if tabs > commas and tabs > semis:
        return "\t"
    if semis > commas:
        return ";"
    return ","

def split_text(text: str, delimiter: str) -> RawTable:
    # csv rejects NUL on older interpreters
    text = text.replace("\x00", "")
    try:
        reader = csv.reader(io.StringIO(text), delimiter=delimiter)
        return [row for row in reader if row]
    except csv.Error as e:
        # e.g. an unclosed quote swallowing the rest of the paste
        logger.warning(f"Quoted split failed ({e}); splitting without quote handling")
        return [line.split(delimiter) for line in text.splitlines() if line]

def read_spreadsheet(content: bytes) -> Optional[RawTable]:
    """First sheet as a grid of cell text; None if the workbook has no sheets."""
    try:
        sheets = pd.read_excel(
            io.BytesIO(content),
            sheet_name=None,
            header=None,
            dtype=str,
            keep_default_na=False,
        )
    except Exception as e:
        logger.exception(f"Failed to read spreadsheet ({len(content)} bytes): {e}")
        raise TableReadError(f"Unreadable spreadsheet: {e}") from e

    if not sheets:
        return None
    first_name = next(iter(sheets))
    df = sheets[first_name].fillna("").astype(str)
    return df.values.tolist()

# ---------- Header + column resolution ----------
def find_header_row(rows: RawTable) -> Tuple[int, List[str]]:
    for i in range(min(HEADER_SCAN_ROWS, len(rows))):
        normalized = [_norm(c) for c in rows[i]]
        has_ticker = any(_matches(h, "ticker") for h in normalized)
        has_qty = any(_matches(h, "quantity") for h in normalized)
        if has_ticker and has_qty:
            return i, normalized

    # nothing looked like a header; treat the first row as one anyway
    return 0, [_norm(c) for c in rows[0]] if rows else []

def find_column_indices(headers: List[str]) -> Tuple[int, int, int]:
    ticker_idx = qty_idx = cost_idx = -1
    for idx, header in enumerate(headers):
        if ticker_idx == -1 and _matches(header, "ticker"):
            ticker_idx = idx
        if qty_idx == -1 and _matches(header, "quantity"):
            qty_idx = idx
        if cost_idx == -1 and _matches(header, "cost"):
            cost_idx = idx
    return ticker_idx, qty_idx, cost_idx

def locate_header(rows: RawTable) -> HeaderMap:
    header_row_index, headers = find_header_row(rows)
    ticker_idx, qty_idx, cost_idx = find_column_indices(headers)
    return HeaderMap(
        header_row_index=header_row_index,
        headers=headers,
        ticker_idx=ticker_idx,
        quantity_idx=qty_idx,
        cost_idx=cost_idx,
    )

# ---------- Row parsing ----------
def parse_row(row: List[str], ticker_idx: int, qty_idx: int, cost_idx: int) -> Optional[PreviewRow]:
    """
    One data row -> PreviewRow.
    - blank ticker     -> None (row dropped, counted nowhere)
    - blank quantity   -> error "Missing quantity"
    - qty not > 0      -> error "Invalid quantity"
    - cost present but not a number >= 0 -> error "Invalid average cost format"
    """
    ticker = (_cell(row, ticker_idx) or "").strip().upper()
    if not ticker:
        return None

    raw = [str(c) for c in row]
    qty_str = (_cell(row, qty_idx) or "").strip()
    if not qty_str:
        return PreviewRow(ticker=ticker, quantity=0, raw_row=raw, error=ERR_MISSING_QTY)

    quantity = _parse_decimal(qty_str)
    if quantity is None or quantity <= 0:
        return PreviewRow(ticker=ticker, quantity=0, raw_row=raw, error=ERR_INVALID_QTY)

    avg_cost: Optional[float] = None
    cost_str = (_cell(row, cost_idx) or "").strip() if cost_idx != -1 else ""
    if cost_str:
        cost = _parse_decimal(cost_str)
        if cost is None or cost < 0:
            return PreviewRow(ticker=ticker, quantity=quantity, raw_row=raw, error=ERR_INVALID_COST)
        avg_cost = cost

    return PreviewRow(ticker=ticker, quantity=quantity, avg_cost=avg_cost, raw_row=raw)

# ---------- Shared orchestration ----------
def _single_error(message: str) -> ValidationResult:
    return ValidationResult(
        valid_rows=[],
        invalid_rows=[InvalidRow(row_number=0, error=message)],
        total_imported=0,
        total_skipped=1,
    )

def build_result(rows: RawTable) -> ValidationResult:
    """Header -> columns -> rows. Both the text and spreadsheet paths end here."""
    hm = locate_header(rows)
    if not hm.resolved:
        logger.warning(f"Column detection failed; header row {hm.header_row_index}: {hm.headers}")
        return _single_error(ERR_NO_COLUMNS)

    valid_rows: List[PreviewRow] = []
    invalid_rows: List[InvalidRow] = []
    dropped = 0

    data_rows = rows[hm.header_row_index + 1:]
    for offset, row in enumerate(data_rows):
        row_number = hm.header_row_index + 2 + offset
        parsed = parse_row(row, hm.ticker_idx, hm.quantity_idx, hm.cost_idx)
        if parsed is None:
            dropped += 1
            continue
        if parsed.error:
            invalid_rows.append(InvalidRow(row_number=row_number, error=parsed.error))
        else:
            valid_rows.append(parsed)

    logger.info(
        f"Parsed {len(data_rows)} data rows (header row {hm.header_row_index}): "
        f"{len(valid_rows)} valid, {len(invalid_rows)} invalid"
        f"{f', {dropped} without ticker' if dropped else ''}"
    )
    return ValidationResult(
        valid_rows=valid_rows,
        invalid_rows=invalid_rows,
        total_imported=len(valid_rows),
        total_skipped=len(invalid_rows),
    )

# ---------- Entry points ----------
def parse_table(text: str) -> ValidationResult:
    rows = split_text(text, detect_delimiter(text))
    if not rows:
        return ValidationResult()
    return build_result(rows)

def parse_csv(text: str) -> ValidationResult:
    return parse_table(text)

def parse_xlsx(content: bytes) -> ValidationResult:
    rows = read_spreadsheet(content)
    if not rows:
        logger.warning("Spreadsheet has no sheet or no rows")
        return _single_error(ERR_NO_DATA)
    return build_result(rows)

def load_upload(content: bytes, filename: str) -> ValidationResult:
    """Pick the spreadsheet or text path by file extension (.xlsx / .csv only)."""
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        return parse_xlsx(content)
    if name.endswith(".csv"):
        return parse_csv(content.decode("utf-8-sig", errors="replace"))
    logger.warning(f"Rejected upload {filename!r}: unsupported file type")
    raise UnsupportedFileType(f"Unsupported file type: {filename!r} (expected .csv or .xlsx)")

def validate_positions(rows: List[PreviewRow]) -> List[Position]:
    return [
        Position(ticker=r.ticker, quantity=r.quantity, avg_cost=r.avg_cost)
        for r in rows
        if not r.error and r.ticker.strip()
    ]
