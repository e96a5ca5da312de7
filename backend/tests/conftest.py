import io
from typing import Any, List

import openpyxl
import pytest
from fastapi.testclient import TestClient

from advisor.api.deps import get_repository
from advisor.main import app
from advisor.services.repository import MemoryRepository


def make_xlsx(*sheets: List[List[Any]]) -> bytes:
    """Workbook bytes; one positional arg per sheet, each a list of rows."""
    wb = openpyxl.Workbook()
    ws = wb.active
    for i, rows in enumerate(sheets):
        if i > 0:
            ws = wb.create_sheet()
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def client(repo):
    app.dependency_overrides[get_repository] = lambda: repo
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
