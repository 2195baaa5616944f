"""Pytest configuration and fixtures for the test suite.

Provides:
- A settings fixture with test credentials and no rate-limit delay
- FakeSheetsApi: an in-memory Sheets API v4 served through httpx.MockTransport
"""
import io
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
from openpyxl import Workbook as XlsxWorkbook
import pytest

from sheetmind.config import SheetmindSettings

_RANGE_RE = re.compile(r"^'(?P<title>(?:[^']|'')*)'!A(?P<start>\d+):(?P<col>[A-Z]+)(?P<end>\d+)$")


def make_settings(**overrides: Any) -> SheetmindSettings:
    values: Dict[str, Any] = {
        "google_api_key": "test-api-key",
        "rate_limit_delay_seconds": 0.0,
        "rate_limit_max_retries": 3,
        "document_proxies": ["https://relay-one.test/?url={url}", "https://relay-two.test/fetch/{raw_url}"],
        "image_proxies": ["https://img-relay.test/?url={stripped_url}"],
    }
    values.update(overrides)
    return SheetmindSettings(_env_file=None, **values)


@pytest.fixture
def settings() -> SheetmindSettings:
    """Settings with a fake API key and zero back-off."""
    return make_settings()


def xlsx_bytes(sheets: Dict[str, List[List[Any]]]) -> bytes:
    """Build an in-memory xlsx workbook from {title: rows}."""
    wb = XlsxWorkbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title=title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class FakeSheet:
    def __init__(
        self,
        title: str,
        values: List[List[Any]],
        formulas: Optional[List[List[Any]]] = None,
        sheet_id: int = 0,
        row_count: Optional[int] = None,
        column_count: Optional[int] = 26,
    ):
        self.title = title
        self.values = values
        self.formulas = formulas if formulas is not None else values
        self.sheet_id = sheet_id
        self.row_count = row_count if row_count is not None else max(len(values), 1)
        self.column_count = column_count


class FakeSheetsApi:
    """In-memory Sheets API v4 (metadata + values endpoints)."""

    def __init__(self, spreadsheet_id: str = "SHEET123", title: str = "Test Book"):
        self.spreadsheet_id = spreadsheet_id
        self.title = title
        self.sheets: List[FakeSheet] = []
        # auth mode ("api_key" / "oauth") -> forced metadata status
        self.metadata_status: Dict[str, int] = {}
        # sheet title -> forced values status (every request for that sheet)
        self.values_status: Dict[str, int] = {}
        # (range, render option) -> number of 429 responses still to send
        self.rate_limits: Dict[Tuple[str, str], int] = {}
        self.calls: List[Dict[str, Any]] = []

    def add_sheet(self, *args: Any, **kwargs: Any) -> FakeSheet:
        sheet = FakeSheet(*args, **kwargs)
        self.sheets.append(sheet)
        return sheet

    def value_calls(self, render: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            c for c in self.calls
            if c["kind"] == "values" and (render is None or c["render"] == render)
        ]

    def _auth_mode(self, request: httpx.Request) -> str:
        if request.headers.get("Authorization", "").startswith("Bearer "):
            return "oauth"
        return "api_key" if "key" in request.url.params else "none"

    def _metadata(self) -> Dict[str, Any]:
        return {
            "properties": {"title": self.title},
            "sheets": [
                {
                    "properties": {
                        "title": s.title,
                        "sheetId": s.sheet_id,
                        "gridProperties": {"rowCount": s.row_count, "columnCount": s.column_count},
                    }
                }
                for s in self.sheets
            ],
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        mode = self._auth_mode(request)
        path = request.url.path
        prefix = f"/v4/spreadsheets/{self.spreadsheet_id}"
        if not path.startswith(prefix):
            return httpx.Response(404, json={"error": {"code": 404}})
        rest = path[len(prefix):]

        if rest == "":
            self.calls.append({"kind": "metadata", "mode": mode})
            status = self.metadata_status.get(mode)
            if status:
                return httpx.Response(status, json={"error": {"code": status}})
            return httpx.Response(200, json=self._metadata())

        range_a1 = unquote(rest[len("/values/"):])
        render = request.url.params.get("valueRenderOption", "FORMATTED_VALUE")
        match = _RANGE_RE.match(range_a1)
        assert match, f"unexpected range {range_a1}"
        title = match.group("title").replace("''", "'")
        start, end = int(match.group("start")), int(match.group("end"))
        self.calls.append(
            {"kind": "values", "mode": mode, "range": range_a1, "render": render,
             "start": start, "end": end, "end_col": match.group("col"), "title": title}
        )

        remaining = self.rate_limits.get((range_a1, render), 0)
        if remaining:
            self.rate_limits[(range_a1, render)] = remaining - 1
            return httpx.Response(429, json={"error": {"code": 429}})
        if title in self.values_status:
            status = self.values_status[title]
            return httpx.Response(status, json={"error": {"code": status}})

        sheet = next(s for s in self.sheets if s.title == title)
        grid = sheet.formulas if render == "FORMULA" else sheet.values
        rows = grid[start - 1:end]
        while rows and not any(v not in ("", None) for v in rows[-1]):
            rows = rows[:-1]
        body: Dict[str, Any] = {"range": range_a1, "majorDimension": "ROWS"}
        if rows:
            body["values"] = rows
        return httpx.Response(200, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeSheetsApi:
    return FakeSheetsApi()


@pytest.fixture
def settings_factory():
    """Build settings with overrides: settings_factory(batch_size=10)."""
    return make_settings


@pytest.fixture
def make_xlsx():
    """Build xlsx bytes: make_xlsx({"Data": [["a", "b"], [1, 2]]})."""
    return xlsx_bytes
