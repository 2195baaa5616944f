"""Unit tests for the public xlsx/CSV export fetcher."""
from typing import List

import httpx
import pytest

from sheetmind.errors.exceptions import FetchError
from sheetmind.models.fetch_outcome import FailureKind
from sheetmind.services.export_fetcher import ExportFetcher

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExportServer:
    """Answers export requests by format; records the requested formats."""

    def __init__(self, xlsx: httpx.Response, csv: httpx.Response):
        self.responses = {"xlsx": xlsx, "csv": csv}
        self.formats: List[str] = []
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        fmt = request.url.params["format"]
        self.formats.append(fmt)
        self.requests.append(request)
        return self.responses[fmt]


def xlsx_response(payload: bytes) -> httpx.Response:
    return httpx.Response(200, content=payload, headers={"content-type": XLSX_TYPE})


def csv_response(text: str = "a,b\n1,2\n") -> httpx.Response:
    return httpx.Response(200, text=text, headers={"content-type": "text/csv"})


def html_response() -> httpx.Response:
    return httpx.Response(200, text="<html>Sign in</html>", headers={"content-type": "text/html; charset=utf-8"})


def export_fetcher(settings, server: ExportServer) -> ExportFetcher:
    return ExportFetcher(settings, transport=httpx.MockTransport(server))


class TestFetch:
    @pytest.mark.asyncio
    async def test_xlsx_export(self, settings, make_xlsx):
        server = ExportServer(xlsx_response(make_xlsx({"A": [["x"], [1]], "B": [["y"]]})), csv_response())

        outcome = await export_fetcher(settings, server).fetch("SHEET123", gid=0)

        assert outcome.ok
        assert outcome.strategy == "export_xlsx"
        assert outcome.value.loaded_via == "export_xlsx"
        assert outcome.value.sheet_names == ["A", "B"]
        assert server.formats == ["xlsx"]
        assert server.requests[0].url.path == "/spreadsheets/d/SHEET123/export"

    @pytest.mark.asyncio
    async def test_falls_back_to_csv_of_gid(self, settings):
        server = ExportServer(httpx.Response(500), csv_response())

        outcome = await export_fetcher(settings, server).fetch("SHEET123", gid=42)

        assert outcome.strategy == "export_csv"
        assert outcome.value.loaded_via == "export_csv"
        assert server.formats == ["xlsx", "csv"]
        assert server.requests[1].url.params["gid"] == "42"
        sheet = outcome.value.get_sheet(outcome.value.sheet_names[0])
        assert sheet.get_cell(1, 0).raw_value == 1

    @pytest.mark.asyncio
    async def test_non_zip_xlsx_body_falls_back(self, settings):
        server = ExportServer(
            httpx.Response(200, content=b"not a zip", headers={"content-type": XLSX_TYPE}),
            csv_response(),
        )

        outcome = await export_fetcher(settings, server).fetch("SHEET123")

        assert outcome.strategy == "export_csv"

    @pytest.mark.asyncio
    async def test_not_found_stops_immediately(self, settings):
        server = ExportServer(httpx.Response(404), csv_response())

        outcome = await export_fetcher(settings, server).fetch("SHEET123")

        assert outcome.kind == FailureKind.NOT_FOUND
        assert server.formats == ["xlsx"]

    @pytest.mark.asyncio
    async def test_sign_in_page_is_private(self, settings):
        server = ExportServer(html_response(), html_response())

        outcome = await export_fetcher(settings, server).fetch("SHEET123")

        assert outcome.kind == FailureKind.PRIVATE

    @pytest.mark.asyncio
    async def test_private_xlsx_wins_over_csv_failure(self, settings):
        server = ExportServer(httpx.Response(403), httpx.Response(500))

        outcome = await export_fetcher(settings, server).fetch("SHEET123")

        assert outcome.kind == FailureKind.PRIVATE
        assert outcome.status_code == 403

    @pytest.mark.asyncio
    async def test_csv_failure_reported_otherwise(self, settings):
        server = ExportServer(httpx.Response(500), httpx.Response(429))

        outcome = await export_fetcher(settings, server).fetch("SHEET123")

        assert outcome.kind == FailureKind.RATE_LIMITED


class TestDownloadErrors:
    @pytest.mark.asyncio
    async def test_connection_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        fetcher = ExportFetcher(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_csv("SHEET123")

        assert exc_info.value.kind == FailureKind.NETWORK_ERROR
