"""Public export fetcher: downloads a shared spreadsheet as xlsx, or one tab as CSV.

Works without credentials for sheets shared as "anyone with the link". A
private sheet answers with a sign-in page instead of a file, which is
classified as PRIVATE.
"""

from typing import Optional

import httpx
import structlog

from sheetmind.config import SheetmindSettings
from sheetmind.errors.exceptions import FetchError, ParserError
from sheetmind.models.fetch_outcome import FailureKind, FetchOutcome, FetchSuccess
from sheetmind.models.workbook import Workbook
from sheetmind.parsers.csv_parser import CsvParser
from sheetmind.parsers.excel_parser import ExcelParser

logger = structlog.get_logger(__name__)

XLSX_MAGIC = b"PK"


class ExportFetcher:
    """Downloads spreadsheets through the docs export endpoint."""

    def __init__(
        self,
        settings: SheetmindSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self.base_url = settings.docs_base_url.rstrip("/")

    async def _download(self, url: str, timeout: float) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(timeout, connect=10.0),
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(FailureKind.NETWORK_ERROR, f"Export request failed: {e}") from e

        if response.status_code in (401, 403):
            raise FetchError(
                FailureKind.PRIVATE,
                "This spreadsheet is not shared publicly.",
                status_code=response.status_code,
            )
        if response.status_code == 404:
            raise FetchError(
                FailureKind.NOT_FOUND,
                "Spreadsheet not found. Check that the link is correct.",
                status_code=404,
            )
        if response.status_code == 429:
            raise FetchError(FailureKind.RATE_LIMITED, "Export endpoint rate limited", status_code=429)
        if not response.is_success:
            raise FetchError(
                FailureKind.NETWORK_ERROR,
                f"Export request failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if "html" in response.headers.get("content-type", "").lower():
            raise FetchError(
                FailureKind.PRIVATE,
                "The export returned a sign-in page; the spreadsheet is private.",
            )
        return response

    async def fetch_xlsx(self, spreadsheet_id: str) -> Workbook:
        """Download and parse the whole workbook.

        Raises:
            FetchError: Classified download failure or INVALID_CONTENT
        """
        url = f"{self.base_url}/{spreadsheet_id}/export?format=xlsx"
        response = await self._download(url, self.settings.xlsx_export_timeout_seconds)
        if not response.content.startswith(XLSX_MAGIC):
            raise FetchError(FailureKind.INVALID_CONTENT, "Export did not return an xlsx file")
        try:
            return ExcelParser().parse(response.content, source_label=spreadsheet_id)
        except ParserError as e:
            raise FetchError(FailureKind.INVALID_CONTENT, e.message) from e

    async def fetch_csv(self, spreadsheet_id: str, gid: int = 0) -> Workbook:
        """Download and parse a single tab as CSV.

        Raises:
            FetchError: Classified download failure or INVALID_CONTENT
        """
        url = f"{self.base_url}/{spreadsheet_id}/export?format=csv&gid={gid}"
        response = await self._download(url, self.settings.csv_export_timeout_seconds)
        try:
            return CsvParser().parse(response.content, source_label=spreadsheet_id)
        except ParserError as e:
            raise FetchError(FailureKind.INVALID_CONTENT, e.message) from e

    async def fetch(self, spreadsheet_id: str, gid: Optional[int] = None) -> FetchOutcome[Workbook]:
        """
        Try the xlsx export, then the CSV export of the gid tab.

        Returns:
            FetchSuccess(Workbook) tagged "export_xlsx" or "export_csv", or the
            failure of the last attempt (PRIVATE wins, since it is actionable)
        """
        log = logger.bind(spreadsheet_id=spreadsheet_id, gid=gid)
        try:
            workbook = await self.fetch_xlsx(spreadsheet_id)
            workbook.loaded_via = "export_xlsx"
            log.info("export_xlsx_loaded", sheets=len(workbook.sheet_names))
            return FetchSuccess(workbook, strategy="export_xlsx")
        except FetchError as e:
            xlsx_failure = e.to_failure()
            log.warning("export_xlsx_failed", kind=e.kind.value, error=e.message)

        if xlsx_failure.kind == FailureKind.NOT_FOUND:
            return xlsx_failure

        try:
            workbook = await self.fetch_csv(spreadsheet_id, gid or 0)
            workbook.loaded_via = "export_csv"
            log.info("export_csv_loaded")
            return FetchSuccess(workbook, strategy="export_csv")
        except FetchError as e:
            log.warning("export_csv_failed", kind=e.kind.value, error=e.message)
            csv_failure = e.to_failure()

        if xlsx_failure.kind == FailureKind.PRIVATE:
            return xlsx_failure
        return csv_failure
