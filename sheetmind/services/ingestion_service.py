"""
Ingestion Service

Single entry point for every source: Google Sheets URLs go through the fetch
strategy selector, other URLs through the proxy fetcher and a local parser,
files and pasted content straight to a local parser. Every Workbook gets its
cross references detected before it is handed back.
"""

from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Union
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError as PydanticValidationError
import structlog

from sheetmind.config import SheetmindSettings, get_settings
from sheetmind.errors.exceptions import ParserError, ValidationError
from sheetmind.models.fetch_outcome import FailureKind, FetchFailure, FetchOutcome, FetchSuccess
from sheetmind.models.google_sheets import GoogleSheetsSource
from sheetmind.models.table import Table
from sheetmind.models.workbook import Workbook
from sheetmind.parsers import create_parser_instance, parser_for_filename
from sheetmind.parsers.base_parser import ParserInput
from sheetmind.services.cross_reference import detect_cross_references
from sheetmind.services.fetch_strategy import FetchStrategySelector
from sheetmind.services.proxy_fetcher import ImagePayload, ProxyFetcher
from sheetmind.services.range_reader import ProgressCallback
from sheetmind.services.scheduler import CancellationToken
from sheetmind.services.sheet_merger import merge_sheets, merge_sheets_async
from sheetmind.services.table_builder import TableBuilder, TableProgressCallback
from sheetmind.utils.sheets_url import is_google_sheets_url

logger = structlog.get_logger(__name__)


def sniff_parser_type(content: ParserInput, content_type: str = "", filename: str = "") -> str:
    """Registered parser type for content whose extension is unknown."""
    suffix = PurePosixPath(filename).suffix.lower().lstrip(".")
    if suffix in ("xlsx", "xlsm"):
        return "xlsx"
    if suffix in ("html", "htm"):
        return "html"
    if suffix in ("csv", "tsv", "txt"):
        return "csv"

    if isinstance(content, bytes) and content.startswith(b"PK"):
        return "xlsx"
    if "spreadsheetml" in content_type:
        return "xlsx"
    if "html" in content_type:
        return "html"
    head = content[:512].lstrip() if isinstance(content, (bytes, str)) else ""
    if isinstance(head, bytes):
        head = head.decode("utf-8", errors="ignore")
    if head.lower().startswith(("<!doctype html", "<html", "<table", "<meta", "<google-sheets-html-origin")):
        return "html"
    return "csv"


def google_sheets_source(
    url: str,
    access_token: Optional[str] = None,
    sheet_names: Optional[List[str]] = None,
) -> GoogleSheetsSource:
    """Validate a Google Sheets link plus its load options.

    Raises:
        ValidationError: If the link carries no spreadsheet ID
    """
    try:
        return GoogleSheetsSource(url=url, access_token=access_token, sheet_names=sheet_names)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid Google Sheets link. Make sure it contains '/spreadsheets/d/<id>'.",
            details={"url": url, "errors": [err["msg"] for err in e.errors()]},
        ) from e


class IngestionService:
    """
    Loads sources into Workbooks and normalizes them into Tables.

    Usage:
        service = IngestionService()
        outcome = await service.load_url(url, access_token=token)
        if outcome.ok:
            table = await service.build_table_async(outcome.value)
    """

    def __init__(
        self,
        settings: Optional[SheetmindSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        selector: Optional[FetchStrategySelector] = None,
        proxy_fetcher: Optional[ProxyFetcher] = None,
    ):
        self.settings = settings or get_settings()
        self.selector = selector or FetchStrategySelector(self.settings, transport=transport)
        self.proxy_fetcher = proxy_fetcher or ProxyFetcher(self.settings, transport=transport)
        self.builder = TableBuilder(self.settings)

    def _finalize(self, workbook: Workbook) -> Workbook:
        workbook.cross_references = detect_cross_references(workbook)
        return workbook

    # --- Loading ---

    async def load_url(
        self,
        url: str,
        access_token: Optional[str] = None,
        sheet_names: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        """
        Load a remote source.

        Google Sheets links use the strategy selector; any other link is
        downloaded through the proxy fetcher and parsed by extension or by
        content sniffing.

        Returns:
            FetchSuccess(Workbook) or a classified FetchFailure
        """
        url = url.strip()
        log = logger.bind(url=url)

        if is_google_sheets_url(url) or "docs.google.com/spreadsheets" in url:
            try:
                source = google_sheets_source(url, access_token, sheet_names)
            except ValidationError as e:
                log.warning("google_sheet_source_invalid", error=e.message)
                return FetchFailure(FailureKind.INVALID_URL, e.message)
            return await self.load_google_sheet(source, on_progress)

        document = await self.proxy_fetcher.fetch_document(url)
        if not document.ok:
            return document

        payload = document.value
        filename = PurePosixPath(urlsplit(url).path).name
        parser_type = sniff_parser_type(payload.content, payload.content_type.lower(), filename)
        try:
            workbook = create_parser_instance(parser_type).parse(payload.content, source_label=url)
        except ParserError as e:
            log.warning("remote_document_parse_failed", parser=parser_type, error=e.message)
            return FetchFailure(FailureKind.INVALID_CONTENT, e.message)

        workbook.loaded_via = document.strategy
        return FetchSuccess(self._finalize(workbook), strategy=document.strategy)

    async def load_google_sheet(
        self,
        source: GoogleSheetsSource,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        """Load a validated Google Sheets source through the strategy selector."""
        log = logger.bind(spreadsheet_id=source.spreadsheet_id)
        outcome = await self.selector.fetch(
            source.url, source.access_token, source.sheet_names, on_progress
        )
        if outcome.ok:
            self._finalize(outcome.value)
            log.info(
                "google_sheet_loaded",
                strategy=outcome.strategy,
                sheets=len(outcome.value.sheet_names),
                failed_sheets=len(outcome.value.sheet_errors),
            )
        else:
            log.warning("google_sheet_load_failed", kind=outcome.kind.value)
        return outcome

    def load_bytes(self, content: bytes, filename: str) -> Workbook:
        """Parse uploaded file bytes, choosing the parser by extension.

        Raises:
            ParserError: Unsupported extension or unreadable content
        """
        try:
            parser = parser_for_filename(filename)
        except ParserError:
            parser = create_parser_instance(sniff_parser_type(content, filename=filename))
        workbook = parser.parse(content, source_label=filename)
        return self._finalize(workbook)

    def load_file(self, path: Union[str, Path]) -> Workbook:
        """Read and parse a local workbook file.

        Raises:
            ParserError: If the file cannot be read or parsed
        """
        file_path = Path(path)
        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise ParserError(f"Cannot read file {file_path}: {e}", details={"path": str(file_path)}) from e
        return self.load_bytes(content, file_path.name)

    def load_html(self, html: str, source_label: str = "Pasted data") -> Workbook:
        """Parse pasted HTML clipboard content (first table)."""
        workbook = create_parser_instance("html").parse(html, source_label=source_label)
        return self._finalize(workbook)

    def load_text(self, text: str, source_label: str = "Pasted data") -> Workbook:
        """Parse pasted CSV/TSV text."""
        workbook = create_parser_instance("csv").parse(text, source_label=source_label)
        return self._finalize(workbook)

    async def fetch_image(self, url: str) -> FetchOutcome[ImagePayload]:
        return await self.proxy_fetcher.fetch_image(url)

    # --- Normalization ---

    def select_default_sheet(self, workbook: Workbook, gid: Optional[int] = None) -> Optional[str]:
        """
        Sheet to show first: the tab matching the URL gid, else the first
        sheet that loaded, else the first sheet. None for an empty workbook.
        """
        if gid is not None:
            for name, sheet_id in workbook.sheet_ids.items():
                if sheet_id == gid and name in workbook.sheets:
                    return name
        for name in workbook.sheet_names:
            if name in workbook.sheets and name not in workbook.sheet_errors:
                return name
        return workbook.sheet_names[0] if workbook.sheet_names else None

    def _resolve_sheet(self, workbook: Workbook, sheet_name: Optional[str]) -> str:
        name = sheet_name or self.select_default_sheet(workbook)
        if name is None:
            raise ParserError("The workbook contains no sheets", details={"source": workbook.source_label})
        if name not in workbook.sheets:
            raise ParserError(
                f"Sheet not found: {name}",
                details={"available": list(workbook.sheets)},
            )
        return name

    def build_table(
        self,
        workbook: Workbook,
        sheet_name: Optional[str] = None,
        release: bool = False,
    ) -> Table:
        """Build one sheet's table; release=True frees the sheet's cells afterwards."""
        name = self._resolve_sheet(workbook, sheet_name)
        table = self.builder.build(workbook.get_sheet(name), source_label=workbook.source_label)
        if release:
            workbook.pop_sheet(name)
        return table

    async def build_table_async(
        self,
        workbook: Workbook,
        sheet_name: Optional[str] = None,
        release: bool = False,
        chunk_size: Optional[int] = None,
        on_progress: Optional[TableProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Table:
        name = self._resolve_sheet(workbook, sheet_name)
        table = await self.builder.build_async(
            workbook.get_sheet(name),
            source_label=workbook.source_label,
            chunk_size=chunk_size,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )
        if release:
            workbook.pop_sheet(name)
        return table

    def build_merged_table(self, workbook: Workbook, sheet_names: Optional[Sequence[str]] = None) -> Table:
        """Merge the named sheets (all loaded sheets by default) into one table."""
        names = list(sheet_names) if sheet_names is not None else list(workbook.sheets)
        return merge_sheets(workbook, names, self.builder)

    async def build_merged_table_async(
        self,
        workbook: Workbook,
        sheet_names: Optional[Sequence[str]] = None,
        chunk_size: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Table:
        names = list(sheet_names) if sheet_names is not None else list(workbook.sheets)
        return await merge_sheets_async(workbook, names, self.builder, chunk_size, cancel_token)
