"""
Fetch Strategy Selector

Loads a Google Sheets URL by walking an explicit fallback chain:

    TryApiKey --ok--> DONE
        |--PRIVATE--> TryOAuth (token given) | FAIL with guidance (no token)
        |--NETWORK_ERROR / RATE_LIMITED / rejected key--> TryExport --> TryOAuth (token given)
    TryOAuth --ok--> DONE | FAIL with combined guidance

Without an API key the chain starts at TryOAuth (token given) or TryExport.
Every attempt is bounded by a timeout; a timeout counts as NETWORK_ERROR and
advances the chain instead of retrying.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import structlog

from sheetmind.config import SheetmindSettings
from sheetmind.errors.exceptions import FetchError
from sheetmind.models.fetch_outcome import FailureKind, FetchFailure, FetchOutcome, FetchSuccess
from sheetmind.models.workbook import Workbook, sanitize_sheet_name
from sheetmind.services.export_fetcher import ExportFetcher
from sheetmind.services.google_sheets_client import SheetsApiClient, SheetsAuth
from sheetmind.services.range_reader import BatchedRangeReader, ProgressCallback
from sheetmind.utils.sheets_url import extract_gid, extract_spreadsheet_id

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[SheetsAuth], SheetsApiClient]

# API-key failures that the public export endpoint may still get around
_EXPORT_FALLBACK_KINDS = {
    FailureKind.NETWORK_ERROR,
    FailureKind.RATE_LIMITED,
    FailureKind.UNAUTHORIZED,
    FailureKind.INVALID_CONTENT,
}


def access_guidance(service_account_email: str) -> str:
    """User-facing list of every way to make a private sheet readable."""
    return (
        "Choose one of the following:\n\n"
        "1. Sign in with Google again\n\n"
        "2. Make the spreadsheet public\n"
        "   In the sharing settings choose \"Anyone with the link can view\"\n\n"
        "3. Share the spreadsheet with the service account\n"
        "   Add this address as a viewer:\n"
        f"   {service_account_email}"
    )


class FetchStrategySelector:
    """
    Chooses and runs the access strategy for a Google Sheets URL.

    Usage:
        selector = FetchStrategySelector(get_settings())
        outcome = await selector.fetch(url, access_token=token)
        if outcome.ok:
            workbook = outcome.value
    """

    def __init__(
        self,
        settings: SheetmindSettings,
        client_factory: Optional[ClientFactory] = None,
        export_fetcher: Optional[ExportFetcher] = None,
        transport=None,
    ):
        """
        Args:
            settings: Credentials, endpoints and timeouts
            client_factory: Builds a SheetsApiClient for a credential
            export_fetcher: Public export fetcher
            transport: httpx transport for the default client/export fetcher
        """
        self.settings = settings
        self.client_factory: ClientFactory = client_factory or (
            lambda auth: SheetsApiClient(settings, auth, transport=transport)
        )
        self.export_fetcher = export_fetcher or ExportFetcher(settings, transport=transport)

    def _guidance_failure(self, failure: FetchFailure) -> FetchFailure:
        return FetchFailure(
            kind=failure.kind,
            message=f"{failure.message}\n\n{access_guidance(self.settings.service_account_email)}",
            status_code=failure.status_code,
        )

    async def _bounded(
        self,
        attempt: Awaitable[FetchOutcome[Workbook]],
        timeout: float,
        strategy: str,
    ) -> FetchOutcome[Workbook]:
        try:
            return await asyncio.wait_for(attempt, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("fetch_strategy_timed_out", strategy=strategy, timeout_seconds=timeout)
            return FetchFailure(
                FailureKind.NETWORK_ERROR,
                f"Loading timed out after {int(timeout)} seconds ({strategy}).",
            )

    async def _read_with_api(
        self,
        spreadsheet_id: str,
        auth: SheetsAuth,
        strategy: str,
        sheet_names: Optional[List[str]],
        on_progress: Optional[ProgressCallback],
    ) -> FetchOutcome[Workbook]:
        try:
            async with self.client_factory(auth) as client:
                info = await client.get_spreadsheet_info(spreadsheet_id)
                workbook = Workbook(title=info.title, source_label=info.title, loaded_via=strategy)
                reader = BatchedRangeReader(client, self.settings)
                await reader.read_workbook(
                    spreadsheet_id, info.select(sheet_names), workbook, on_progress
                )
        except FetchError as e:
            return e.to_failure()
        return FetchSuccess(workbook, strategy=strategy)

    async def try_api_key(
        self,
        spreadsheet_id: str,
        sheet_names: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        auth = SheetsAuth.api_key(self.settings.google_api_key)
        return await self._bounded(
            self._read_with_api(spreadsheet_id, auth, "api_key", sheet_names, on_progress),
            self.settings.strategy_timeout_seconds,
            "api_key",
        )

    async def try_oauth(
        self,
        spreadsheet_id: str,
        access_token: str,
        sheet_names: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        """OAuth attempt; a failure carries the full remediation guidance."""
        auth = SheetsAuth.oauth(access_token)
        outcome = await self._bounded(
            self._read_with_api(spreadsheet_id, auth, "oauth", sheet_names, on_progress),
            self.settings.strategy_timeout_seconds,
            "oauth",
        )
        if outcome.ok:
            return outcome
        logger.warning("oauth_attempt_failed", spreadsheet_id=spreadsheet_id, kind=outcome.kind.value)
        return self._guidance_failure(outcome)

    async def try_export(
        self,
        spreadsheet_id: str,
        gid: Optional[int],
        sheet_names: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        if on_progress is not None:
            on_progress("Downloading the public export...", 10)
        outcome = await self._bounded(
            self.export_fetcher.fetch(spreadsheet_id, gid),
            self.settings.xlsx_export_timeout_seconds + self.settings.csv_export_timeout_seconds,
            "export",
        )
        if not outcome.ok:
            return outcome

        workbook = outcome.value
        if sheet_names is not None and workbook.loaded_via == "export_xlsx":
            allowed = {sanitize_sheet_name(name) for name in sheet_names}
            workbook.sheet_names = [n for n in workbook.sheet_names if n in allowed]
            workbook.sheets = {n: s for n, s in workbook.sheets.items() if n in allowed}
        if on_progress is not None:
            on_progress(f"Done. Loaded {len(workbook.sheet_names)} sheet(s)", 100)
        return outcome

    async def fetch(
        self,
        url: str,
        access_token: Optional[str] = None,
        sheet_names: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchOutcome[Workbook]:
        """
        Load a Google Sheets URL into a Workbook.

        Args:
            url: Link containing /spreadsheets/d/<id> (optionally gid=<n>)
            access_token: Optional OAuth bearer token
            sheet_names: Only load these sheet titles (None loads all)
            on_progress: Callback receiving (message, percent)

        Returns:
            FetchSuccess(Workbook) tagged with the strategy that worked, or a
            FetchFailure once every applicable strategy is exhausted
        """
        spreadsheet_id = extract_spreadsheet_id(url)
        if spreadsheet_id is None:
            return FetchFailure(
                FailureKind.INVALID_URL,
                "Invalid Google Sheets link. Make sure it contains '/spreadsheets/d/<id>'.",
            )
        gid = extract_gid(url)
        token = (access_token or "").strip() or None
        log = logger.bind(spreadsheet_id=spreadsheet_id, has_token=token is not None)

        if self.settings.has_api_key:
            log.info("fetch_strategy_api_key")
            api_outcome = await self.try_api_key(spreadsheet_id, sheet_names, on_progress)
            if api_outcome.ok:
                return api_outcome

            if api_outcome.kind == FailureKind.PRIVATE:
                if token:
                    log.info("fetch_strategy_oauth_after_private")
                    return await self.try_oauth(spreadsheet_id, token, sheet_names, on_progress)
                log.info("private_spreadsheet_without_token")
                return self._guidance_failure(api_outcome)

            if api_outcome.kind not in _EXPORT_FALLBACK_KINDS:
                return api_outcome

            log.info("fetch_strategy_export_after_api_key", api_key_failure=api_outcome.kind.value)
            export_outcome = await self.try_export(spreadsheet_id, gid, sheet_names, on_progress)
            if export_outcome.ok:
                return export_outcome
            if token:
                return await self.try_oauth(spreadsheet_id, token, sheet_names, on_progress)
            if export_outcome.kind == FailureKind.PRIVATE:
                return self._guidance_failure(export_outcome)
            return FetchFailure(
                kind=api_outcome.kind,
                message=f"{api_outcome.message}\n{export_outcome.message}",
                status_code=api_outcome.status_code,
            )

        if token:
            log.info("fetch_strategy_oauth")
            return await self.try_oauth(spreadsheet_id, token, sheet_names, on_progress)

        log.info("fetch_strategy_export")
        export_outcome = await self.try_export(spreadsheet_id, gid, sheet_names, on_progress)
        if not export_outcome.ok and export_outcome.kind == FailureKind.PRIVATE:
            return self._guidance_failure(export_outcome)
        return export_outcome
