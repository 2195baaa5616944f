"""Google Sheets API v4 client (metadata and values-range endpoints).

Talks REST over httpx so the same client serves the public API-key path and
the OAuth bearer-token path. Every non-2xx response is classified into a
FailureKind and raised as FetchError; callers at the strategy boundary turn
it into a FetchFailure.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote

import httpx
import structlog

from sheetmind.config import SheetmindSettings
from sheetmind.errors.exceptions import FetchError, RateLimitedError
from sheetmind.models.fetch_outcome import FailureKind
from sheetmind.models.google_sheets import SheetMetadata, SpreadsheetInfo

logger = structlog.get_logger(__name__)

AuthMode = Literal["api_key", "oauth"]
RenderOption = Literal["FORMATTED_VALUE", "FORMULA", "UNFORMATTED_VALUE"]

METADATA_FIELDS = "properties.title,sheets.properties"


@dataclass(frozen=True)
class SheetsAuth:
    """Credential for one strategy: a public API key or an OAuth bearer token."""

    mode: AuthMode
    credential: str

    @classmethod
    def api_key(cls, key: str) -> "SheetsAuth":
        return cls(mode="api_key", credential=key)

    @classmethod
    def oauth(cls, token: str) -> "SheetsAuth":
        return cls(mode="oauth", credential=token)

    def params(self) -> Dict[str, str]:
        return {"key": self.credential} if self.mode == "api_key" else {}

    def headers(self) -> Dict[str, str]:
        if self.mode == "oauth":
            return {"Authorization": f"Bearer {self.credential}"}
        return {}


def classify_status(status_code: int, auth_mode: AuthMode) -> FetchError:
    """
    Map an HTTP error status to a classified FetchError.

    With an API key, 403 and 404 mean the spreadsheet is not public, which
    is a fallback trigger rather than a hard failure.

    Args:
        status_code: HTTP status of the failed response
        auth_mode: Which credential made the request

    Returns:
        The error to raise (RateLimitedError for 429)
    """
    if status_code == 429:
        return RateLimitedError()

    if auth_mode == "api_key":
        if status_code in (403, 404):
            return FetchError(
                FailureKind.PRIVATE,
                "This spreadsheet is private and requires authorization.",
                status_code=status_code,
            )
        if status_code in (400, 401):
            return FetchError(
                FailureKind.UNAUTHORIZED,
                "The configured Google API key was rejected.",
                status_code=status_code,
            )
    else:
        if status_code == 401:
            return FetchError(
                FailureKind.UNAUTHORIZED,
                "Google sign-in has expired. Please sign in with Google again.",
                status_code=status_code,
            )
        if status_code == 403:
            return FetchError(
                FailureKind.FORBIDDEN,
                "No permission to access this spreadsheet. Share it with your Google "
                "account or make it viewable by anyone with the link.",
                status_code=status_code,
            )
        if status_code == 404:
            return FetchError(
                FailureKind.NOT_FOUND,
                "Spreadsheet not found. Check that the link is correct.",
                status_code=status_code,
            )

    return FetchError(
        FailureKind.NETWORK_ERROR,
        f"Failed to fetch spreadsheet information: HTTP {status_code}",
        status_code=status_code,
    )


class SheetsApiClient:
    """
    Async client for the Sheets API metadata and values endpoints.

    Usage:
        async with SheetsApiClient(settings, SheetsAuth.api_key(key)) as client:
            info = await client.get_spreadsheet_info(spreadsheet_id)
            rows = await client.get_values(spreadsheet_id, "'Data'!A1:ZZ10000")
    """

    def __init__(
        self,
        settings: SheetmindSettings,
        auth: SheetsAuth,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Endpoint and timeout configuration
            auth: API key or bearer token
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self.auth = auth
        self.base_url = settings.sheets_api_base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._log = logger.bind(auth_mode=auth.mode)

    async def __aenter__(self) -> "SheetsApiClient":
        """Context manager entry - create async client."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout_seconds, connect=10.0),
            transport=self._transport,
            headers={"Accept": "application/json", **self.auth.headers()},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError(
                "SheetsApiClient not initialized. Use 'async with SheetsApiClient(...) as client:'"
            )
        return self._client

    async def _get_json(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = await self.client.get(url, params={**params, **self.auth.params()})
        except httpx.TimeoutException as e:
            raise FetchError(FailureKind.NETWORK_ERROR, f"Sheets API request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise FetchError(FailureKind.NETWORK_ERROR, f"Sheets API request failed: {e}") from e

        if not response.is_success:
            error = classify_status(response.status_code, self.auth.mode)
            self._log.debug(
                "sheets_api_error_response",
                status_code=response.status_code,
                kind=error.kind.value,
            )
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(
                FailureKind.INVALID_CONTENT,
                "Sheets API returned a non-JSON response",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise FetchError(FailureKind.INVALID_CONTENT, "Unexpected Sheets API response shape")
        return data

    async def get_spreadsheet_info(self, spreadsheet_id: str) -> SpreadsheetInfo:
        """
        Fetch spreadsheet title and per-sheet grid properties.

        Raises:
            FetchError: Classified failure (PRIVATE, UNAUTHORIZED, ...)
            RateLimitedError: On HTTP 429
        """
        data = await self._get_json(
            f"{self.base_url}/{spreadsheet_id}",
            {"fields": METADATA_FIELDS},
        )
        sheets = [SheetMetadata.from_api(s) for s in data.get("sheets", []) or []]
        if not sheets:
            raise FetchError(FailureKind.INVALID_CONTENT, "The spreadsheet contains no sheets.")

        title = (data.get("properties") or {}).get("title") or "Google Sheet"
        self._log.debug(
            "spreadsheet_metadata_loaded",
            spreadsheet_id=spreadsheet_id,
            title=title,
            sheet_count=len(sheets),
        )
        return SpreadsheetInfo(spreadsheet_id=spreadsheet_id, title=title, sheets=sheets)

    async def get_values(
        self,
        spreadsheet_id: str,
        range_a1: str,
        render_option: RenderOption = "FORMATTED_VALUE",
    ) -> List[List[Any]]:
        """
        Fetch one A1 range rendered with the given valueRenderOption.

        Returns:
            Row-major values; trailing empty rows and cells are omitted by the API
        """
        data = await self._get_json(
            f"{self.base_url}/{spreadsheet_id}/values/{quote(range_a1, safe='')}",
            {"valueRenderOption": render_option},
        )
        values = data.get("values") or []
        return [list(row) for row in values]
