"""
Proxy-Fallback Fetcher

Fetches documents and images that are not Google Sheets: a direct GET first,
then each configured public relay in order, stopping at the first usable
response. Domains that block hotlinking are tried relay-first.
"""

from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import httpx
import structlog

from sheetmind.config import SheetmindSettings
from sheetmind.models.fetch_outcome import FailureKind, FetchFailure, FetchOutcome, FetchSuccess
from sheetmind.services.image_urls import (
    is_likely_hotlink_blocked,
    normalize_image_url,
    strip_protocol,
)
from sheetmind.utils.sheets_url import is_google_sheets_url

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DocumentPayload:
    content: bytes
    content_type: str
    source_url: str


@dataclass(frozen=True)
class ImagePayload:
    """Validated image bytes and the candidate URL that produced them."""

    content: bytes
    mime_type: str
    source_url: str


def expand_template(template: str, url: str) -> str:
    """Fill a relay template's {url}, {raw_url}, {stripped_url}, {stripped_raw_url}."""
    stripped = strip_protocol(url)
    return template.format(
        url=quote(url, safe=""),
        raw_url=url,
        stripped_url=quote(stripped, safe=""),
        stripped_raw_url=stripped,
    )


def _dedupe(urls: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for u in urls:
        if u not in seen:
            seen.add(u)
            ordered.append(u)
    return ordered


def _relay_name(candidate: str) -> str:
    return candidate.split("?")[0]


class ProxyFetcher:
    """Direct-then-relay fetching for documents and images."""

    def __init__(
        self,
        settings: SheetmindSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Relay templates, timeouts and the minimum image size
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
            headers={"Accept": "*/*"},
        )

    def document_candidates(self, url: str) -> List[str]:
        return _dedupe([url] + [expand_template(t, url) for t in self.settings.document_proxies])

    def image_candidates(self, url: str) -> List[str]:
        """Direct URL first, relays after; reversed for hotlink-blocking domains."""
        relays = [expand_template(t, url) for t in self.settings.image_proxies]
        if is_likely_hotlink_blocked(url):
            return _dedupe(relays + [url])
        return _dedupe([url] + relays)

    async def fetch_document(self, url: str) -> FetchOutcome[DocumentPayload]:
        """
        Fetch any document through the direct URL or a relay.

        Returns:
            FetchSuccess(DocumentPayload) from the first 2xx response, or a
            NETWORK_ERROR failure listing each attempt
        """
        log = logger.bind(url=url)
        errors: List[str] = []
        async with self._client(self.settings.request_timeout_seconds) as client:
            for candidate in self.document_candidates(url):
                try:
                    response = await client.get(candidate)
                except httpx.HTTPError as e:
                    errors.append(f"{_relay_name(candidate)} failed: {e}")
                    log.debug("document_candidate_failed", candidate=_relay_name(candidate), error=str(e))
                    continue
                if response.is_success:
                    log.info("document_fetched", via=_relay_name(candidate), size_bytes=len(response.content))
                    return FetchSuccess(
                        DocumentPayload(
                            content=response.content,
                            content_type=response.headers.get("content-type", ""),
                            source_url=candidate,
                        ),
                        strategy="direct" if candidate == url else "proxy",
                    )
                errors.append(f"{_relay_name(candidate)} returned status: {response.status_code}")

        log.warning("document_fetch_exhausted", attempts=len(errors))
        if is_google_sheets_url(url):
            message = (
                "Could not load the Google Sheet. Try one of the following:\n"
                "1. Make the sheet viewable by anyone with the link\n"
                "2. Sign in with Google and retry\n"
                "3. Reload and retry"
            )
        else:
            message = "Failed to fetch the resource: every relay failed. Check the link permissions."
        return FetchFailure(FailureKind.NETWORK_ERROR, message + "\n\n" + "\n".join(errors))

    async def fetch_image(self, url: str) -> FetchOutcome[ImagePayload]:
        """
        Fetch and validate an image.

        A response counts only if it is 2xx, its content type is neither
        text/* nor HTML, and it is at least min_image_bytes long.

        Returns:
            FetchSuccess(ImagePayload) or a failure listing every attempt
        """
        target = normalize_image_url(url)
        log = logger.bind(url=target)
        errors: List[str] = []
        content_errors = 0
        async with self._client(self.settings.image_timeout_seconds) as client:
            for candidate in self.image_candidates(target):
                name = _relay_name(candidate)
                try:
                    response = await client.get(candidate)
                except httpx.HTTPError as e:
                    errors.append(f"{name}: {e}")
                    continue
                if not response.is_success:
                    errors.append(f"{name}: HTTP {response.status_code}")
                    continue

                mime_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
                if mime_type.startswith("text/") or "html" in mime_type:
                    content_errors += 1
                    errors.append(f"{name}: not an image (received {mime_type})")
                    continue
                if len(response.content) < self.settings.min_image_bytes:
                    content_errors += 1
                    errors.append(f"{name}: image too small, likely an error response")
                    continue

                log.info("image_fetched", via=name, size_bytes=len(response.content))
                return FetchSuccess(
                    ImagePayload(
                        content=response.content,
                        mime_type=mime_type or "application/octet-stream",
                        source_url=candidate,
                    ),
                    strategy="direct" if candidate == target else "proxy",
                )

        log.warning("image_fetch_exhausted", attempts=len(errors))
        kind = (
            FailureKind.INVALID_CONTENT
            if errors and content_errors == len(errors)
            else FailureKind.NETWORK_ERROR
        )
        return FetchFailure(kind, "Failed to load image:\n" + "\n".join(errors))
