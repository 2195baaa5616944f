"""Custom exception hierarchy for spreadsheet ingestion errors."""
from typing import Any, Dict, Optional

from sheetmind.models.fetch_outcome import FailureKind, FetchFailure


class IngestionError(Exception):
    """Base exception for all ingestion errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional structured details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ParserError(IngestionError):
    """Raised when a local source (file, HTML, text) cannot be parsed."""
    pass


class ValidationError(IngestionError):
    """Raised when a source descriptor or configuration is invalid."""
    pass


class FetchError(IngestionError):
    """Raised by low-level network code with an already classified failure kind.

    Strategy boundaries catch it and turn it into a FetchFailure via
    to_failure(); it never escapes the fetch layer.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        self.status_code = status_code
        super().__init__(message, details)

    def to_failure(self) -> FetchFailure:
        """Convert to the tagged failure returned to callers."""
        return FetchFailure(kind=self.kind, message=self.message, status_code=self.status_code)


class RateLimitedError(FetchError):
    """Raised on HTTP 429 so that retry policies can target it."""

    def __init__(self, message: str = "Rate limited by the Sheets API", status_code: int = 429):
        super().__init__(FailureKind.RATE_LIMITED, message, status_code=status_code)


class IngestionCancelled(IngestionError):
    """Raised when a cancellation token fires between table-building chunks."""
    pass
