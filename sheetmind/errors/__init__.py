"""Error handling module."""
from sheetmind.errors.exceptions import (
    IngestionError,
    ParserError,
    ValidationError,
    FetchError,
    RateLimitedError,
    IngestionCancelled,
)

__all__ = [
    "IngestionError",
    "ParserError",
    "ValidationError",
    "FetchError",
    "RateLimitedError",
    "IngestionCancelled",
]
