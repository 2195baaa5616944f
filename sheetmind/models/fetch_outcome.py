"""
Fetch Outcome Models

Tagged results returned by every fetcher and by the strategy selector.
A failure carries a classified kind so fallback logic is an explicit state
machine instead of string matching on error messages.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classified fetch failure."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    PRIVATE = "private"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    INVALID_URL = "invalid_url"
    NETWORK_ERROR = "network_error"
    INVALID_CONTENT = "invalid_content"

    @property
    def recoverable(self) -> bool:
        """Whether re-auth, back-off or another strategy can still succeed."""
        return self not in (FailureKind.NOT_FOUND, FailureKind.INVALID_URL)


@dataclass(frozen=True)
class FetchSuccess(Generic[T]):
    """Successful fetch. `strategy` names the path that produced the value."""

    value: T
    strategy: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    """Classified fetch failure with a user-facing message."""

    kind: FailureKind
    message: str
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[FetchSuccess[T], FetchFailure]
