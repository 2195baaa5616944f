"""
Cooperative Scheduler

Runs CPU-bound work in bounded chunks and hands control back to the event
loop between chunks, so a long conversion never blocks other tasks for more
than one chunk's worth of work. There is no parallelism: chunks run one at a
time on the loop thread.
"""

import asyncio
from typing import AsyncIterator, Iterable, Optional, TypeVar

from sheetmind.errors.exceptions import IngestionCancelled

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation flag checked between chunks."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise IngestionCancelled(self.reason or "Cancelled by caller")


class CooperativeScheduler:
    """Yields to the event loop between items of a chunk iterable.

    Usage:
        scheduler = CooperativeScheduler(cancel_token=token)
        async for chunk in scheduler.run(chunks):
            rows.extend(chunk)
    """

    def __init__(self, cancel_token: Optional[CancellationToken] = None):
        self.cancel_token = cancel_token
        self.yields = 0

    async def checkpoint(self) -> None:
        """Give other tasks a turn, then honour cancellation."""
        await asyncio.sleep(0)
        self.yields += 1
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    async def run(self, chunks: Iterable[T]) -> AsyncIterator[T]:
        """Iterate `chunks`, producing each one and then yielding control.

        Raises:
            IngestionCancelled: If the token fires before or between chunks
        """
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
        for chunk in chunks:
            yield chunk
            await self.checkpoint()
