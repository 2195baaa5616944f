"""Unit tests for the cooperative scheduler and cancellation token."""
import pytest

from sheetmind.errors.exceptions import IngestionCancelled
from sheetmind.services.scheduler import CancellationToken, CooperativeScheduler


class TestCancellationToken:
    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_carries_reason(self):
        token = CancellationToken()
        token.cancel("dialog closed")

        with pytest.raises(IngestionCancelled, match="dialog closed"):
            token.raise_if_cancelled()


class TestCooperativeScheduler:
    @pytest.mark.asyncio
    async def test_yields_after_every_chunk(self):
        scheduler = CooperativeScheduler()
        seen = [chunk async for chunk in scheduler.run([[1], [2], [3]])]

        assert seen == [[1], [2], [3]]
        assert scheduler.yields == 3

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()
        seen = []

        with pytest.raises(IngestionCancelled):
            async for chunk in CooperativeScheduler(token).run([[1], [2]]):
                seen.append(chunk)

        assert seen == []

    @pytest.mark.asyncio
    async def test_cancelled_between_chunks(self):
        token = CancellationToken()
        seen = []

        with pytest.raises(IngestionCancelled):
            async for chunk in CooperativeScheduler(token).run([[1], [2], [3]]):
                seen.append(chunk)
                if len(seen) == 2:
                    token.cancel()

        assert seen == [[1], [2]]

    @pytest.mark.asyncio
    async def test_chunks_generated_lazily(self):
        produced = []

        def chunks():
            for i in range(3):
                produced.append(i)
                yield [i]

        async for chunk in CooperativeScheduler().run(chunks()):
            assert produced[-1] == chunk[0]
