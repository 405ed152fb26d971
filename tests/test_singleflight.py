# tests/test_singleflight.py
"""
Single-flight Tests

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.shared.singleflight (SingleFlight)
"""
import asyncio

import pytest

from cantorx.shared.singleflight import SingleFlight


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self):
        flight = SingleFlight()
        calls = 0
        release = asyncio.Event()

        async def work():
            nonlocal calls
            calls += 1
            await release.wait()
            return "result"

        waiters = [asyncio.create_task(flight.do("k", work)) for _ in range(20)]
        await asyncio.sleep(0)
        assert flight.in_flight("k")
        release.set()

        assert await asyncio.gather(*waiters) == ["result"] * 20
        assert calls == 1
        assert len(flight) == 0

    @pytest.mark.asyncio
    async def test_errors_reach_every_waiter(self):
        flight = SingleFlight()

        async def work():
            await asyncio.sleep(0)
            raise ValueError("boom")

        results = await asyncio.gather(*(flight.do("k", work) for _ in range(3)), return_exceptions=True)

        assert all(isinstance(r, ValueError) for r in results)
        assert not flight.in_flight("k")

    @pytest.mark.asyncio
    async def test_next_call_after_completion_runs_again(self):
        flight = SingleFlight()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            return calls

        assert await flight.do("k", work) == 1
        assert await flight.do("k", work) == 2

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        flight = SingleFlight()

        async def work(value):
            await asyncio.sleep(0)
            return value

        assert await asyncio.gather(flight.do("a", lambda: work("A")), flight.do("b", lambda: work("B"))) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_call(self):
        flight = SingleFlight()
        release = asyncio.Event()

        async def work():
            await release.wait()
            return "done"

        first = asyncio.create_task(flight.do("k", work))
        second = asyncio.create_task(flight.do("k", work))
        await asyncio.sleep(0)
        first.cancel()
        await asyncio.sleep(0)
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first
