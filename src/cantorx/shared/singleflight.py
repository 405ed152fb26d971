"""
Single-flight - Collapse Concurrent Identical Calls

Concurrent callers asking for the same key share one in-flight task; the
first caller starts it, everyone else awaits the same result or exception.
The slot is released once the task finishes, so the next call after
completion starts a fresh task.

Files that USE this module:
- cantorx.application.rates_service (one scrape per cache key on a miss)

Files that this module USES:
- None (pure asyncio utility)
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict


class SingleFlight:
    """Keyed map of in-flight tasks."""

    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run ``fn`` once for all concurrent callers of ``key``.

        A caller that gets cancelled stops waiting but does not cancel the
        shared task; the remaining waiters still receive its result.

        Args:
            key: Identity of the call
            fn: Zero-argument coroutine factory, only invoked by the first caller

        Returns:
            Whatever ``fn`` returned
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception as retrieved when every waiter went away
        if not task.cancelled():
            task.exception()
