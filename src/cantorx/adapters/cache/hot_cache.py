# src/cantorx/adapters/cache/hot_cache.py
"""
Hot Cache - TTL Key-Value Store and Publish Bus

In-process replacement for a cache server: a TTL map of serialized quotes
keyed ``rates:proto<source_id>:<CCY>``, plus a topic bus. Every subscriber
owns a bounded queue; when a slow subscriber's queue is full, new messages
for it are dropped and counted instead of blocking the publisher.

Entries expire after ``ttl_seconds`` of wall-clock age and are purged
lazily on read and scan.

Files that USE this module:
- cantorx.application.harvester (set + publish after every harvested quote)
- cantorx.application.rates_service (get/set on the read path)
- cantorx.application.stream_service (subscribe to updates, scan for GetAllRates)
- cantorx.application.health (ping)

Files that this module USES:
- cantorx.domain.errors (CacheError)
"""
from __future__ import annotations

import asyncio
import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set

from cantorx.domain.errors import CacheError

log = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60
DEFAULT_QUEUE_SIZE = 256


@dataclass
class _CacheEntry:
    value: bytes
    written_at: float
    expires_at: float


class Subscription:
    """One subscriber's view of a topic; iterate it to receive messages."""

    def __init__(self, cache: "HotCache", topic: str, queue_size: int):
        self.topic = topic
        self.dropped = 0
        self._cache = cache
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, payload: bytes) -> bool:
        try:
            self._queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            log.debug("Subscriber queue full on %s, dropped message (%d so far)", self.topic, self.dropped)
            return False

    async def get(self) -> bytes:
        """Next message, in publication order."""
        if self._closed:
            raise CacheError("subscription closed")
        return await self._queue.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        return await self.get()

    def close(self) -> None:
        """Stop receiving; safe to call more than once."""
        if not self._closed:
            self._closed = True
            self._cache._unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class HotCache:
    """TTL map of bytes plus a fire-and-forget publish bus."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.queue_size = queue_size
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._subscribers: Dict[str, Set[Subscription]] = {}

    # Key-value --------------------------------------------------
    async def get(self, key: str) -> Optional[bytes]:
        """Value for ``key``, or None on a miss or expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default: cache TTL)."""
        if not isinstance(value, (bytes, bytearray)):
            raise CacheError("cache values must be bytes")
        now = self._clock()
        self._entries[key] = _CacheEntry(
            value=bytes(value),
            written_at=now,
            expires_at=now + (self.ttl_seconds if ttl is None else ttl),
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def scan(self, pattern: str) -> Dict[str, bytes]:
        """Live entries whose key matches the glob ``pattern``."""
        self.purge_expired()
        return {
            key: entry.value
            for key, entry in self._entries.items()
            if fnmatch.fnmatchcase(key, pattern)
        }

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def ping(self) -> None:
        """Health probe; the in-process cache is always reachable while the loop runs."""
        asyncio.get_running_loop()

    # Bus --------------------------------------------------------
    async def publish(self, topic: str, payload: bytes) -> int:
        """
        Deliver ``payload`` to every current subscriber of ``topic``.

        Returns:
            Number of subscribers that accepted the message
        """
        subscribers = list(self._subscribers.get(topic, ()))
        return sum(1 for sub in subscribers if sub._offer(payload))

    def subscribe(self, topic: str) -> Subscription:
        """Subscribe to messages published on ``topic`` from now on."""
        subscription = Subscription(self, topic, self.queue_size)
        self._subscribers.setdefault(topic, set()).add(subscription)
        log.debug("New subscriber on %s (%d total)", topic, self.subscriber_count(topic))
        return subscription

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.topic)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.topic]
