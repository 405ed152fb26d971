# tests/test_hot_cache.py
"""
Hot Cache Tests - TTL Entries and the Update Bus

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.adapters.cache (HotCache, Subscription)
"""
import asyncio

import pytest

from cantorx.adapters.cache import HotCache
from cantorx.domain.errors import CacheError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestHotCacheEntries:
    @pytest.mark.asyncio
    async def test_get_set(self):
        cache = HotCache()
        await cache.set("rates:proto1:EUR", b"quote")

        assert await cache.get("rates:proto1:EUR") == b"quote"
        assert await cache.get("rates:proto1:USD") is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = HotCache(ttl_seconds=60, clock=clock)
        await cache.set("rates:proto1:EUR", b"quote")

        clock.now += 59
        assert await cache.get("rates:proto1:EUR") == b"quote"
        clock.now += 1
        assert await cache.get("rates:proto1:EUR") is None

    @pytest.mark.asyncio
    async def test_explicit_ttl(self):
        clock = FakeClock()
        cache = HotCache(ttl_seconds=60, clock=clock)
        await cache.set("k", b"v", ttl=5)

        clock.now += 5
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_last_writer_wins(self):
        cache = HotCache()
        await cache.set("k", b"first")
        await cache.set("k", b"second")

        assert await cache.get("k") == b"second"

    @pytest.mark.asyncio
    async def test_rejects_non_bytes(self):
        with pytest.raises(CacheError):
            await HotCache().set("k", "text")

    @pytest.mark.asyncio
    async def test_scan_matches_glob_and_skips_expired(self):
        clock = FakeClock()
        cache = HotCache(ttl_seconds=60, clock=clock)
        await cache.set("rates:proto1:EUR", b"a", ttl=10)
        await cache.set("rates:proto2:EUR", b"b")
        await cache.set("rates:proto1:USD", b"c")

        assert await cache.scan("rates:proto*:EUR") == {"rates:proto1:EUR": b"a", "rates:proto2:EUR": b"b"}
        clock.now += 10
        assert await cache.scan("rates:proto*:EUR") == {"rates:proto2:EUR": b"b"}

    @pytest.mark.asyncio
    async def test_ping(self):
        await HotCache().ping()


class TestHotCacheBus:
    @pytest.mark.asyncio
    async def test_publish_delivers_in_order(self):
        cache = HotCache()
        subscription = cache.subscribe("rates_updates")

        for i in range(3):
            assert await cache.publish("rates_updates", f"m{i}".encode()) == 1

        assert [await subscription.get() for _ in range(3)] == [b"m0", b"m1", b"m2"]

    @pytest.mark.asyncio
    async def test_only_messages_after_subscription(self):
        cache = HotCache()
        await cache.publish("rates_updates", b"early")
        subscription = cache.subscribe("rates_updates")
        await cache.publish("rates_updates", b"late")

        assert await subscription.get() == b"late"

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        assert await HotCache().publish("rates_updates", b"m") == 0

    @pytest.mark.asyncio
    async def test_topics_are_isolated(self):
        cache = HotCache()
        subscription = cache.subscribe("a")
        await cache.publish("b", b"other")
        await cache.publish("a", b"mine")

        assert await subscription.get() == b"mine"

    @pytest.mark.asyncio
    async def test_slow_subscriber_drops_instead_of_blocking(self):
        cache = HotCache(queue_size=2)
        slow = cache.subscribe("rates_updates")
        fast = cache.subscribe("rates_updates")

        delivered = []
        for i in range(4):
            delivered.append(await cache.publish("rates_updates", f"m{i}".encode()))
            assert await fast.get() == f"m{i}".encode()

        assert delivered == [2, 2, 1, 1]
        assert slow.dropped == 2
        assert [await slow.get(), await slow.get()] == [b"m0", b"m1"]

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self):
        cache = HotCache()
        subscription = cache.subscribe("rates_updates")
        assert cache.subscriber_count("rates_updates") == 1

        subscription.close()
        subscription.close()

        assert subscription.closed
        assert cache.subscriber_count("rates_updates") == 0
        assert await cache.publish("rates_updates", b"m") == 0
        with pytest.raises(CacheError):
            await subscription.get()

    @pytest.mark.asyncio
    async def test_context_manager_and_iteration(self):
        cache = HotCache()
        received = []

        async with cache.subscribe("rates_updates") as subscription:
            await cache.publish("rates_updates", b"m0")
            await cache.publish("rates_updates", b"m1")
            async for payload in subscription:
                received.append(payload)
                if len(received) == 2:
                    break

        assert received == [b"m0", b"m1"]
        assert cache.subscriber_count("rates_updates") == 0

    @pytest.mark.asyncio
    async def test_get_waits_for_publish(self):
        cache = HotCache()
        subscription = cache.subscribe("rates_updates")

        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        assert not waiter.done()
        await cache.publish("rates_updates", b"m")

        assert await asyncio.wait_for(waiter, timeout=1) == b"m"
