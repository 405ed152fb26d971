# tests/test_harvester.py
"""
Harvester Tests - Cycles over Source x Currency

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.application.harvester (Harvester under test)
- cantorx.application.stats (HarvestStats)
- unittest.mock (Mock for parser mocking)
"""
import asyncio
import time

import pytest

from unittest.mock import Mock

from cantorx.adapters.crawlers.registry import ScraperRegistry
from cantorx.adapters.persistence import StreamLog
from cantorx.adapters.wire.codec import decode_quote
from cantorx.application.harvester import Harvester
from cantorx.application.stats import HarvestStats
from cantorx.domain.errors import CurrencyUnavailableError
from cantorx.domain.models import RATES_TOPIC, RawQuote, cache_key


def _parser(rates):
    """Mock parser answering from a {currency: (buy, sell)} table."""
    def parse(url, currency):
        if currency not in rates:
            raise CurrencyUnavailableError(currency)
        buy, sell = rates[currency]
        return RawQuote(buy=buy, sell=sell)
    return Mock(side_effect=parse)


def _hanging(url, currency):
    time.sleep(0.3)
    return RawQuote(buy="1.000", sell="1.100")


@pytest.fixture
def registry():
    reg = ScraperRegistry()
    reg.register("C1", _parser({"EUR": ("4,30", "4,35"), "USD": ("3,95", "4,01")}))
    reg.register("C5", Mock(side_effect=_hanging))
    reg.register("C7", _parser({"EUR": ("4.31", "4.36"), "USD": ("3.96", "4.02")}))
    return reg


@pytest.fixture
def stats():
    return HarvestStats(threshold_seconds=0.2, window=10)


def _harvester(registry, directory, history, cache, stats, stream_log=None, **overrides):
    options = dict(
        currencies=("EUR", "USD"),
        politeness_delay=0.0,
        scrape_timeout=0.1,
        max_parallel_sources=3,
    )
    options.update(overrides)
    return Harvester(registry, directory, history, cache, stream_log, stats, **options)


def _ids(directory):
    return {s.name: s.id for s in directory.list()}


class TestHarvestCycle:
    @pytest.mark.asyncio
    async def test_failing_source_does_not_stop_the_cycle(self, registry, directory, history, cache, stats):
        harvester = _harvester(registry, directory, history, cache, stats)
        ids = _ids(directory)

        cycle = await harvester.run_cycle()

        assert cycle.attempted == 6
        assert cycle.succeeded == 4
        assert cycle.failed == 2
        for name in ("kantor_centrum", "kantor_rynek"):
            for currency in ("EUR", "USD"):
                assert await cache.get(cache_key(ids[name], currency)) is not None
        assert await cache.get(cache_key(ids["kantor_dworzec"], "EUR")) is None

        now = int(time.time()) + 1
        assert history.latest_before(ids["kantor_centrum"], "EUR", now) == pytest.approx(4.30)
        assert history.latest_before(ids["kantor_rynek"], "USD", now) == pytest.approx(3.96)
        assert history.latest_before(ids["kantor_dworzec"], "EUR", now) is None

    @pytest.mark.asyncio
    async def test_publishes_every_harvested_quote(self, registry, directory, history, cache, stats):
        harvester = _harvester(registry, directory, history, cache, stats)
        subscription = cache.subscribe(RATES_TOPIC)

        await harvester.run_cycle()

        received = [decode_quote(await asyncio.wait_for(subscription.get(), timeout=1)) for _ in range(4)]
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.get(), timeout=0.05)
        assert {q.currency for q in received} == {"EUR", "USD"}

    @pytest.mark.asyncio
    async def test_cache_is_set_before_publish(self, registry, directory, history, cache, stats):
        harvester = _harvester(registry, directory, history, cache, stats)
        subscription = cache.subscribe(RATES_TOPIC)
        seen_in_cache = []

        async def consume():
            async for payload in subscription:
                quote = decode_quote(payload)
                seen_in_cache.append(await cache.get(cache_key(quote.source_id, quote.currency)) == payload)

        consumer = asyncio.create_task(consume())
        await harvester.run_cycle()
        await asyncio.sleep(0)
        consumer.cancel()
        subscription.close()

        assert seen_in_cache and all(seen_in_cache)

    @pytest.mark.asyncio
    async def test_currency_missing_is_a_skip(self, directory, history, cache, stats):
        registry = ScraperRegistry()
        registry.register("C1", _parser({"EUR": ("4,30", "4,35")}))
        registry.register("C5", _parser({}))
        registry.register("C7", _parser({}))
        harvester = _harvester(registry, directory, history, cache, stats)

        cycle = await harvester.run_cycle()

        assert cycle.succeeded == 1
        assert cycle.failed == 5

    @pytest.mark.asyncio
    async def test_unregistered_strategy_is_a_skip(self, directory, history, cache, stats):
        registry = ScraperRegistry()
        registry.register("C1", _parser({"EUR": ("4,30", "4,35"), "USD": ("3,95", "4,01")}))
        harvester = _harvester(registry, directory, history, cache, stats)

        cycle = await harvester.run_cycle()

        assert cycle.succeeded == 2

    @pytest.mark.asyncio
    async def test_change_24h_attached(self, registry, directory, history, cache, stats):
        ids = _ids(directory)
        history.append(ids["kantor_centrum"], "EUR", 4.00, 4.05, time=int(time.time()) - 25 * 3600)
        harvester = _harvester(registry, directory, history, cache, stats)

        await harvester.run_cycle()

        quote = decode_quote(await cache.get(cache_key(ids["kantor_centrum"], "EUR")))
        assert quote.change_24h == pytest.approx(7.5)

    @pytest.mark.asyncio
    async def test_steps_within_a_source_are_serial_with_politeness_delay(self, directory, history, cache, stats):
        calls = []

        def record(url, currency):
            calls.append((url, currency, time.monotonic()))
            return RawQuote(buy="4.30", sell="4.35")

        registry = ScraperRegistry()
        registry.register("C1", record)
        harvester = _harvester(
            registry, directory, history, cache, stats,
            currencies=("EUR", "USD", "GBP"), politeness_delay=0.05,
        )

        await harvester.run_cycle()

        own = [t for url, _, t in calls if url == "https://centrum.example/kursy"]
        assert [c for url, c, _ in calls if url == "https://centrum.example/kursy"] == ["EUR", "USD", "GBP"]
        assert all(b - a >= 0.04 for a, b in zip(own, own[1:]))

    @pytest.mark.asyncio
    async def test_persistent_stream_publish(self, registry, directory, history, cache, stats, tmp_path):
        stream_log = StreamLog(tmp_path)
        harvester = _harvester(registry, directory, history, cache, stats, stream_log=stream_log)

        await harvester.run_cycle()

        eur = [decode_quote(p) for p in stream_log.replay("rates.EUR")]
        assert sorted(q.buy_rate for q in eur) == ["4.300", "4.310"]

    @pytest.mark.asyncio
    async def test_old_history_is_pruned(self, registry, directory, history, cache, stats):
        ids = _ids(directory)
        old = int(time.time()) - 40 * 24 * 3600
        history.append(ids["kantor_centrum"], "EUR", 4.00, 4.05, time=old)
        harvester = _harvester(registry, directory, history, cache, stats, history_retention_days=30)

        await harvester.run_cycle()

        assert history.latest_before(ids["kantor_centrum"], "EUR", old + 1) is None


class TestHarvestTelemetry:
    @pytest.mark.asyncio
    async def test_counts_and_last_cycle(self, registry, directory, history, cache, stats):
        await _harvester(registry, directory, history, cache, stats).run_cycle()

        snapshot = stats.snapshot()
        assert snapshot["total_scrapes"] == 6
        assert snapshot["successful_scrapes"] == 4
        assert snapshot["failed_scrapes"] == 2
        assert snapshot["cycles_completed"] == 1
        assert snapshot["last_cycle"]["attempted"] == 6

    @pytest.mark.asyncio
    async def test_slow_steps_enter_expensive_window(self, directory, history, cache):
        stats = HarvestStats(threshold_seconds=0.05, window=3)
        registry = ScraperRegistry()
        registry.register("C1", _parser({"EUR": ("4,30", "4,35")}))
        registry.register("C5", Mock(side_effect=_hanging))
        registry.register("C7", _parser({}))
        harvester = _harvester(
            registry, directory, history, cache, stats,
            currencies=("EUR", "USD", "GBP", "CHF", "SEK"),
        )

        await harvester.run_cycle()

        expensive = stats.expensive_tasks()
        assert len(expensive) == 3
        assert all(t.source_name == "kantor_dworzec" for t in expensive)
        assert all(not t.succeeded for t in expensive)
        assert all(t.duration_seconds > 0.05 for t in expensive)


class TestHarvestStats:
    def test_window_drops_oldest(self):
        stats = HarvestStats(threshold_seconds=2.0, window=10)
        for i in range(12):
            stats.record_task(f"src{i}", "EUR", 3.0, True)
        stats.record_task("fast", "EUR", 0.5, True)

        names = [t.source_name for t in stats.expensive_tasks()]
        assert names == [f"src{i}" for i in range(2, 12)]
        assert stats.snapshot()["total_scrapes"] == 13


class TestRunForever:
    @pytest.mark.asyncio
    async def test_runs_immediately_and_survives_crashing_cycles(self, registry, directory, history, cache, stats):
        harvester = _harvester(registry, directory, history, cache, stats, interval_seconds=0.01)
        calls = 0

        async def crashing_cycle():
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        harvester.run_cycle = crashing_cycle
        task = asyncio.create_task(harvester.run_forever())
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls >= 2
