# tests/test_stream_service.py
"""
Stream Service Tests - Live Fan-Out, GetAllRates and Replay

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.application.stream_service (StreamService under test)
- cantorx.adapters.cache (HotCache bus)
"""
import asyncio

import pytest

from cantorx.adapters.persistence import StreamLog
from cantorx.adapters.wire.codec import encode_quote
from cantorx.application.stream_service import StreamService
from cantorx.domain.errors import BadRequestError
from cantorx.domain.models import RATES_TOPIC, Quote, cache_key, stream_subject


def _quote(source_id, currency, buy=4.0):
    return Quote(source_id=source_id, currency=currency, buy=buy, sell=buy + 0.05, fetched_at=1_700_000_000)


async def _take(stream, n):
    items = []
    async for quote in stream:
        items.append(quote)
        if len(items) == n:
            break
    return items


class TestStreamRates:
    @pytest.mark.asyncio
    async def test_filtering_per_subscriber(self, cache):
        service = StreamService(cache)
        everything = service.stream_rates([])
        usd_only = service.stream_rates(["usd"])

        all_task = asyncio.create_task(_take(everything, 3))
        usd_task = asyncio.create_task(_take(usd_only, 1))
        await asyncio.sleep(0)
        assert cache.subscriber_count(RATES_TOPIC) == 2

        for quote in (_quote(1, "EUR"), _quote(2, "USD"), _quote(3, "GBP")):
            await cache.publish(RATES_TOPIC, encode_quote(quote))

        got_all = await asyncio.wait_for(all_task, timeout=1)
        got_usd = await asyncio.wait_for(usd_task, timeout=1)
        assert [q.currency for q in got_all] == ["EUR", "USD", "GBP"]
        assert [(q.source_id, q.currency) for q in got_usd] == [(2, "USD")]

        await everything.aclose()
        await usd_only.aclose()
        assert cache.subscriber_count(RATES_TOPIC) == 0

    @pytest.mark.asyncio
    async def test_no_replay_of_earlier_messages(self, cache):
        service = StreamService(cache)
        await cache.publish(RATES_TOPIC, encode_quote(_quote(1, "EUR")))
        stream = service.stream_rates()

        task = asyncio.create_task(_take(stream, 1))
        await asyncio.sleep(0)
        await cache.publish(RATES_TOPIC, encode_quote(_quote(2, "EUR")))

        assert [q.source_id for q in await asyncio.wait_for(task, timeout=1)] == [2]
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_undecodable_messages_are_skipped(self, cache):
        service = StreamService(cache)
        stream = service.stream_rates()

        task = asyncio.create_task(_take(stream, 1))
        await asyncio.sleep(0)
        await cache.publish(RATES_TOPIC, b"\xff\xff\xff")
        await cache.publish(RATES_TOPIC, encode_quote(_quote(5, "CHF")))

        assert [q.source_id for q in await asyncio.wait_for(task, timeout=1)] == [5]
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_cancellation_closes_the_subscription(self, cache):
        service = StreamService(cache)

        async def consume():
            async for _ in service.stream_rates(["EUR"]):
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        assert cache.subscriber_count(RATES_TOPIC) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert cache.subscriber_count(RATES_TOPIC) == 0

    @pytest.mark.asyncio
    async def test_invalid_filter(self, cache):
        stream = StreamService(cache).stream_rates(["EURO"])

        with pytest.raises(BadRequestError):
            await stream.__anext__()
        assert cache.subscriber_count(RATES_TOPIC) == 0


class TestGetAllRates:
    @pytest.mark.asyncio
    async def test_latest_per_source_for_currency(self, cache):
        for quote in (_quote(3, "EUR", 4.3), _quote(1, "EUR", 4.1), _quote(2, "USD", 3.9)):
            await cache.set(cache_key(quote.source_id, quote.currency), encode_quote(quote))

        quotes = await StreamService(cache).get_all_rates("eur")

        assert [(q.source_id, q.buy_rate) for q in quotes] == [(1, "4.100"), (3, "4.300")]

    @pytest.mark.asyncio
    async def test_sources_without_cache_entry_are_omitted(self, cache):
        assert await StreamService(cache).get_all_rates("GBP") == []


class TestReplay:
    @pytest.mark.asyncio
    async def test_replay_from_stream_log(self, cache, tmp_path):
        stream_log = StreamLog(tmp_path)
        stream_log.publish(stream_subject("EUR"), encode_quote(_quote(1, "EUR", 4.1)))
        stream_log.publish(stream_subject("EUR"), encode_quote(_quote(2, "EUR", 4.2)))

        quotes = await StreamService(cache, stream_log).replay("EUR")

        assert [q.source_id for q in quotes] == [1, 2]

    @pytest.mark.asyncio
    async def test_replay_without_stream_log(self, cache):
        assert await StreamService(cache).replay("EUR") == []
