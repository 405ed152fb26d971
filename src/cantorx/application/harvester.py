# src/cantorx/application/harvester.py
"""
Harvester - Periodic Scrape, Archive and Publish Driver

Runs one full cycle right after startup and then one every
``interval_seconds``. A cycle attempts every (source, currency) pair:

    scrape -> normalize -> archive -> cache -> bus -> persistent stream

Steps of one source run one after another with a politeness delay before
each request; sources run in parallel, bounded by ``max_parallel_sources``.
Every step is independent: failures are logged and counted, never raised.

Files that USE this module:
- cantorx.app (starts run_forever as a background task)

Files that this module USES:
- cantorx.adapters.crawlers.registry (scrape by strategy tag)
- cantorx.application.normalizer (RawQuote -> Quote)
- cantorx.adapters.persistence (SourceDirectory, HistoryStore, StreamLog)
- cantorx.adapters.cache (HotCache set + publish)
- cantorx.adapters.wire.codec (protobuf encoding)
- cantorx.application.stats (expensive-tasks window and counters)
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from cantorx.adapters.cache import HotCache
from cantorx.adapters.crawlers.registry import ScraperRegistry
from cantorx.adapters.persistence import HistoryStore, SourceDirectory, StreamLog
from cantorx.adapters.wire.codec import encode_quote
from cantorx.application.normalizer import to_quote
from cantorx.application.stats import CycleStats, HarvestStats, stats_tracker
from cantorx.domain.errors import CantorXError, UpstreamHTTPError
from cantorx.domain.models import (
    DEFAULT_CURRENCIES,
    RATES_TOPIC,
    Quote,
    Source,
    cache_key,
    change_percent,
    stream_subject,
)

log = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600


class Harvester:
    """Periodic driver over Source x Currency."""

    def __init__(
        self,
        registry: ScraperRegistry,
        directory: SourceDirectory,
        history: HistoryStore,
        cache: HotCache,
        stream_log: Optional[StreamLog] = None,
        stats: Optional[HarvestStats] = None,
        *,
        currencies: Iterable[str] = DEFAULT_CURRENCIES,
        interval_seconds: float = 15 * 60,
        politeness_delay: float = 0.5,
        max_parallel_sources: int = 4,
        scrape_timeout: float = 15.0,
        lookup_timeout: float = 2.0,
        archive_timeout: float = 5.0,
        history_retention_days: int = 30,
    ):
        self.registry = registry
        self.directory = directory
        self.history = history
        self.cache = cache
        self.stream_log = stream_log
        self.stats = stats if stats is not None else stats_tracker
        self.currencies = tuple(c.upper() for c in currencies)
        self.interval_seconds = interval_seconds
        self.politeness_delay = politeness_delay
        self.max_parallel_sources = max_parallel_sources
        self.scrape_timeout = scrape_timeout
        self.lookup_timeout = lookup_timeout
        self.archive_timeout = archive_timeout
        self.history_retention_days = history_retention_days

    async def run_forever(self) -> None:
        """Run cycles until cancelled; a failing cycle never stops the loop."""
        log.info(
            "Harvester started: %d currencies every %.0fs",
            len(self.currencies), self.interval_seconds,
        )
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Harvest cycle crashed")
            await asyncio.sleep(self.interval_seconds)

    async def run_cycle(self) -> CycleStats:
        """
        Attempt every (source, currency) pair once.

        Returns:
            CycleStats with attempted/succeeded/failed counts
        """
        started = time.monotonic()
        cycle = CycleStats(started_at=datetime.now(timezone.utc).isoformat())

        await asyncio.to_thread(self.directory.refresh)
        sources = self.directory.list()
        semaphore = asyncio.Semaphore(self.max_parallel_sources)

        async def harvest_bounded(source: Source) -> list[bool]:
            async with semaphore:
                return await self._harvest_source(source)

        results = await asyncio.gather(*(harvest_bounded(s) for s in sources))
        for outcomes in results:
            cycle.attempted += len(outcomes)
            cycle.succeeded += sum(outcomes)
        cycle.failed = cycle.attempted - cycle.succeeded

        await self._prune_history()

        cycle.elapsed_seconds = round(time.monotonic() - started, 3)
        cycle.finished_at = datetime.now(timezone.utc).isoformat()
        self.stats.record_cycle(cycle)
        log.info(
            "Harvest cycle done: attempted=%d succeeded=%d failed=%d elapsed=%.1fs",
            cycle.attempted, cycle.succeeded, cycle.failed, cycle.elapsed_seconds,
        )
        return cycle

    async def _harvest_source(self, source: Source) -> list[bool]:
        outcomes = []
        for currency in self.currencies:
            await asyncio.sleep(self.politeness_delay)
            outcomes.append(await self.harvest_step(source, currency))
        return outcomes

    async def harvest_step(self, source: Source, currency: str) -> bool:
        """
        Scrape, archive and publish one (source, currency) pair.

        Returns:
            True if the quote was archived and cached
        """
        started = time.monotonic()
        succeeded = False
        try:
            # zero or negative rates are rejected by the normalizer
            quote = await self._scrape(source, currency)
            quote = quote.with_change(await self._change_24h(quote))
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.history.append, quote.source_id, quote.currency, quote.buy, quote.sell, quote.fetched_at
                ),
                timeout=self.archive_timeout,
            )
            payload = encode_quote(quote)
            await self.cache.set(cache_key(quote.source_id, quote.currency), payload)
            await self.cache.publish(RATES_TOPIC, payload)
            succeeded = True
            log.debug("Harvested %s %s: buy=%s sell=%s", source.name, currency, quote.buy_rate, quote.sell_rate)
            await self._publish_stream(quote, payload)
            return True
        except asyncio.TimeoutError:
            log.warning("Harvest step timed out: %s (id=%d) %s", source.name, source.id, currency)
            return False
        except CantorXError as e:
            log.warning("Harvest step failed: %s (id=%d) %s: %s", source.name, source.id, currency, e)
            return False
        except Exception as e:
            log.warning(
                "Harvest step failed unexpectedly: %s (id=%d) %s: %s",
                source.name, source.id, currency, e, exc_info=True,
            )
            return False
        finally:
            self.stats.record_task(source.name, currency, time.monotonic() - started, succeeded)

    async def _scrape(self, source: Source, currency: str) -> Quote:
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self.registry.scrape, source.strategy, source.base_url, currency),
                timeout=self.scrape_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamHTTPError("rate page timed out") from None
        return to_quote(source.id, currency, raw, source.units)

    async def _change_24h(self, quote: Quote) -> Optional[float]:
        """Percent change against the last archived buy rate at least a day old; None when unknown."""
        try:
            previous = await asyncio.wait_for(
                asyncio.to_thread(
                    self.history.latest_before, quote.source_id, quote.currency, quote.fetched_at - DAY_SECONDS
                ),
                timeout=self.lookup_timeout,
            )
        except (asyncio.TimeoutError, CantorXError) as e:
            log.debug("24h lookup unavailable for %d/%s: %r", quote.source_id, quote.currency, e)
            return None
        return change_percent(quote.buy, previous)

    async def _publish_stream(self, quote: Quote, payload: bytes) -> None:
        if self.stream_log is None:
            return
        try:
            await asyncio.to_thread(self.stream_log.publish, stream_subject(quote.currency), payload)
        except OSError as e:
            log.warning("Persistent stream publish failed for %s: %s", quote.currency, e)

    async def _prune_history(self) -> None:
        cutoff = int(time.time()) - self.history_retention_days * DAY_SECONDS
        try:
            await asyncio.to_thread(self.history.prune, cutoff)
        except CantorXError as e:
            log.warning("History retention prune failed: %s", e)
