# src/cantorx/application/rates_service.py
"""
Rates Service - On-Demand Quote Retrieval

Serves GetRate(source_id, currency): the hot cache answers first; on a miss
the source page is scraped once for all concurrent callers of the same key,
the quote is cached, and the history append happens in the background.

Files that USE this module:
- cantorx.adapters.web.api (/rates endpoint)
- cantorx.app (wires the service)
- tests.test_rates_service (unit tests)

Files that this module USES:
- cantorx.adapters.cache (HotCache get/set)
- cantorx.adapters.crawlers.registry (scrape by strategy tag)
- cantorx.adapters.persistence (SourceDirectory, HistoryStore)
- cantorx.adapters.wire.codec (protobuf encoding)
- cantorx.application.normalizer (RawQuote -> Quote)
- cantorx.shared.singleflight (one scrape per key)
"""
from __future__ import annotations  # Enable postponed evaluation of annotations

import asyncio  # Async tasks, timeouts and thread offloading
import logging  # Standard library for logging messages
from typing import Optional, Set  # Type hints

from cantorx.adapters.cache import HotCache  # TTL cache of serialized quotes
from cantorx.adapters.crawlers.registry import ScraperRegistry  # Strategy tag -> parser
from cantorx.adapters.persistence import HistoryStore, SourceDirectory  # Durable store
from cantorx.adapters.wire.codec import decode_quote, encode_quote  # Protobuf codec
from cantorx.application.normalizer import to_quote  # RawQuote -> Quote
from cantorx.domain.errors import CantorXError, SerializationError, UpstreamHTTPError
from cantorx.domain.models import Quote, cache_key, change_percent
from cantorx.shared.singleflight import SingleFlight  # Collapse concurrent misses

log = logging.getLogger(__name__)  # Create logger for this module

DAY_SECONDS = 24 * 3600


class RatesService:
    """Cache-first quote lookup with single-flight scraping on a miss."""

    def __init__(
        self,
        directory: SourceDirectory,
        registry: ScraperRegistry,
        history: HistoryStore,
        cache: HotCache,
        singleflight: Optional[SingleFlight] = None,
        *,
        scrape_timeout: float = 15.0,
        lookup_timeout: float = 2.0,
        archive_timeout: float = 5.0,
    ):
        self.directory = directory
        self.registry = registry
        self.history = history
        self.cache = cache
        self.singleflight = singleflight or SingleFlight()
        self.scrape_timeout = scrape_timeout
        self.lookup_timeout = lookup_timeout
        self.archive_timeout = archive_timeout
        self._background: Set[asyncio.Task] = set()

    async def get_rate(self, source_id: int, currency: str) -> Quote:
        """
        Latest quote of one source for one currency.

        Args:
            source_id: Id of the cantor
            currency: Uppercase currency code

        Returns:
            Quote from the cache, or freshly scraped

        Raises:
            SourceNotFoundError: Unknown source id
            UpstreamHTTPError: Page could not be fetched in time
            UpstreamParseError: Page or rates could not be parsed
            CurrencyUnavailableError: Page does not list the currency
        """
        currency = currency.upper()
        key = cache_key(source_id, currency)
        cached = await self._cached(key)
        if cached is not None:
            return cached
        return await self.singleflight.do(key, lambda: self._fetch(key, source_id, currency))

    async def _cached(self, key: str) -> Optional[Quote]:
        payload = await self.cache.get(key)
        if payload is None:
            return None
        try:
            return decode_quote(payload)
        except SerializationError:
            log.warning("Dropping undecodable cache entry %s", key)
            await self.cache.delete(key)
            return None

    async def _fetch(self, key: str, source_id: int, currency: str) -> Quote:
        # A flight that finished just before this one may have filled the cache
        cached = await self._cached(key)
        if cached is not None:
            return cached

        source = await asyncio.to_thread(self.directory.get, source_id)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self.registry.scrape, source.strategy, source.base_url, currency),
                timeout=self.scrape_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamHTTPError("rate page timed out") from None

        quote = to_quote(source.id, currency, raw, source.units)
        quote = quote.with_change(await self._change_24h(quote))

        await self.cache.set(key, encode_quote(quote))
        self._archive_later(quote)
        log.debug("Scraped %s %s on demand: buy=%s sell=%s", source.name, currency, quote.buy_rate, quote.sell_rate)
        return quote

    async def _change_24h(self, quote: Quote) -> Optional[float]:
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

    def _archive_later(self, quote: Quote) -> None:
        task = asyncio.create_task(self._archive(quote))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _archive(self, quote: Quote) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.history.append, quote.source_id, quote.currency, quote.buy, quote.sell, quote.fetched_at
                ),
                timeout=self.archive_timeout,
            )
        except (asyncio.TimeoutError, CantorXError) as e:
            log.warning("Couldn't archive on-demand quote %d/%s: %r", quote.source_id, quote.currency, e)

    async def drain(self) -> None:
        """Wait for pending background archive writes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
