# src/cantorx/application/stream_service.py
"""
Stream Service - Live Quote Fan-Out

StreamRates forwards every quote published on the ``rates_updates`` bus to
one subscriber, filtered by a currency set (empty set means all). There is
no replay of prior state on connect; ReplayRates serves the persistent
per-currency stream for consumers that were offline.

Files that USE this module:
- cantorx.adapters.web.rpc (StreamRates, GetAllRates, ReplayRates)

Files that this module USES:
- cantorx.adapters.cache (subscribe to the bus, scan cached quotes)
- cantorx.adapters.persistence.stream_log (replay)
- cantorx.adapters.wire.codec (protobuf decoding)
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Iterable, Optional

from cantorx.adapters.cache import HotCache
from cantorx.adapters.persistence import StreamLog
from cantorx.adapters.wire.codec import decode_quote
from cantorx.domain.errors import SerializationError
from cantorx.domain.models import CACHE_KEY_PREFIX, RATES_TOPIC, Quote, stream_subject
from cantorx.shared.validators import validate_currency_list

log = logging.getLogger(__name__)


class StreamService:
    def __init__(self, cache: HotCache, stream_log: Optional[StreamLog] = None):
        self.cache = cache
        self.stream_log = stream_log

    async def stream_rates(self, currencies: Iterable[str] = ()) -> AsyncIterator[Quote]:
        """
        Yield live quotes in publication order.

        The subscription is taken before the first ``yield`` and closed when
        the consumer stops iterating or is cancelled.

        Args:
            currencies: Currency filter; empty means every currency
        """
        wanted = validate_currency_list(currencies)
        subscription = self.cache.subscribe(RATES_TOPIC)
        log.info("Stream subscriber connected (filter=%s)", ",".join(sorted(wanted)) or "*")
        try:
            async for payload in subscription:
                try:
                    quote = decode_quote(payload)
                except SerializationError as e:
                    log.warning("Skipping undecodable bus message: %s", e)
                    continue
                if wanted and quote.currency not in wanted:
                    continue
                yield quote
        finally:
            subscription.close()
            log.info("Stream subscriber disconnected (dropped=%d)", subscription.dropped)

    async def get_all_rates(self, currency: str) -> list[Quote]:
        """Latest cached quote of every source for ``currency``, ordered by source id."""
        entries = await self.cache.scan(f"{CACHE_KEY_PREFIX}*:{currency.upper()}")
        quotes = []
        for key, payload in entries.items():
            try:
                quotes.append(decode_quote(payload))
            except SerializationError:
                log.warning("Skipping undecodable cache entry %s", key)
        return sorted(quotes, key=lambda q: q.source_id)

    async def replay(self, currency: str, since: Optional[int] = None) -> list[Quote]:
        """
        Quotes retained in the persistent stream for ``currency``.

        Returns:
            Quotes published after ``since`` (or the whole retention window),
            oldest first; empty when no persistent stream is configured
        """
        if self.stream_log is None:
            return []
        payloads = await asyncio.to_thread(self.stream_log.replay, stream_subject(currency), float(since or 0))
        quotes = []
        for payload in payloads:
            try:
                quotes.append(decode_quote(payload))
            except SerializationError:
                log.warning("Skipping undecodable stream entry for %s", currency)
        return quotes
