# src/cantorx/adapters/crawlers/registry.py
"""
Scraper Registry

Maps strategy tags (``C1`` .. ``C10``) to crawler callables that accept
``(base_url, currency)`` and return a RawQuote. Registration happens once at
startup; lookups happen on every scrape.

Files that USE this module:
- cantorx.application.harvester (scrapes every source x currency)
- cantorx.application.rates_service (scrapes on cache miss)
- cantorx.app (builds the default registry)

Files that this module USES:
- cantorx.adapters.crawlers.* (built-in crawler classes)
- cantorx.domain.errors (StrategyNotRegisteredError)
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from cantorx.adapters.crawlers.base import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from cantorx.adapters.crawlers.block_crawlers import DiviColumnCrawler, OfferItemCrawler
from cantorx.adapters.crawlers.generic_crawler import GenericRowCrawler
from cantorx.adapters.crawlers.table_crawlers import (
    FloatingSymbolCrawler,
    KursyWalutCrawler,
    MceTableCrawler,
    SymbolColumnCrawler,
)
from cantorx.domain.errors import StrategyNotRegisteredError
from cantorx.domain.models import RawQuote

log = logging.getLogger(__name__)

Parser = Callable[[str, str], RawQuote]


class ScraperRegistry:
    """Name -> parser mapping."""

    def __init__(self):
        self._parsers: Dict[str, Parser] = {}

    def register(self, name: str, parser: Parser) -> None:
        """
        Register ``parser`` under strategy tag ``name``.

        Re-registering a tag replaces the previous parser.
        """
        tag = name.strip().upper()
        if tag in self._parsers:
            log.warning("Replacing parser registered for strategy %s", tag)
        self._parsers[tag] = parser

    def lookup(self, name: str) -> Parser:
        """
        Find the parser for a strategy tag.

        Raises:
            StrategyNotRegisteredError: If no parser is registered under ``name``
        """
        parser = self._parsers.get(name.strip().upper())
        if parser is None:
            raise StrategyNotRegisteredError(f"unknown scrape strategy: {name}")
        return parser

    def names(self) -> list[str]:
        return sorted(self._parsers, key=lambda t: (len(t), t))

    def __contains__(self, name: str) -> bool:
        return name.strip().upper() in self._parsers

    def scrape(self, name: str, url: str, currency: str) -> RawQuote:
        """Look up ``name`` and run it against ``url`` for ``currency``."""
        return self.lookup(name)(url, currency)


def default_registry(
    timeout: int = DEFAULT_TIMEOUT,
    user_agent: Optional[str] = None,
) -> ScraperRegistry:
    """
    Build a registry with the ten built-in strategies.

    Args:
        timeout: Per-request HTTP timeout in seconds
        user_agent: Browser-like User-Agent; defaults to a desktop Chrome string
    """
    ua = user_agent or DEFAULT_USER_AGENT
    registry = ScraperRegistry()
    registry.register("C1", KursyWalutCrawler(timeout=timeout, user_agent=ua))
    registry.register("C2", OfferItemCrawler(timeout=timeout, user_agent=ua))
    registry.register("C3", MceTableCrawler(timeout=timeout, user_agent=ua))
    registry.register("C4", DiviColumnCrawler(timeout=timeout, user_agent=ua))
    registry.register("C5", SymbolColumnCrawler(timeout=timeout, user_agent=ua))
    registry.register("C6", FloatingSymbolCrawler(timeout=timeout, user_agent=ua))
    generic = GenericRowCrawler(timeout=timeout, user_agent=ua)
    for tag in ("C7", "C8", "C9", "C10"):
        registry.register(tag, generic)
    return registry
