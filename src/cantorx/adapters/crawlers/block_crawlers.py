# src/cantorx/adapters/crawlers/block_crawlers.py
"""
Block Crawlers

Crawlers for cantor pages that lay rates out as cards or page-builder
columns instead of tables. The currency block is found by text search and
the rates are read from well-known class names inside it.

Files that USE this module:
- cantorx.adapters.crawlers.registry (registers C2 and C4)

Files that this module USES:
- cantorx.adapters.crawlers.base (BaseCrawler, cell_text)
"""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup

from cantorx.adapters.crawlers.base import BaseCrawler, cell_text
from cantorx.domain.models import RawQuote

log = logging.getLogger(__name__)


class OfferItemCrawler(BaseCrawler):
    """Strategy C2: ``.offerItem`` cards with dedicated buy/sell elements."""

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for item in soup.select(".offerItem"):
            if currency not in cell_text(item).upper():
                continue
            buy = cell_text(item.select_one(".offerItem__exchangeBuy"))
            sell = cell_text(item.select_one(".offerItem__exchangeSell"))
            if buy and sell:
                log.debug("C2 hit for %s: buy=%s sell=%s", currency, buy, sell)
                return RawQuote(buy=buy, sell=sell)
        return None


class DiviColumnCrawler(BaseCrawler):
    """
    Strategy C4: Divi ``.et_pb_column`` blocks.

    Each column holds text modules: the label first, then buy, then sell.
    """

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for column in soup.select(".et_pb_column"):
            if currency not in cell_text(column).upper():
                continue
            modules = column.select(".et_pb_text_inner")
            if len(modules) < 3:
                continue
            buy, sell = cell_text(modules[1]), cell_text(modules[2])
            if buy and sell:
                return RawQuote(buy=buy, sell=sell)
        return None
