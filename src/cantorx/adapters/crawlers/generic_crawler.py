# src/cantorx/adapters/crawlers/generic_crawler.py
"""
Generic Crawler

Fallback crawler for pages without a dedicated strategy (tags C7-C10).
It scans table rows and ``div.row`` / ``div.rate-row`` blocks for one that
mentions the currency, then takes the first two numeric-looking cells of
that row as buy and sell.

Files that USE this module:
- cantorx.adapters.crawlers.registry (registers C7, C8, C9 and C10)

Files that this module USES:
- cantorx.adapters.crawlers.base (BaseCrawler, cell_text)
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup, Tag

from cantorx.adapters.crawlers.base import BaseCrawler, cell_text
from cantorx.domain.models import RawQuote

ROW_SELECTOR = "tr, div.row, div.rate-row"
MIN_RATE_LENGTH = 4


def looks_numeric(text: str) -> bool:
    """A rate cell starts with a digit and is at least four characters long (e.g. ``4.30``)."""
    return len(text) >= MIN_RATE_LENGTH and text[0].isdigit()


def _row_cells(row: Tag) -> list[Tag]:
    if row.name == "tr":
        return row.find_all(["td", "th"])
    # div rows: leaf elements only, so wrappers don't repeat their children's text
    return [el for el in row.find_all(True) if el.find(True) is None]


class GenericRowCrawler(BaseCrawler):
    """Strategies C7-C10: generic row scan."""

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for row in soup.select(ROW_SELECTOR):
            if currency not in cell_text(row).upper():
                continue
            rates = [t for t in (cell_text(c) for c in _row_cells(row)) if looks_numeric(t)]
            if len(rates) >= 2:
                return RawQuote(buy=rates[0], sell=rates[1])
        return None
