# src/cantorx/adapters/crawlers/table_crawlers.py
"""
Table Crawlers

Crawlers for cantor pages that publish rates as HTML tables, one row per
currency. They differ only in which cell holds the currency symbol and where
the buy and sell cells sit relative to it.

Files that USE this module:
- cantorx.adapters.crawlers.registry (registers C1, C3, C5 and C6)

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


class KursyWalutCrawler(BaseCrawler):
    """
    Strategy C1: ``table.kursy_walut``.

    The symbol sits in the second cell, buy and sell in the fourth and fifth.
    """

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for row in soup.select("table.kursy_walut tr"):
            cells = row.find_all("td")
            if len(cells) < 5:
                continue
            if cell_text(cells[1]).upper() == currency:
                return RawQuote(buy=cell_text(cells[3]), sell=cell_text(cells[4]))
        return None


class MceTableCrawler(BaseCrawler):
    """
    Strategy C3: first ``table.mceItemTable`` on the page.

    The first row is a header. The currency cell holds a span such as
    ``USD (Dolar)``; the symbol is the last word before the parenthesis.
    """

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        table = soup.select_one("table.mceItemTable")
        if table is None:
            return None

        for row in table.find_all("tr")[1:]:
            cells = row.find_all("td")
            if len(cells) < 4:
                continue
            label_node = cells[0].find("span") or cells[0]
            label = cell_text(label_node).split("(")[0].strip()
            words = label.split()
            if words and words[-1].upper() == currency:
                return RawQuote(buy=cell_text(cells[2]), sell=cell_text(cells[3]))
        return None


class SymbolColumnCrawler(BaseCrawler):
    """
    Strategy C5: any table row whose second cell contains the symbol.

    Buy and sell are the third and fourth cells.
    """

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for row in soup.select("table tr"):
            cells = row.find_all("td")
            if len(cells) < 4:
                continue
            if currency in cell_text(cells[1]).upper():
                return RawQuote(buy=cell_text(cells[2]), sell=cell_text(cells[3]))
        return None


class FloatingSymbolCrawler(BaseCrawler):
    """
    Strategy C6: any table cell equal to the symbol.

    Buy and sell are the two cells right after the symbol, wherever it sits.
    """

    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        for row in soup.select("table tr"):
            cells = row.find_all("td")
            for j, cell in enumerate(cells):
                if cell_text(cell).upper() != currency:
                    continue
                if j + 2 < len(cells):
                    return RawQuote(buy=cell_text(cells[j + 1]), sell=cell_text(cells[j + 2]))
        return None
