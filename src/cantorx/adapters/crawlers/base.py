# src/cantorx/adapters/crawlers/base.py
"""
Base Crawler

This module provides the base class for the cantor page crawlers. A crawler
downloads one rate page with a browser-like User-Agent and a hard timeout,
parses it into a DOM, and extracts the buy/sell cells of the row that lists
the requested currency.

Crawlers are stateless: the same instance serves every source registered
with its strategy tag, so ``fetch`` takes the URL and currency per call.

Files that USE this module:
- cantorx.adapters.crawlers.table_crawlers (table-shaped pages extend BaseCrawler)
- cantorx.adapters.crawlers.block_crawlers (div/card-shaped pages extend BaseCrawler)
- cantorx.adapters.crawlers.generic_crawler (fallback crawler extends BaseCrawler)
- cantorx.adapters.crawlers.registry (registers crawler instances by tag)

Files that this module USES:
- cantorx.domain.models (RawQuote result)
- cantorx.domain.errors (UpstreamHTTPError, UpstreamParseError, CurrencyUnavailableError)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import logging  # Standard library for logging messages
import re  # Regular expressions for whitespace folding
import time  # Monotonic clock for the total download deadline
from abc import ABC, abstractmethod  # Abstract base classes for defining interfaces
from typing import Optional  # Type hints for optional values

import requests  # HTTP library for making web requests
import urllib3  # Raw body reads under requests
from bs4 import BeautifulSoup, Tag  # HTML parsing library for extracting data from web pages

from cantorx.domain.errors import CurrencyUnavailableError, UpstreamHTTPError, UpstreamParseError
from cantorx.domain.models import RawQuote

log = logging.getLogger(__name__)  # Create logger for this module

DEFAULT_TIMEOUT = 15
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

READ_CHUNK_BYTES = 16 * 1024

_WS_RE = re.compile(r"\s+")


def cell_text(node: Optional[Tag]) -> str:
    """Visible text of a node with whitespace collapsed; empty for None."""
    if node is None:
        return ""
    return _WS_RE.sub(" ", node.get_text(" ", strip=True)).strip()


class BaseCrawler(ABC):
    """
    Base class for cantor page crawlers.

    Subclasses implement ``_parse_html`` and return the raw buy/sell strings,
    or None when the currency is not listed on the page.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, user_agent: str = DEFAULT_USER_AGENT):
        """
        Initialize base crawler.

        Args:
            timeout: HTTP request timeout in seconds
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.user_agent = user_agent

    def _fetch_html(self, url: str) -> str:
        """
        Fetch HTML content from the URL.

        ``timeout`` bounds the whole download, not just each socket read:
        a server that keeps trickling bytes is cut off once it is spent.

        Returns:
            HTML content as string

        Raises:
            UpstreamHTTPError: If request fails, times out or answers non-2xx
        """
        deadline = time.monotonic() + self.timeout
        try:
            headers = {"User-Agent": self.user_agent}
            log.debug("Fetching HTML from %s", url)
            resp = requests.get(url, timeout=self.timeout, headers=headers, stream=True)
            try:
                resp.raise_for_status()
                body = self._read_body(resp, url, deadline)
            finally:
                resp.close()
        except requests.exceptions.Timeout:
            log.warning("Crawler timeout after %s seconds for %s", self.timeout, url)
            raise UpstreamHTTPError(f"timeout after {self.timeout}s") from None
        except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError) as e:
            log.warning("Crawler request failed for %s: %s", url, e)
            raise UpstreamHTTPError("rate page request failed") from e
        return body.decode(resp.encoding or "utf-8", errors="replace")

    def _read_body(self, resp: requests.Response, url: str, deadline: float) -> bytes:
        # read1 returns whatever is buffered instead of waiting for a full chunk
        chunks = []
        while True:
            chunk = resp.raw.read1(READ_CHUNK_BYTES, decode_content=True)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)
            if time.monotonic() > deadline:
                log.warning("Crawler download exceeded %s seconds for %s", self.timeout, url)
                raise UpstreamHTTPError(f"timeout after {self.timeout}s")

    def _parse_document(self, html: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(html, "html.parser")
        except Exception as e:
            log.warning("Could not parse HTML document: %s", e)
            raise UpstreamParseError("rate page is not valid HTML") from e

    @abstractmethod
    def _parse_html(self, soup: BeautifulSoup, currency: str) -> Optional[RawQuote]:
        """
        Locate the row for ``currency`` and extract buy and sell strings.

        Args:
            soup: Parsed page
            currency: Uppercase currency code

        Returns:
            RawQuote with both strings, or None if the currency is not listed
        """
        raise NotImplementedError

    def fetch(self, url: str, currency: str) -> RawQuote:
        """
        Download the page at ``url`` and extract the quote for ``currency``.

        Returns:
            RawQuote with non-empty buy and sell strings

        Raises:
            UpstreamHTTPError: Download failed
            UpstreamParseError: Page could not be parsed
            CurrencyUnavailableError: Page parsed but the currency is absent
        """
        currency = currency.strip().upper()
        html = self._fetch_html(url)
        soup = self._parse_document(html)
        raw = self._parse_html(soup, currency)
        if raw is None or not raw.buy or not raw.sell:
            log.debug("%s: no rates for %s at %s", type(self).__name__, currency, url)
            raise CurrencyUnavailableError(currency)
        return raw

    __call__ = fetch
