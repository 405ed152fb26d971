# src/cantorx/application/normalizer.py
"""
Rate Normalizer - Raw Strings to Per-Unit Numbers

Cantor pages print rates in many shapes: ``4,30``, `` 4.3050 zł``,
``426,50`` for 100 units. This module turns a RawQuote into numeric per-unit
buy/sell values.

Files that USE this module:
- cantorx.application.harvester (normalizes every harvested quote)
- cantorx.application.rates_service (normalizes on-demand scrapes)

Files that this module USES:
- cantorx.domain.models (RawQuote, Quote)
- cantorx.domain.errors (UpstreamParseError)
"""
from __future__ import annotations

import time
from typing import Optional

from cantorx.domain.errors import UpstreamParseError
from cantorx.domain.models import Quote, RawQuote


def clean_rate(raw: str) -> str:
    """
    Strip a printed rate down to digits and a decimal point.

    Commas become decimal points; every other non-digit character is dropped.

    Args:
        raw: Rate string as captured from the page (e.g., ' 4,30 PLN')

    Returns:
        Cleaned string (e.g., '4.30'), possibly empty
    """
    text = (raw or "").strip().replace(",", ".")
    return "".join(ch for ch in text if ch.isdigit() or ch == ".")


def parse_rate(raw: str, units: int = 1) -> float:
    """
    Parse a printed rate into a positive per-unit number.

    Args:
        raw: Rate string as captured from the page
        units: How many currency units the printed rate covers

    Returns:
        Rate per one unit

    Raises:
        UpstreamParseError: If the string does not yield a positive number
    """
    cleaned = clean_rate(raw)
    try:
        value = float(cleaned)
    except ValueError:
        raise UpstreamParseError("could not parse rate value") from None
    if value <= 0:
        raise UpstreamParseError("rate value must be positive")
    if units > 1:
        value = value / units
    return value


def normalize(raw: RawQuote, units: int = 1) -> tuple[float, float]:
    """
    Normalize both sides of a RawQuote.

    Returns:
        (buy, sell) per one unit of currency
    """
    return parse_rate(raw.buy, units), parse_rate(raw.sell, units)


def to_quote(
    source_id: int,
    currency: str,
    raw: RawQuote,
    units: int = 1,
    fetched_at: Optional[int] = None,
) -> Quote:
    """Build a Quote from a RawQuote scraped for ``source_id``."""
    buy, sell = normalize(raw, units)
    return Quote(
        source_id=source_id,
        currency=currency.upper(),
        buy=buy,
        sell=sell,
        fetched_at=int(time.time()) if fetched_at is None else fetched_at,
    )
