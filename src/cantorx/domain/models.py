# src/cantorx/domain/models.py
"""
Domain Models - Pure Business Objects

This module contains domain models representing core business concepts:
- Sources (cantors) and their scraping configuration
- Raw and normalized quotes
- History points returned by the time-series store

Files that USE this module:
- cantorx.application.* (all services use domain models)
- cantorx.adapters.* (adapters create and use domain models)
- tests.* (tests use domain models for test data)

Files that this module USES:
- None (pure domain layer, no external dependencies)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass, replace  # Decorator for creating data classes
from typing import Optional  # Type hints for optional values

# Currencies harvested every cycle
DEFAULT_CURRENCIES: tuple[str, ...] = (
    "EUR", "USD", "GBP", "AUD", "DKK", "NOK", "CHF", "SEK",
    "CZK", "HUF", "UAH", "BGN", "RON", "TRY", "ISK", "LEK",
)

CACHE_KEY_PREFIX = "rates:proto"
RATES_TOPIC = "rates_updates"
STREAM_SUBJECT_PREFIX = "rates."


def cache_key(source_id: int, currency: str) -> str:
    """Hot cache key for the latest quote of one (source, currency) pair."""
    return f"{CACHE_KEY_PREFIX}{source_id}:{currency.upper()}"


def stream_subject(currency: str) -> str:
    """Persistent stream subject for one currency."""
    return f"{STREAM_SUBJECT_PREFIX}{currency.upper()}"


@dataclass(frozen=True)
class Source:
    """
    A cantor with an HTML rate page.

    Attributes:
        id: Stable integer identifier
        name: Short unique machine name
        display_name: Human readable name
        base_url: Page that lists the rates
        strategy: Tag of the registered parser that understands the page
        units: How many currency units one displayed rate covers
        latitude: Location of the cantor
        longitude: Location of the cantor
    """
    id: int
    name: str
    display_name: str
    base_url: str
    strategy: str
    units: int = 1
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class RawQuote:
    """Buy/sell strings exactly as captured from the page."""
    buy: str
    sell: str


@dataclass(frozen=True)
class Quote:
    """
    Normalized buy/sell pair for one (source, currency) at an instant.

    Attributes:
        source_id: Id of the cantor that published the rate
        currency: 3-letter uppercase currency code
        buy: Per-unit buy rate
        sell: Per-unit sell rate
        fetched_at: Wall-clock seconds since epoch
        change_24h: Percent change of buy against ~24h earlier, None if unknown
    """
    source_id: int
    currency: str
    buy: float
    sell: float
    fetched_at: int
    change_24h: Optional[float] = None

    @property
    def buy_rate(self) -> str:
        return format_rate(self.buy)

    @property
    def sell_rate(self) -> str:
        return format_rate(self.sell)

    def with_change(self, change_24h: Optional[float]) -> "Quote":
        return replace(self, change_24h=change_24h)


@dataclass(frozen=True)
class HistoryPoint:
    """One hourly bucket of averaged rates."""
    time: int
    buy_rate: float
    sell_rate: float


def format_rate(value: float) -> str:
    """Format a rate for external surfaces (three fractional digits)."""
    return f"{value:.3f}"


def change_percent(current: float, previous: Optional[float]) -> Optional[float]:
    """
    Signed percent change of current against previous.

    Returns:
        Percentage, or None when there is no usable previous value
    """
    if previous is None or previous <= 0:
        return None
    return (current - previous) / previous * 100.0
