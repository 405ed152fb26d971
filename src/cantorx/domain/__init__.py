"""
Domain Layer - Pure Business Objects

This package contains domain models and business rules.
No dependencies on infrastructure or external systems.
"""

from cantorx.domain.models import (
    DEFAULT_CURRENCIES,
    HistoryPoint,
    Quote,
    RawQuote,
    Source,
    cache_key,
    stream_subject,
)
from cantorx.domain.errors import (
    BadRequestError,
    CacheError,
    CantorXError,
    CurrencyUnavailableError,
    SerializationError,
    SourceNotFoundError,
    StoreError,
    StrategyNotRegisteredError,
    UpstreamHTTPError,
    UpstreamParseError,
)

__all__ = [
    "DEFAULT_CURRENCIES",
    "HistoryPoint",
    "Quote",
    "RawQuote",
    "Source",
    "cache_key",
    "stream_subject",
    "CantorXError",
    "BadRequestError",
    "SourceNotFoundError",
    "StrategyNotRegisteredError",
    "UpstreamHTTPError",
    "UpstreamParseError",
    "CurrencyUnavailableError",
    "StoreError",
    "CacheError",
    "SerializationError",
]
