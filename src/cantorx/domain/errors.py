"""
Domain Errors - Business Logic Exceptions

This module defines domain-specific exceptions. Every error carries a stable
``kind`` (the class of failure shown to clients) and the HTTP status the web
layer answers with. Messages must stay short and never include SQL text,
store identifiers or parser internals.
"""


class CantorXError(Exception):
    """Base exception for domain errors."""

    kind = "internal"
    status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class BadRequestError(CantorXError):
    """Raised when a request is missing a parameter or carries an invalid one."""

    kind = "bad-request"
    status = 400


class SourceNotFoundError(CantorXError):
    """Raised when a source id is unknown."""

    kind = "not-found"
    status = 404


class StrategyNotRegisteredError(CantorXError):
    """Raised when a source names a parser nobody registered."""

    kind = "not-registered"


class UpstreamHTTPError(CantorXError):
    """Raised when the rate page cannot be downloaded (including timeouts)."""

    kind = "upstream-http"


class UpstreamParseError(CantorXError):
    """Raised when the rate page or the captured rates cannot be parsed."""

    kind = "upstream-parse"


class CurrencyUnavailableError(CantorXError):
    """Raised when the page parsed fine but does not list the currency."""

    kind = "currency-unavailable"

    def __init__(self, currency: str):
        super().__init__(f"rates not available for currency {currency}")
        self.currency = currency


class StoreError(CantorXError):
    """Raised when the time-series store or source directory fails."""

    kind = "store-error"


class CacheError(CantorXError):
    """Raised when the hot cache fails."""

    kind = "cache-error"


class SerializationError(CantorXError):
    """Raised when a quote cannot be encoded or decoded."""

    kind = "serialization-error"
