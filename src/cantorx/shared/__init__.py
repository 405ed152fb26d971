"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation
- Single-flight call coalescing
- Logging configuration
"""

from cantorx.shared.validators import (
    is_currency_code,
    parse_cantor_id,
    parse_days,
    validate_currency,
    validate_currency_list,
)
from cantorx.shared.singleflight import SingleFlight

__all__ = [
    "is_currency_code",
    "parse_cantor_id",
    "parse_days",
    "validate_currency",
    "validate_currency_list",
    "SingleFlight",
]
