# src/cantorx/shared/validators.py
"""
Input Validation Utilities

This module validates values that arrive from outside the process: query
parameters on the REST surface, RPC request bodies, and configuration.
Parsing helpers raise BadRequestError so the web layer can answer 400.

Files that USE this module:
- cantorx.config.settings (currency list validation)
- cantorx.adapters.web.* (query parameter parsing)
- cantorx.adapters.persistence.source_directory (source record validation)

Files that this module USES:
- cantorx.domain.errors (BadRequestError)
"""
import re
from typing import Optional

from cantorx.domain.errors import BadRequestError

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

MAX_HISTORY_DAYS = 30


def is_currency_code(value: str) -> bool:
    """
    Check a currency code is three uppercase letters.

    Args:
        value: Code to validate

    Returns:
        True if valid, False otherwise
    """
    return bool(value) and bool(_CURRENCY_RE.match(value))


def validate_currency(value: Optional[str], field: str = "currency") -> str:
    """
    Normalize and validate a currency code.

    Args:
        value: Raw value from the request (may be lowercase or padded)
        field: Parameter name used in the error message

    Returns:
        The uppercase currency code

    Raises:
        BadRequestError: If the value is missing or not a 3-letter code
    """
    if value is not None and not isinstance(value, str):
        raise BadRequestError(f"invalid {field}: expected a 3-letter code")
    if value is None or not value.strip():
        raise BadRequestError(f"missing required parameter: {field}")
    code = value.strip().upper()
    if not is_currency_code(code):
        raise BadRequestError(f"invalid {field}: expected a 3-letter code")
    return code


def parse_cantor_id(value: Optional[str], required: bool = True) -> Optional[int]:
    """
    Parse the ``cantor_id`` query parameter.

    Returns:
        Positive integer id, or None when optional and absent

    Raises:
        BadRequestError: If required and missing, or not a positive integer
    """
    if value is None or not value.strip():
        if required:
            raise BadRequestError("missing required parameter: cantor_id")
        return None
    try:
        cantor_id = int(value.strip())
    except ValueError:
        raise BadRequestError("invalid cantor_id: expected an integer") from None
    if cantor_id <= 0:
        raise BadRequestError("invalid cantor_id: must be positive")
    return cantor_id


def parse_days(value: Optional[str], default: int = 7) -> int:
    """Parse the ``days`` history window (1..30)."""
    if value is None or not value.strip():
        return default
    try:
        days = int(value.strip())
    except ValueError:
        raise BadRequestError("invalid days: expected an integer") from None
    if days < 1 or days > MAX_HISTORY_DAYS:
        raise BadRequestError(f"invalid days: must be between 1 and {MAX_HISTORY_DAYS}")
    return days


def validate_currency_list(values) -> frozenset:
    """Validate a stream filter; an empty list means no filter."""
    return frozenset(validate_currency(v, field="currencies") for v in values or ())
