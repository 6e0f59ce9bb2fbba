"""
Validation Utilities
====================

Input validation functions with security focus. All failures raise
``s3explorer.core.errors.ValidationError`` so the web layer renders them
as 400 responses.
"""

from __future__ import annotations

import re
from typing import Any, Final, Optional
from urllib.parse import urlparse

from s3explorer.core.errors import ValidationError

_REGION_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def validate_string_safe(
    value: Any,
    min_length: int = 0,
    max_length: int = 1000,
    allow_empty: bool = False,
    field_name: str = "value",
) -> str:
    """
    Validate a string value for safety.

    Args:
        value: The value to validate
        min_length: Minimum allowed length
        max_length: Maximum allowed length
        allow_empty: If False, empty strings are rejected
        field_name: Name of the field for error messages

    Returns:
        Validated string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if not allow_empty and not value:
        raise ValidationError(f"{field_name} cannot be empty")

    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")

    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")

    # Null bytes never belong in names, URLs or keys
    if "\x00" in value:
        raise ValidationError(f"{field_name} contains invalid characters")

    return value


def validate_endpoint(value: Any, field_name: str = "endpoint") -> str:
    """
    Validate an object-storage endpoint URL.

    Only absolute ``http`` and ``https`` URLs with a host are accepted.
    """
    endpoint = validate_string_safe(value, max_length=2048, field_name=field_name).strip()

    try:
        parsed = urlparse(endpoint)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid URL") from None

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(f"{field_name} must be an http:// or https:// URL")

    return endpoint


def validate_region(value: Any, field_name: str = "region") -> str:
    region = validate_string_safe(value, max_length=64, field_name=field_name)
    if not _REGION_PATTERN.match(region):
        raise ValidationError(f"{field_name} contains invalid characters")
    return region


def validate_bool(value: Any, field_name: str = "value", default: Optional[bool] = None) -> bool:
    """Accept JSON booleans only; None falls back to ``default`` when one is given."""
    if value is None and default is not None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean")
    return value
