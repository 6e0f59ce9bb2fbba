"""
Utility module - Input validation helpers.
"""

from s3explorer.utils.validators import (
    validate_bool,
    validate_endpoint,
    validate_region,
    validate_string_safe,
)

__all__ = ["validate_string_safe", "validate_endpoint", "validate_region", "validate_bool"]
