"""
Security module for the stamp gateway.

Provides input validation for fingerprints and enumerants, API key
checks, and helpers for log correlation and sanitization.
"""

import re
import hmac
from typing import Any, Dict, List, Optional

from .errors import ValidationError


# ============================================================
# Input Validation
# ============================================================

# 0x + 64 hex characters, either case
FIXED_HASH_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')

UINT16_MAX = 0xFFFF


def is_fixed_hash(value: Any) -> bool:
    """Return True if value is a 0x-prefixed 32-byte hex string."""
    return isinstance(value, str) and FIXED_HASH_PATTERN.fullmatch(value) is not None


def validate_fixed_hash(value: Any, field_name: str) -> str:
    """
    Validate a 32-byte identifier in its 0x-prefixed hex form.

    The value is returned exactly as received. Values differing only in
    hex-digit case are both accepted and are not folded together.

    Args:
        value: The candidate value
        field_name: Name of the field (for error messages)

    Returns:
        The validated string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    if not is_fixed_hash(value):
        raise ValidationError(field_name, "must be 0x followed by 64 hex characters")

    return value


def validate_uint16(value: Any, field_name: str) -> int:
    """
    Validate that a value is an integer representable in 16 unsigned bits.

    Booleans, floats and numeric strings are rejected rather than coerced.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field_name, "must be an integer")

    if value < 0:
        raise ValidationError(field_name, "must not be negative")

    if value > UINT16_MAX:
        raise ValidationError(field_name, f"must not exceed {UINT16_MAX}")

    return value


# ============================================================
# API Key
# ============================================================

def check_api_key(provided: Optional[str], expected: str) -> bool:
    """Compare a caller-supplied API key with the configured one in constant time."""
    if not provided:
        return False
    return hmac.compare_digest(provided.encode('utf-8'), expected.encode('utf-8'))


# ============================================================
# Logging Helpers
# ============================================================

def extract_client_id(headers: Dict[str, str]) -> str:
    """
    Extract a client identifier from request headers for log correlation.
    Falls back to a default if no identifier is found.
    """
    api_key = headers.get("x-api-key", "")
    if api_key:
        return f"api:{api_key[:4]}"

    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"

    return "anonymous"


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to mask

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = ["private_key", "api_key", "x-api-key", "password", "token"]

    result = {}
    for key, value in data.items():
        if key.lower() in sensitive_fields:
            if isinstance(value, str) and len(value) > 8:
                result[key] = value[:4] + "..." + value[-4:]
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
