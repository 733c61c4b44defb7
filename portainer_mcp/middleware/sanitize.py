"""Redaction helpers shared by the middleware."""

from typing import Any

SENSITIVE_KEYWORDS = (
    "password", "passwd", "pwd",
    "token", "access_token", "refresh_token", "api_token",
    "key", "api_key", "private_key", "secret_key",
    "cert", "certificate",
    "secret", "client_secret", "auth_secret",
    "credential", "auth", "authorization",
)

REDACTED = "[REDACTED]"


def is_sensitive_field(field_name: str) -> bool:
    """Check if field contains sensitive data that should not be logged.

    Args:
        field_name: Name of the field to check

    Returns:
        True if field contains sensitive data
    """
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in SENSITIVE_KEYWORDS)


def redact(value: Any) -> Any:
    """Recursively replace the values of sensitive keys in nested mappings."""
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive_field(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value
