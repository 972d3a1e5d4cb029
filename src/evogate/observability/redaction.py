"""Redaction helpers for safe logging. Provider payload values pass through these."""

import hashlib
import re
from typing import Any

# WhatsApp JIDs carry the phone number before the "@"
_JID_PATTERN = re.compile(r"\b\d{6,}(?:[:\-]\d+)?@(?:s\.whatsapp\.net|g\.us|c\.us|lid)\b")
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact JIDs, phone numbers and e-mails from a string."""
    result = _JID_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def hash_identifier(value: str) -> str:
    """Non-reversible short hash so a contact can be followed across log lines."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def redact_value(value: Any) -> Any:
    """Redact any value for safe logging.

    Scalars keep their JSON type so log queries can filter numerically;
    containers are reduced to their shape.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, Any]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
