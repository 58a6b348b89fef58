"""Redaction helpers for safe logging.

Instagram user ids, email addresses and message text are personal data.
Anything taken from a webhook payload or a user record goes through these
helpers before it reaches a log line.
"""

import base64
import hashlib
import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_HANDLE_PATTERN = re.compile(r"(?<![\w.])@[A-Za-z0-9_.]{2,30}")

_REDACTED = "[REDACTED]"


def hash_identifier(value: str | None) -> str:
    """Non-reversible short hash for correlating ids across log lines."""
    if not value:
        return "none"
    digest = hashlib.sha256(value.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode()[:12]


def redact_string(value: str) -> str:
    """Redact emails, @handles and phone-like digit runs."""
    result = _EMAIL_PATTERN.sub(_REDACTED, value)
    result = _HANDLE_PATTERN.sub(_REDACTED, result)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # structure only
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
