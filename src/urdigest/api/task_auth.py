"""Authentication for worker task routes.

The scheduler calls worker routes with the shared secret in the
X-Internal-Task-Secret header.
"""

from __future__ import annotations

import hmac

from fastapi import Request

from urdigest.config import env_str
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import safe_log_context

logger = get_logger(__name__)

TASK_SECRET_HEADER = "X-Internal-Task-Secret"


def verify_task_auth(request: Request) -> bool:
    """True if the request carries INTERNAL_TASK_SECRET.

    Fail-closed: returns False if INTERNAL_TASK_SECRET is not set.
    """
    expected = env_str("INTERNAL_TASK_SECRET")
    if not expected:
        logger.error(
            "INTERNAL_TASK_SECRET not configured - fail closed",
            extra={"extra_fields": safe_log_context(reason="missing_secret_env")},
        )
        return False

    provided = request.headers.get(TASK_SECRET_HEADER, "")
    if not provided:
        logger.warning(
            "task auth failed: missing secret header",
            extra={"extra_fields": safe_log_context(reason="missing_header")},
        )
        return False

    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
