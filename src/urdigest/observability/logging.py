"""JSON log lines on stdout for the webhook and worker processes.

Every record carries ``service`` and, inside a request, ``correlationId``.
Structured fields go through ``extra_fields`` and should already be passed
through ``safe_log_context``:

    logger = get_logger(__name__)
    logger.info("post saved", extra={"extra_fields": safe_log_context(post_count=2)})

LOG_LEVEL sets the level of loggers created by get_logger (default INFO).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from urdigest import SERVICE_NAME
from urdigest.config import env_str

from .correlation import get_correlation_id


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            # fixed keys win over caller fields
            log_obj = {**extra_fields, **log_obj}

        return json.dumps(log_obj, default=str)


def _level_from_env() -> int:
    level = logging.getLevelName(env_str("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)

    # Avoid stacking handlers when modules are re-imported
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_from_env())
        logger.propagate = False

    return logger
