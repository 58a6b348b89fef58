"""Outbound Instagram DMs and profile lookups via the Graph API.

Security: NEVER log recipient ids or message text. Only log hashes and lengths.
Delivery is best effort: send() returns False on any failure and never raises,
so a failed confirmation cannot undo a state transition already stored.
"""

from __future__ import annotations

import http.client
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

from urdigest.config import env_str
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

HTTP_TIMEOUT = 5

MAX_RETRIES = 1
RETRY_DELAY = 0.2

DEFAULT_GRAPH_API_VERSION = "v21.0"

# Graph API error codes worth a hint in the logs
_ERROR_HINTS = {
    10: "app in development mode; only users with app roles can be messaged",
    190: "access token invalid or expired",
    200: "permission denied; token needs instagram_manage_messages",
}


class MessageSender(ABC):
    @abstractmethod
    def send(self, recipient_id: str, text: str) -> bool:
        """Deliver a DM. False on failure; never raises."""
        ...


class UsernameResolver(ABC):
    @abstractmethod
    def resolve(self, instagram_user_id: str) -> str | None:
        """Handle for a sender id, or None. Never raises."""
        ...


def _do_request(url: str, data: bytes | None, headers: dict[str, str], method: str) -> dict[str, Any]:
    """Execute an HTTP request. Raises on error."""
    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    with urllib.request.urlopen(req, timeout=HTTP_TIMEOUT) as resp:
        return json.loads(resp.read().decode())


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, urllib.error.HTTPError):
        return 500 <= error.code < 600
    return isinstance(error, (OSError, http.client.HTTPException))


def _graph_error_code(error: Exception) -> int | None:
    if not isinstance(error, urllib.error.HTTPError):
        return None
    try:
        body = json.loads(error.read().decode() or "{}")
    except (ValueError, OSError, http.client.HTTPException):
        return None
    if not isinstance(body, dict):
        return None
    graph_error = body.get("error")
    if not isinstance(graph_error, dict):
        return None
    code = graph_error.get("code")
    return code if isinstance(code, int) else None


class GraphMessageSender(MessageSender):
    """Send DMs through ``POST /{page_id}/messages``.

    Config (args override env):
    - INSTAGRAM_ACCESS_TOKEN: page access token (required)
    - INSTAGRAM_PAGE_ID: page connected to the Instagram account (default "me")
    - INSTAGRAM_GRAPH_API_VERSION (default v21.0)
    """

    def __init__(
        self,
        access_token: str | None = None,
        page_id: str | None = None,
        api_version: str | None = None,
    ):
        self._access_token = access_token
        self._page_id = page_id
        self._api_version = api_version

    def _config(self) -> tuple[str, str, str]:
        token = self._access_token or env_str("INSTAGRAM_ACCESS_TOKEN")
        page_id = self._page_id or env_str("INSTAGRAM_PAGE_ID") or "me"
        version = (
            self._api_version
            or env_str("INSTAGRAM_GRAPH_API_VERSION")
            or DEFAULT_GRAPH_API_VERSION
        )
        return token, page_id, version

    def send(self, recipient_id: str, text: str) -> bool:
        token, page_id, version = self._config()
        log_ctx = safe_log_context(
            to_hash=hash_identifier(recipient_id),
            text_len=len(text or ""),
            provider="instagram",
        )

        if not token:
            logger.error("INSTAGRAM_ACCESS_TOKEN not configured", extra={"extra_fields": log_ctx})
            return False
        if not text or not text.strip():
            logger.error("refusing to send empty message", extra={"extra_fields": log_ctx})
            return False

        query = urllib.parse.urlencode({"access_token": token})
        url = f"https://graph.facebook.com/{version}/{page_id}/messages?{query}"
        payload = {
            "recipient": {"id": recipient_id},
            "message": {"text": text.strip()},
            "messaging_type": "RESPONSE",
        }
        data = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}

        for attempt in range(MAX_RETRIES + 1):
            try:
                _do_request(url, data, headers, "POST")
                logger.info(
                    "outbound message sent",
                    extra={"extra_fields": {**log_ctx, "attempt": str(attempt)}},
                )
                return True
            except (OSError, http.client.HTTPException, ValueError) as e:
                if attempt < MAX_RETRIES and _is_retryable(e):
                    logger.warning(
                        "outbound send failed, retrying",
                        extra={
                            "extra_fields": {
                                **log_ctx,
                                "attempt": str(attempt),
                                "error_type": type(e).__name__,
                            }
                        },
                    )
                    time.sleep(RETRY_DELAY)
                    continue

                code = _graph_error_code(e)
                logger.error(
                    "outbound send failed",
                    extra={
                        "extra_fields": {
                            **log_ctx,
                            **safe_log_context(
                                attempt=attempt,
                                error_type=type(e).__name__,
                                graph_error_code=code,
                                hint=_ERROR_HINTS.get(code) if code is not None else None,
                            ),
                        }
                    },
                )
                return False
        return False


class GraphUsernameResolver(UsernameResolver):
    """``GET graph.instagram.com/{id}?fields=username``."""

    def __init__(self, access_token: str | None = None):
        self._access_token = access_token

    def resolve(self, instagram_user_id: str) -> str | None:
        token = self._access_token or env_str("INSTAGRAM_ACCESS_TOKEN")
        if not token:
            logger.error("INSTAGRAM_ACCESS_TOKEN not configured")
            return None

        query = urllib.parse.urlencode({"fields": "username", "access_token": token})
        url = f"https://graph.instagram.com/{urllib.parse.quote(instagram_user_id)}?{query}"
        try:
            body = _do_request(url, None, {}, "GET")
        except (OSError, http.client.HTTPException, ValueError) as e:
            logger.warning(
                "username lookup failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_hash=hash_identifier(instagram_user_id),
                        error_type=type(e).__name__,
                    )
                },
            )
            return None
        if not isinstance(body, dict):
            return None
        username = body.get("username")
        return username if isinstance(username, str) and username else None
