"""Instagram webhook routes - Meta Graph API messaging integration.

Security:
- Sender ids, usernames and text exist only in memory while handling a request
- Logs contain hashes and counts only, never message content
- A signature that is present must verify before any store is touched
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Header, Query, Request, Response
from fastapi.responses import JSONResponse

from urdigest.config import env_flag, env_str
from urdigest.instagram.adapter import (
    InvalidPayloadError,
    SignatureVerificationError,
    require_signature,
)
from urdigest.instagram.dispatcher import WebhookDispatcher
from urdigest.observability.correlation import get_correlation_id
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import safe_log_context

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger(__name__)

_dispatcher: WebhookDispatcher | None = None


def _get_dispatcher() -> WebhookDispatcher:
    """Get dispatcher instance (allows test injection)."""
    global _dispatcher
    if _dispatcher is None:
        from urdigest.api.wiring import build_dispatcher

        _dispatcher = build_dispatcher()
    return _dispatcher


def _server_error() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@router.get("/instagram")
async def instagram_webhook_verify(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
) -> Response:
    """Meta webhook verification endpoint.

    Meta sends a GET during webhook setup to verify ownership. We echo
    hub.challenge if hub.verify_token matches INSTAGRAM_WEBHOOK_VERIFY_TOKEN.

    Returns:
        200 text/plain with hub.challenge if valid.
        403 otherwise, including when no verify token is configured.
    """
    expected_token = env_str("INSTAGRAM_WEBHOOK_VERIFY_TOKEN")

    if expected_token and hub_mode == "subscribe" and hub_verify_token == expected_token:
        logger.info(
            "instagram webhook verification successful",
            extra={"extra_fields": safe_log_context(hub_mode=hub_mode)},
        )
        return Response(status_code=200, content=hub_challenge or "", media_type="text/plain")

    logger.warning(
        "instagram webhook verification failed",
        extra={
            "extra_fields": safe_log_context(
                hub_mode=hub_mode or "missing",
                token_match=hub_verify_token == expected_token if expected_token else "no_token_configured",
            )
        },
    )
    return Response(status_code=403, content="Forbidden", media_type="text/plain")


@router.post("/instagram")
async def instagram_webhook(
    request: Request,
    x_hub_signature: str | None = Header(None, alias="X-Hub-Signature"),
) -> Response:
    """Receive Instagram messaging webhook.

    - Invalid signature: 403 before any store access
    - Unsigned request: accepted unless INSTAGRAM_REQUIRE_SIGNATURE=true
    - Malformed JSON or processing error: 500 so Meta retries
    - Otherwise: 200 {"success": true}, including ignored objects
    """
    correlation_id = get_correlation_id()

    # 1. Raw body for signature verification
    body_bytes = await request.body()

    # 2. Signature
    if x_hub_signature or env_flag("INSTAGRAM_REQUIRE_SIGNATURE", False):
        try:
            require_signature(body_bytes, x_hub_signature, env_str("INSTAGRAM_APP_SECRET"))
        except SignatureVerificationError as e:
            logger.warning(
                "instagram signature verification failed",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        error=str(e),
                    )
                },
            )
            return JSONResponse(status_code=403, content={"error": "Invalid signature"})
    else:
        logger.debug(
            "unsigned instagram webhook accepted",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )

    # 3. Parse JSON
    try:
        payload: Any = json.loads(body_bytes)
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _server_error()

    # 4. Dedupe and route each event
    try:
        _get_dispatcher().dispatch(payload)
    except InvalidPayloadError:
        logger.warning(
            "webhook body is not an object",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _server_error()
    except Exception:
        logger.exception(
            "instagram webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _server_error()

    return JSONResponse(status_code=200, content={"success": True})
