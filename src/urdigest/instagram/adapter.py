"""Instagram webhook adapter - verify and normalize webhook payloads.

Meta delivers Instagram DMs in two shapes:

    {"object": "instagram", "entry": [{"messaging": [EVENT, ...]}]}
    {"object": "instagram", "entry": [{"changes": [{"field": "messages", "value": EVENT}]}]}

where EVENT is {"sender": {"id": ...}, "message": {"mid": ..., "text": ...,
"attachments": [...]}}. Both normalize to InboundEvent.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Any, Iterator

from .models import Attachment, InboundEvent

SIGNATURE_PREFIX = "sha1="

PROCESSED_OBJECTS = frozenset({"instagram", "page"})

_POST_ID_PATTERNS = (
    re.compile(r"/p/([^/?#]+)"),
    re.compile(r"/reel/([^/?#]+)"),
)


class SignatureVerificationError(Exception):
    """Raised when HMAC signature verification fails."""


class InvalidPayloadError(Exception):
    """Raised when a webhook body is not a JSON object."""


def compute_signature(body: bytes, app_secret: str) -> str:
    """``sha1=<hex>`` HMAC of the raw body, as Meta sends in X-Hub-Signature."""
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha1).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(body: bytes | str, signature_header: str | None, app_secret: str | None) -> bool:
    """Constant-time check of an ``sha1=<hex>`` signature.

    Fails closed: a missing secret or header is never valid.
    """
    if not app_secret or not signature_header:
        return False
    if isinstance(body, str):
        body = body.encode("utf-8")
    expected = compute_signature(body, app_secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature_header.strip().encode("utf-8"))


def require_signature(body: bytes | str, signature_header: str | None, app_secret: str | None) -> None:
    """Raise SignatureVerificationError with a reason when verification fails."""
    if not app_secret:
        raise SignatureVerificationError("app secret not configured")
    if not signature_header:
        raise SignatureVerificationError("missing signature header")
    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise SignatureVerificationError("invalid signature format")
    if not verify_signature(body, signature_header, app_secret):
        raise SignatureVerificationError("signature mismatch")


def extract_post_id(url: str | None) -> str | None:
    """Shortcode from ``/p/<id>`` or ``/reel/<id>`` URLs, else None."""
    if not url:
        return None
    for pattern in _POST_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _parse_attachments(raw: Any) -> tuple[Attachment, ...]:
    attachments = []
    for item in _as_list(raw):
        item = _as_dict(item)
        att_type = item.get("type")
        if not isinstance(att_type, str):
            continue
        payload = _as_dict(item.get("payload"))
        url = payload.get("url")
        attachments.append(
            Attachment(type=att_type, url=url if isinstance(url, str) else None, payload=payload)
        )
    return tuple(attachments)


def to_inbound_event(raw_event: Any) -> InboundEvent | None:
    """Normalize one messaging event. Returns None for events to skip.

    Skipped: missing sender id, no ``message`` (reads, reactions, edits,
    postbacks), echoes of our own replies, deleted and unsupported messages.
    """
    event = _as_dict(raw_event)
    sender = _as_dict(event.get("sender"))
    sender_id = sender.get("id")
    message = event.get("message")

    if not sender_id or not isinstance(message, dict):
        return None
    if message.get("is_echo") or message.get("is_deleted") or message.get("is_unsupported"):
        return None

    text = message.get("text")
    username = sender.get("username")
    mid = message.get("mid")
    return InboundEvent(
        sender_id=str(sender_id),
        sender_username=username if isinstance(username, str) and username else None,
        message_id=str(mid) if mid else None,
        text=text if isinstance(text, str) else None,
        attachments=_parse_attachments(message.get("attachments")),
    )


def iter_raw_events(payload: dict[str, Any]) -> Iterator[Any]:
    """Yield raw event dicts from every entry, across both payload shapes."""
    for entry in _as_list(payload.get("entry")):
        entry = _as_dict(entry)
        for event in _as_list(entry.get("messaging")):
            yield event
        for change in _as_list(entry.get("changes")):
            change = _as_dict(change)
            if change.get("field") != "messages":
                continue
            yield change.get("value")


def extract_events(payload: Any) -> list[InboundEvent]:
    """All processable events of a webhook body, in delivery order.

    Raises:
        InvalidPayloadError: If the body is not a JSON object.
    """
    if not isinstance(payload, dict):
        raise InvalidPayloadError("payload is not an object")
    if payload.get("object") not in PROCESSED_OBJECTS:
        return []
    events = []
    for raw in iter_raw_events(payload):
        event = to_inbound_event(raw)
        if event is not None:
            events.append(event)
    return events
