"""Shared test helpers for urdigest tests.

Regular functions and fakes importable by conftest.py and test modules.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

from urdigest.content.ocr import OCRProvider, OCRResult
from urdigest.instagram.sender import MessageSender, UsernameResolver


class RecordingSender(MessageSender):
    """Collects outbound DMs instead of calling the Graph API."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []

    def send(self, recipient_id: str, text: str) -> bool:
        self.sent.append((recipient_id, text))
        return self.succeed

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


class StaticResolver(UsernameResolver):
    def __init__(self, username: str | None = None):
        self.username = username
        self.calls: list[str] = []

    def resolve(self, instagram_user_id: str) -> str | None:
        self.calls.append(instagram_user_id)
        return self.username


class ScriptedOCR(OCRProvider):
    """Returns a preset OCRResult per URL; unknown URLs fail."""

    def __init__(self, results: dict[str, OCRResult] | None = None):
        self.results = results or {}
        self.calls: list[str] = []

    def extract_text(self, image_url: str) -> OCRResult:
        self.calls.append(image_url)
        return self.results.get(
            image_url,
            OCRResult(success=False, text=None, confidence=None, error="not found"),
        )


def ocr_ok(text: str | None, confidence: float = 90.0) -> OCRResult:
    return OCRResult(success=True, text=text, confidence=confidence, error=None)


def ocr_fail(error: str = "boom") -> OCRResult:
    return OCRResult(success=False, text=None, confidence=None, error=error)


def sign(body: bytes, secret: str) -> str:
    return "sha1=" + hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def dm_payload(
    sender_id: str = "1789001",
    text: str | None = "hello",
    mid: str | None = "m_001",
    attachments: list[dict[str, Any]] | None = None,
    **message_flags: Any,
) -> dict[str, Any]:
    """Standard ``messaging[]`` webhook body with one event."""
    message: dict[str, Any] = dict(message_flags)
    if mid is not None:
        message["mid"] = mid
    if text is not None:
        message["text"] = text
    if attachments is not None:
        message["attachments"] = attachments
    return {
        "object": "instagram",
        "entry": [
            {
                "id": "17841400000000",
                "time": 1760000000,
                "messaging": [
                    {
                        "sender": {"id": sender_id},
                        "recipient": {"id": "17841400000000"},
                        "timestamp": 1760000000000,
                        "message": message,
                    }
                ],
            }
        ],
    }


def share(url: str, att_type: str = "share") -> dict[str, Any]:
    return {"type": att_type, "payload": {"url": url}}
