"""Instagram messaging models."""

from dataclasses import dataclass, field
from typing import Any

# Attachment types that carry a shared post/reel URL
SHARE_ATTACHMENT_TYPES = frozenset({"share", "media_share", "ig_reel"})


@dataclass(frozen=True)
class Attachment:
    type: str
    url: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_share(self) -> bool:
        return self.type in SHARE_ATTACHMENT_TYPES


@dataclass(frozen=True)
class InboundEvent:
    """One inbound DM, normalized from either webhook payload shape.

    PII: sender_id, sender_username and text identify a person. Keep them in
    memory only and log them through redaction helpers.
    """

    sender_id: str
    sender_username: str | None = None
    message_id: str | None = None
    text: str | None = None
    attachments: tuple[Attachment, ...] = ()

    @property
    def shares(self) -> tuple[Attachment, ...]:
        return tuple(a for a in self.attachments if a.is_share)
