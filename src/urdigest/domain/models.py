"""Domain records: users and saved posts.

Field names match the Postgres columns so stores can map rows 1:1.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Literal

ContentConfidence = Literal["low", "medium", "high"]
ProcessingStatus = Literal["pending", "enriching", "completed", "failed"]


class OnboardingState(str, Enum):
    """Dialogue position of a user. A missing state is represented by None."""

    AWAITING_EMAIL = "awaiting_email"
    AWAITING_TIME = "awaiting_time"
    ONBOARDED = "onboarded"


def parse_state(raw: str | None) -> OnboardingState | None:
    """Map a stored state string to the enum. Unknown or null -> None."""
    if not raw:
        return None
    try:
        return OnboardingState(raw)
    except ValueError:
        return None


@dataclass
class User:
    """Subset of the users table owned by the onboarding dialogue."""

    id: str
    email: str
    instagram_user_id: str | None = None
    instagram_username: str | None = None
    onboarding_state: OnboardingState | None = None
    digest_time: str | None = None
    digest_enabled: bool = False
    timezone: str | None = None
    total_posts_saved: int = 0
    total_digests_sent: int = 0
    last_post_received_at: datetime | None = None


@dataclass
class SavedPost:
    """A post a user shared with the bot, plus its enrichment output."""

    id: str
    user_id: str
    instagram_url: str
    instagram_post_id: str | None = None
    post_type: str | None = None
    caption: str | None = None
    author_username: str | None = None
    author_profile_url: str | None = None
    posted_at: str | None = None
    media_urls: Any = None
    thumbnail_url: str | None = None
    extracted_metadata: dict[str, Any] | None = None
    transcript_text: str | None = None
    ocr_text: str | None = None
    sources_used: dict[str, bool] | None = None
    content_confidence: ContentConfidence | None = None
    processing_status: ProcessingStatus = "pending"
    processing_error: str | None = None
    enrichment_completed_at: datetime | None = None


def apply_updates(record: Any, updates: dict[str, Any]) -> None:
    """Copy known fields from ``updates`` onto a record dataclass in place."""
    known = {f.name for f in fields(record)}
    for key, value in updates.items():
        if key not in known:
            raise KeyError(f"unknown field for {type(record).__name__}: {key}")
        setattr(record, key, value)
