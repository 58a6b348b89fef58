"""Normalization of saved posts into digest items.

Everything here is pure: no I/O, no clock, same input -> same output. The
digest generator renders NormalizedDigestItem views and never persists them.

Confidence here scores *pre-enrichment metadata* only. Post-enrichment
scoring over extracted text lives in urdigest.content.enrich and uses
different weights.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .models import ContentConfidence, SavedPost

CAPTION_PREVIEW_CHARS = 100


class ContentType(str, Enum):
    REEL = "REEL"
    VIDEO = "VIDEO"
    CAROUSEL = "CAROUSEL"
    IMAGE = "IMAGE"
    UNKNOWN = "UNKNOWN"


_VIDEO_TYPES = frozenset({"video", "clip", "animated_image_share"})
_IMAGE_TYPES = frozenset({"photo", "image"})

_LABELS = {
    ContentType.REEL: "Reel",
    ContentType.VIDEO: "Video",
    ContentType.CAROUSEL: "Carousel",
    ContentType.IMAGE: "Post",
    ContentType.UNKNOWN: "Content",
}

_EMOJI = {
    ContentType.REEL: "🎬",
    ContentType.VIDEO: "▶️",
    ContentType.CAROUSEL: "📸",
    ContentType.IMAGE: "🖼️",
    ContentType.UNKNOWN: "💫",
}


@dataclass(frozen=True)
class NormalizedDigestItem:
    """Read-only digest view of a SavedPost."""

    id: str
    url: str
    ig_type: ContentType
    creator_handle: str | None
    creator_name: str | None
    creator_profile_url: str | None
    posted_at: str | None
    thumbnail_url: str | None
    caption_text: str | None
    media_count: int
    audio_title: str | None
    transcript_text: str | None
    ocr_text: str | None
    extracted_text_summary: str
    confidence: ContentConfidence
    raw_post: SavedPost


def media_url_list(media_urls: Any) -> list[str]:
    """Return stored media URLs as a list of strings.

    The sync API stores either a bare JSON array or ``{"urls": [...]}``.
    """
    if isinstance(media_urls, (list, tuple)):
        return [u for u in media_urls if isinstance(u, str)]
    if isinstance(media_urls, dict) and isinstance(media_urls.get("urls"), list):
        return [u for u in media_urls["urls"] if isinstance(u, str)]
    return []


def detect_content_type(url: str | None, post_type: str | None, media_urls: Any) -> ContentType:
    """Classify a post. First matching rule wins:

    1. ``/reel/`` in the URL or type ``reel`` -> REEL
    2. type video / clip / animated_image_share -> VIDEO
    3. type ``carousel`` or a media URL list longer than one -> CAROUSEL
       (the ``{"urls": [...]}`` shape does not count here)
    4. ``/p/`` in the URL or type photo / image -> IMAGE
    5. otherwise UNKNOWN
    """
    url_lower = (url or "").lower()

    if "/reel/" in url_lower or post_type == "reel":
        return ContentType.REEL

    if post_type in _VIDEO_TYPES:
        return ContentType.VIDEO

    if post_type == "carousel" or (isinstance(media_urls, (list, tuple)) and len(media_urls) > 1):
        return ContentType.CAROUSEL

    if "/p/" in url_lower or post_type in _IMAGE_TYPES:
        return ContentType.IMAGE

    return ContentType.UNKNOWN


def calculate_confidence(
    caption: str | None,
    creator_handle: str | None,
    thumbnail_url: str | None,
    ig_type: ContentType,
) -> ContentConfidence:
    """Score available metadata.

    caption >20 chars +3 (shorter, non-empty +1); handle +2; thumbnail +1;
    known type +1. 7 and up is high, 3 and up medium, else low.
    """
    score = 0

    if caption and len(caption) > 20:
        score += 3
    elif caption:
        score += 1

    if creator_handle:
        score += 2

    if thumbnail_url:
        score += 1

    if ig_type != ContentType.UNKNOWN:
        score += 1

    if score >= 7:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


def extract_text_summary(
    ig_type: ContentType,
    creator_handle: str | None,
    caption: str | None,
) -> str:
    """One-line synthesis, e.g. ``Reel by @chef — "Three ways to..."``."""
    if ig_type == ContentType.UNKNOWN:
        label = "Post"
    else:
        label = ig_type.value.lower().capitalize()
    parts = [label]

    if creator_handle:
        parts.append(f"by @{creator_handle}")

    text = (caption or "").strip()
    if text:
        if len(text) > CAPTION_PREVIEW_CHARS:
            preview = text[:CAPTION_PREVIEW_CHARS].strip() + "..."
        else:
            preview = text
        parts.append(f'— "{preview}"')

    return " ".join(parts)


def parse_media_count(media_urls: Any) -> int:
    """Number of media items; a post without stored URLs counts as 1."""
    if isinstance(media_urls, (list, tuple)):
        return len(media_urls)
    if isinstance(media_urls, dict) and isinstance(media_urls.get("urls"), list):
        return len(media_urls["urls"])
    return 1


def normalize_post(post: SavedPost) -> NormalizedDigestItem:
    ig_type = detect_content_type(post.instagram_url, post.post_type, post.media_urls)
    metadata = post.extracted_metadata or {}
    creator_handle = post.author_username or None
    caption = post.caption or None
    thumbnail_url = post.thumbnail_url or None

    # The enricher's stored score wins; otherwise score the metadata we have.
    confidence = post.content_confidence or calculate_confidence(
        caption, creator_handle, thumbnail_url, ig_type
    )

    return NormalizedDigestItem(
        id=post.id,
        url=post.instagram_url,
        ig_type=ig_type,
        creator_handle=creator_handle,
        creator_name=metadata.get("creator_name") or None,
        creator_profile_url=post.author_profile_url or None,
        posted_at=post.posted_at or None,
        thumbnail_url=thumbnail_url,
        caption_text=caption,
        media_count=parse_media_count(post.media_urls),
        audio_title=metadata.get("audio_title") or None,
        transcript_text=post.transcript_text or None,
        ocr_text=post.ocr_text or None,
        extracted_text_summary=extract_text_summary(ig_type, creator_handle, caption),
        confidence=confidence,
        raw_post=post,
    )


def normalize_posts(posts: list[SavedPost]) -> list[NormalizedDigestItem]:
    return [normalize_post(p) for p in posts]


def get_content_type_label(ig_type: ContentType) -> str:
    return _LABELS[ig_type]


def get_content_type_emoji(ig_type: ContentType) -> str:
    return _EMOJI[ig_type]


def sources_attribution(item: NormalizedDigestItem) -> str:
    """E.g. ``Transcript ❌ • OCR ✅ • Caption ✅`` for the email footer."""

    def mark(value: str | None) -> str:
        return "✅" if value else "❌"

    return " • ".join(
        [
            f"Transcript {mark(item.transcript_text)}",
            f"OCR {mark(item.ocr_text)}",
            f"Caption {mark(item.caption_text)}",
        ]
    )
