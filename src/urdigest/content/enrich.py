"""Saved-post enrichment: OCR and transcription feeding the digest generator.

Per post:
1. Mark the post ``enriching``.
2. Reels/videos: transcription (currently a documented skip, see below).
3. Images/carousels: OCR over the thumbnail or every carousel image.
4. Score the extracted content and store results with status ``completed``.

Any exception inside the attempt marks the post ``failed`` with
``processing_error`` so no row is left stuck in ``enriching``.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from urdigest.config import FeatureFlags, load_feature_flags
from urdigest.domain.models import ContentConfidence, SavedPost
from urdigest.domain.normalize import ContentType, detect_content_type, media_url_list
from urdigest.domain.stores import PostStore
from urdigest.infra.time import monotonic, utc_now
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import safe_log_context

from .ocr import OCRProvider, extract_text_from_images
from .transcribe import TranscriptionProvider

logger = get_logger(__name__)

PENDING_BATCH_LIMIT = 50

TRANSCRIPTION_UNAVAILABLE = (
    "Transcription skipped: Instagram video URL not available without Graph API"
)
TRANSCRIPTION_NO_URL = "Transcription skipped: No video URL available"


def calculate_enrichment_confidence(
    transcript_text: str | None,
    ocr_text: str | None,
    caption: str | None,
    author: str | None,
) -> ContentConfidence:
    """Score extracted content after enrichment.

    transcript >50 chars +5 (non-empty +3); OCR >50 +4 (non-empty +2);
    caption >20 +2 (non-empty +1); author +2. 10 and up is high, 5 and up
    medium, else low.
    """
    score = 0

    if transcript_text and len(transcript_text) > 50:
        score += 5
    elif transcript_text:
        score += 3

    if ocr_text and len(ocr_text) > 50:
        score += 4
    elif ocr_text:
        score += 2

    if caption and len(caption) > 20:
        score += 2
    elif caption:
        score += 1

    if author:
        score += 2

    if score >= 10:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


@dataclass
class EnrichmentResult:
    post_id: str
    success: bool = False
    transcript_extracted: bool = False
    ocr_extracted: bool = False
    transcript_text: str | None = None
    ocr_text: str | None = None
    sources_used: dict[str, bool] = field(default_factory=dict)
    confidence: ContentConfidence = "low"
    error: str | None = None
    processing_time_seconds: float = 0.0

    def add_error(self, message: str) -> None:
        self.error = f"{self.error}; {message}" if self.error else message


class ContentEnricher:
    """Runs enrichment against a PostStore.

    Args:
        posts: Store the results are written to.
        ocr: OCR provider for image and carousel media.
        transcriber: Transcription provider for reels/videos.
        flags: Feature flags; read from the environment when omitted.
    """

    def __init__(
        self,
        posts: PostStore,
        ocr: OCRProvider,
        transcriber: TranscriptionProvider | None = None,
        flags: FeatureFlags | None = None,
    ):
        self.posts = posts
        self.ocr = ocr
        self.transcriber = transcriber
        self.flags = flags or load_feature_flags()

    def _image_urls(self, post: SavedPost, content_type: ContentType) -> list[str]:
        if content_type == ContentType.CAROUSEL:
            urls = media_url_list(post.media_urls)
            if urls:
                return urls
        return [post.thumbnail_url] if post.thumbnail_url else []

    def _transcribe(self, post: SavedPost, result: EnrichmentResult) -> None:
        # The thumbnail is a still image, not the video; there is no media
        # source a TranscriptionProvider could use yet.
        if post.thumbnail_url:
            result.add_error(TRANSCRIPTION_UNAVAILABLE)
        else:
            result.add_error(TRANSCRIPTION_NO_URL)
        logger.info(
            "transcription skipped",
            extra={"extra_fields": safe_log_context(post_id=post.id)},
        )

    def _run_ocr(self, post: SavedPost, content_type: ContentType, result: EnrichmentResult) -> None:
        image_urls = self._image_urls(post, content_type)
        if not image_urls:
            result.add_error("No image URLs for OCR")
            return

        if len(image_urls) > 1:
            ocr_result = extract_text_from_images(self.ocr, image_urls)
        else:
            ocr_result = self.ocr.extract_text(image_urls[0])

        if ocr_result.success and ocr_result.text:
            result.ocr_text = ocr_result.text
            result.ocr_extracted = True
            result.sources_used["ocr"] = True
            if ocr_result.error:
                # partial carousel failure
                result.add_error(f"OCR partial: {ocr_result.error}")
        elif ocr_result.success:
            result.add_error("OCR found no text")
        else:
            result.add_error(f"OCR failed: {ocr_result.error}")

    def enrich_post(self, post: SavedPost) -> EnrichmentResult:
        started = monotonic()
        content_type = detect_content_type(post.instagram_url, post.post_type, post.media_urls)
        result = EnrichmentResult(
            post_id=post.id,
            sources_used={
                "transcript": False,
                "ocr": False,
                "caption": bool(post.caption),
                "metadata": bool(post.author_username or post.thumbnail_url),
            },
        )

        logger.info(
            "enrichment started",
            extra={"extra_fields": safe_log_context(post_id=post.id, content_type=content_type.value)},
        )

        try:
            self.posts.update(post.id, {"processing_status": "enriching"})

            if content_type in (ContentType.REEL, ContentType.VIDEO) and self.flags.enable_transcription:
                self._transcribe(post, result)

            if content_type in (ContentType.CAROUSEL, ContentType.IMAGE) and self.flags.enable_ocr:
                self._run_ocr(post, content_type, result)

            result.confidence = calculate_enrichment_confidence(
                result.transcript_text,
                result.ocr_text,
                post.caption,
                post.author_username,
            )
            result.processing_time_seconds = monotonic() - started

            self.posts.update(
                post.id,
                {
                    "transcript_text": result.transcript_text,
                    "ocr_text": result.ocr_text,
                    "sources_used": dict(result.sources_used),
                    "content_confidence": result.confidence,
                    "processing_status": "completed",
                    "processing_error": result.error,
                    "enrichment_completed_at": utc_now(),
                },
            )
            result.success = True
        except Exception as e:
            result.success = False
            result.error = str(e) or type(e).__name__
            result.processing_time_seconds = monotonic() - started
            logger.exception(
                "enrichment failed",
                extra={"extra_fields": safe_log_context(post_id=post.id, error_type=type(e).__name__)},
            )
            self._mark_failed(post.id, result.error)
            return result

        logger.info(
            "enrichment completed",
            extra={
                "extra_fields": safe_log_context(
                    post_id=post.id,
                    transcript=result.transcript_extracted,
                    ocr=result.ocr_extracted,
                    caption=result.sources_used["caption"],
                    confidence=result.confidence,
                    duration_seconds=round(result.processing_time_seconds, 2),
                )
            },
        )
        return result

    def _mark_failed(self, post_id: str, error: str) -> None:
        try:
            self.posts.update(
                post_id, {"processing_status": "failed", "processing_error": error}
            )
        except Exception:
            logger.exception(
                "could not mark post failed",
                extra={"extra_fields": safe_log_context(post_id=post_id)},
            )

    def enrich_posts(self, posts: list[SavedPost], concurrent: int = 1) -> list[EnrichmentResult]:
        """Enrich posts in chunks of ``concurrent``; chunks run one after another."""
        concurrent = max(1, concurrent or 1)
        results: list[EnrichmentResult] = []

        logger.info(
            "batch enrichment started",
            extra={"extra_fields": safe_log_context(total=len(posts), concurrent=concurrent)},
        )

        if concurrent == 1:
            for post in posts:
                results.append(self.enrich_post(post))
        else:
            with ThreadPoolExecutor(max_workers=concurrent) as pool:
                for start in range(0, len(posts), concurrent):
                    chunk = posts[start : start + concurrent]
                    results.extend(pool.map(self.enrich_post, chunk))

        logger.info(
            "batch enrichment completed",
            extra={
                "extra_fields": safe_log_context(
                    total=len(posts),
                    succeeded=sum(1 for r in results if r.success),
                    with_transcript=sum(1 for r in results if r.transcript_extracted),
                    with_ocr=sum(1 for r in results if r.ocr_extracted),
                )
            },
        )
        return results

    def enrich_pending_posts(
        self, limit: int = PENDING_BATCH_LIMIT, concurrent: int = 1
    ) -> list[EnrichmentResult]:
        """Enrich up to ``limit`` posts still in ``pending`` status."""
        posts = self.posts.list_by_status("pending", limit=limit)
        if not posts:
            logger.info("no pending posts")
            return []
        return self.enrich_posts(posts, concurrent=concurrent)
