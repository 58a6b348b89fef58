"""OCR over post images.

TesseractOCRProvider downloads an image with requests, decodes it with
Pillow and runs pytesseract in memory (no temp files). Providers never raise;
every failure becomes an OCRResult with success=False and an error string.
"""

from __future__ import annotations

import io
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import pytesseract
import requests
from PIL import Image, UnidentifiedImageError

from urdigest.config import env_str
from urdigest.infra.time import monotonic
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

DOWNLOAD_TIMEOUT = 15

# Instagram CDN images are well under this
MAX_IMAGE_BYTES = 20 * 1024 * 1024

_BLANK_LINES = re.compile(r"\n\s*\n")
_SPACES = re.compile(r"[ \t]+")


@dataclass(frozen=True)
class OCRResult:
    success: bool
    text: str | None
    confidence: float | None
    error: str | None
    duration_seconds: float = 0.0


class OCRProvider(ABC):
    @abstractmethod
    def extract_text(self, image_url: str) -> OCRResult:
        """Run OCR on one image URL. Must not raise."""
        ...


def clean_ocr_text(raw: str) -> str:
    """Collapse blank lines and runs of spaces/tabs."""
    text = _BLANK_LINES.sub("\n", raw.strip())
    return _SPACES.sub(" ", text)


class TesseractOCRProvider(OCRProvider):
    """pytesseract-backed provider.

    Args:
        language: Tesseract language code; defaults to TESSERACT_LANG or "eng".
        session: Optional requests session (connection reuse, tests).
    """

    def __init__(self, language: str | None = None, session: requests.Session | None = None):
        self.language = language or env_str("TESSERACT_LANG", "eng") or "eng"
        self.session = session or requests.Session()

    def _download(self, url: str) -> bytes:
        response = self.session.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        content = response.content
        if len(content) > MAX_IMAGE_BYTES:
            raise ValueError(f"image too large: {len(content)} bytes")
        return content

    def _recognize(self, content: bytes) -> tuple[str, float | None]:
        with Image.open(io.BytesIO(content)) as image:
            data = pytesseract.image_to_data(
                image, lang=self.language, output_type=pytesseract.Output.DICT
            )

        # Rebuild text line by line from word boxes
        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences: list[float] = []
        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            conf = float(data["conf"][i])
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
            confidences.append(conf)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        avg = sum(confidences) / len(confidences) if confidences else None
        return text, avg

    def extract_text(self, image_url: str) -> OCRResult:
        started = monotonic()
        url_hash = hash_identifier(image_url)
        try:
            content = self._download(image_url)
            raw_text, confidence = self._recognize(content)
        except (
            requests.RequestException,
            UnidentifiedImageError,
            pytesseract.TesseractError,
            OSError,
            ValueError,
        ) as e:
            duration = monotonic() - started
            logger.warning(
                "ocr failed",
                extra={
                    "extra_fields": safe_log_context(
                        url_hash=url_hash,
                        error_type=type(e).__name__,
                        duration_seconds=round(duration, 2),
                    )
                },
            )
            return OCRResult(
                success=False,
                text=None,
                confidence=None,
                error=str(e) or type(e).__name__,
                duration_seconds=duration,
            )

        text = clean_ocr_text(raw_text)
        duration = monotonic() - started
        logger.info(
            "ocr completed",
            extra={
                "extra_fields": safe_log_context(
                    url_hash=url_hash,
                    text_len=len(text),
                    confidence=round(confidence, 2) if confidence is not None else None,
                    duration_seconds=round(duration, 2),
                )
            },
        )
        return OCRResult(
            success=True,
            text=text or None,
            confidence=confidence,
            error=None,
            duration_seconds=duration,
        )


def extract_text_from_images(provider: OCRProvider, image_urls: list[str]) -> OCRResult:
    """OCR a carousel, one image at a time.

    Only images that produced text count as successes. Their text is joined
    as ``[Image N]\\n<text>`` sections numbered 1..k in carousel order, so
    a failed or blank image leaves no gap. Confidence is the mean over those
    images, a missing confidence counting as 0. Every other image is counted
    in ``error`` as ``"<k> images failed"``; when none produced text the
    result is unsuccessful.
    """
    started = monotonic()
    if not image_urls:
        return OCRResult(success=False, text=None, confidence=None, error="No image URLs for OCR")

    texts: list[str] = []
    confidences: list[float] = []

    # Sequential on purpose: OCR backends and the CDN rate-limit bursts
    for position, url in enumerate(image_urls, start=1):
        result = provider.extract_text(url)
        if not result.success:
            logger.warning(
                "carousel image ocr failed",
                extra={"extra_fields": safe_log_context(position=position, total=len(image_urls))},
            )
            continue
        if result.text:
            texts.append(result.text)
            confidences.append(result.confidence or 0.0)

    duration = monotonic() - started
    failed = len(image_urls) - len(texts)

    if not texts:
        return OCRResult(
            success=False,
            text=None,
            confidence=None,
            error=f"All {len(image_urls)} images failed OCR",
            duration_seconds=duration,
        )

    combined = "\n\n".join(f"[Image {n}]\n{text}" for n, text in enumerate(texts, start=1))
    logger.info(
        "carousel ocr completed",
        extra={
            "extra_fields": safe_log_context(
                succeeded=len(texts),
                total=len(image_urls),
                text_len=len(combined),
            )
        },
    )
    return OCRResult(
        success=True,
        text=combined,
        confidence=sum(confidences) / len(confidences),
        error=f"{failed} images failed" if failed else None,
        duration_seconds=duration,
    )
