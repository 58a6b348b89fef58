"""Speech-to-text for reels and videos via the OpenAI Whisper HTTP API.

Wired into the enricher but not reached in practice: Instagram does not hand
out direct video URLs without deeper Graph API access, so the enricher skips
transcription and records why. The provider is complete so it can be turned
on once a media source exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests

from urdigest.config import ConfigurationError, require_env
from urdigest.infra.time import monotonic
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

WHISPER_URL = "https://api.openai.com/v1/audio/transcriptions"
WHISPER_MODEL = "whisper-1"

# Whisper rejects uploads above 25 MB
MAX_UPLOAD_BYTES = 25 * 1024 * 1024

DOWNLOAD_TIMEOUT = 30
TRANSCRIBE_TIMEOUT = 120


@dataclass(frozen=True)
class TranscriptionResult:
    success: bool
    text: str | None
    error: str | None
    duration_seconds: float | None = None
    language: str | None = None


class TranscriptionProvider(ABC):
    @abstractmethod
    def transcribe(self, media_url: str) -> TranscriptionResult:
        """Transcribe audio/video at a URL. Must not raise."""
        ...


class WhisperTranscriptionProvider(TranscriptionProvider):
    def __init__(
        self,
        api_key: str | None = None,
        language: str | None = None,
        session: requests.Session | None = None,
    ):
        self._api_key = api_key
        self.language = language
        self.session = session or requests.Session()

    def _key(self) -> str:
        return self._api_key or require_env("OPENAI_API_KEY")

    def transcribe(self, media_url: str) -> TranscriptionResult:
        started = monotonic()
        url_hash = hash_identifier(media_url)
        try:
            api_key = self._key()

            download = self.session.get(media_url, timeout=DOWNLOAD_TIMEOUT)
            download.raise_for_status()
            media = download.content
            if len(media) > MAX_UPLOAD_BYTES:
                size_mb = len(media) / (1024 * 1024)
                return TranscriptionResult(
                    success=False,
                    text=None,
                    error=f"File too large: {size_mb:.2f} MB (max 25 MB)",
                )

            data = {"model": WHISPER_MODEL, "response_format": "verbose_json"}
            if self.language:
                data["language"] = self.language

            response = self.session.post(
                WHISPER_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                files={"file": ("media.mp4", media, "video/mp4")},
                data=data,
                timeout=TRANSCRIBE_TIMEOUT,
            )
            response.raise_for_status()
            body = response.json()
        except (ConfigurationError, requests.RequestException, ValueError) as e:
            logger.warning(
                "transcription failed",
                extra={
                    "extra_fields": safe_log_context(
                        url_hash=url_hash,
                        error_type=type(e).__name__,
                        elapsed_seconds=round(monotonic() - started, 2),
                    )
                },
            )
            return TranscriptionResult(success=False, text=None, error=str(e) or type(e).__name__)

        text = (body.get("text") or "").strip()
        logger.info(
            "transcription completed",
            extra={
                "extra_fields": safe_log_context(
                    url_hash=url_hash,
                    text_len=len(text),
                    elapsed_seconds=round(monotonic() - started, 2),
                )
            },
        )
        return TranscriptionResult(
            success=True,
            text=text or None,
            error=None,
            duration_seconds=body.get("duration"),
            language=body.get("language"),
        )
