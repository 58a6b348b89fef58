"""Environment-driven settings.

Values are read at call time (not import time) so tests can monkeypatch the
environment per test.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigurationError(RuntimeError):
    """Raised when a required secret or API key is not configured."""


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag.

    Default-on flags are disabled only by the literal ``false``; default-off
    flags are enabled only by the literal ``true``.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if default:
        return value != "false"
    return value == "true"


def env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def require_env(name: str) -> str:
    """Return a non-empty env var or raise ConfigurationError."""
    value = env_str(name)
    if not value:
        raise ConfigurationError(f"{name} not configured")
    return value


@dataclass(frozen=True)
class FeatureFlags:
    """Content extraction feature flags.

    Attributes:
        enable_transcription: Attempt transcription for reels/videos.
        enable_ocr: Run OCR over image and carousel media.
        enable_media_download: Reserved; no downstream consumer yet.
    """

    enable_transcription: bool = True
    enable_ocr: bool = True
    enable_media_download: bool = False


def load_feature_flags() -> FeatureFlags:
    return FeatureFlags(
        enable_transcription=env_flag("ENABLE_TRANSCRIPTION", True),
        enable_ocr=env_flag("ENABLE_OCR", True),
        enable_media_download=env_flag("ENABLE_MEDIA_DOWNLOAD", False),
    )
