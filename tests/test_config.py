"""Tests for environment-driven settings and wiring."""

import pytest

from urdigest.api.wiring import build_deduplicator
from urdigest.config import ConfigurationError, env_flag, load_feature_flags, require_env
from urdigest.domain.dedup import InMemoryDeduplicator
from urdigest.infra.repositories.processed_messages_repository import PostgresDeduplicator


class TestEnvFlag:
    @pytest.mark.parametrize("raw,expected", [(None, True), ("false", False), ("FALSE", False), ("0", True), ("no", True)])
    def test_default_on(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("FLAG", raising=False)
        else:
            monkeypatch.setenv("FLAG", raw)
        assert env_flag("FLAG", True) is expected

    @pytest.mark.parametrize("raw,expected", [(None, False), ("true", True), (" True ", True), ("1", False), ("yes", False)])
    def test_default_off(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("FLAG", raising=False)
        else:
            monkeypatch.setenv("FLAG", raw)
        assert env_flag("FLAG", False) is expected


class TestFeatureFlags:
    def test_defaults(self, monkeypatch):
        for name in ("ENABLE_TRANSCRIPTION", "ENABLE_OCR", "ENABLE_MEDIA_DOWNLOAD"):
            monkeypatch.delenv(name, raising=False)
        flags = load_feature_flags()
        assert flags.enable_transcription is True
        assert flags.enable_ocr is True
        assert flags.enable_media_download is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ENABLE_OCR", "false")
        monkeypatch.setenv("ENABLE_MEDIA_DOWNLOAD", "true")
        flags = load_feature_flags()
        assert flags.enable_ocr is False
        assert flags.enable_media_download is True


class TestRequireEnv:
    def test_missing(self, monkeypatch):
        monkeypatch.delenv("SOME_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="SOME_KEY"):
            require_env("SOME_KEY")

    def test_blank_is_missing(self, monkeypatch):
        monkeypatch.setenv("SOME_KEY", "   ")
        with pytest.raises(ConfigurationError):
            require_env("SOME_KEY")

    def test_present(self, monkeypatch):
        monkeypatch.setenv("SOME_KEY", "value")
        assert require_env("SOME_KEY") == "value"


class TestDedupBackend:
    def test_memory_default(self, monkeypatch):
        monkeypatch.delenv("DEDUP_BACKEND", raising=False)
        assert isinstance(build_deduplicator(), InMemoryDeduplicator)

    def test_postgres(self, monkeypatch):
        monkeypatch.setenv("DEDUP_BACKEND", "postgres")
        assert isinstance(build_deduplicator(), PostgresDeduplicator)

    def test_unknown(self, monkeypatch):
        monkeypatch.setenv("DEDUP_BACKEND", "redis")
        with pytest.raises(ConfigurationError):
            build_deduplicator()
