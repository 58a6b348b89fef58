"""Tests for observability utilities."""

import json
import logging

from urdigest.observability.correlation import (
    correlation_id_from_header,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from urdigest.observability.logging import JsonFormatter, get_logger
from urdigest.observability.redaction import (
    hash_identifier,
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    def test_redact_email(self):
        result = redact_string("Email: user@example.com")
        assert "user@example.com" not in result
        assert "[REDACTED]" in result

    def test_redact_handle(self):
        result = redact_string("shared by @some.creator")
        assert "some.creator" not in result

    def test_redact_phone_number(self):
        result = redact_string("Call me at +55 11 99999-8888")
        assert "99999" not in result

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"email": "a@b.co", "text": "secret"})
        assert "secret" not in result
        assert "email" in result

    def test_redact_value_list_only_len(self):
        assert redact_value(["a", "b", "c"]) == "list(len=3)"

    def test_scalars(self):
        assert redact_value(None) == "null"
        assert redact_value(True) == "true"
        assert redact_value(3) == "3"

    def test_safe_log_context(self):
        ctx = safe_log_context(email="sam@example.com", count=42)
        assert ctx["email"] == "[REDACTED]"
        assert ctx["count"] == "42"


class TestHashIdentifier:
    def test_stable_and_short(self):
        assert hash_identifier("1789001") == hash_identifier("1789001")
        assert len(hash_identifier("1789001")) == 12
        assert hash_identifier("1789001") != hash_identifier("1789002")

    def test_survives_redaction(self):
        digest = hash_identifier("17841400000000")
        assert redact_string(digest) == digest

    def test_empty(self):
        assert hash_identifier(None) == "none"
        assert hash_identifier("") == "none"


class TestJsonFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("urdigest.test", logging.INFO, __file__, 1, "hello", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        out = json.loads(JsonFormatter().format(self._record()))
        assert out["message"] == "hello"
        assert out["level"] == "INFO"
        assert out["logger"] == "urdigest.test"
        assert out["service"] == "urdigest"
        assert "correlationId" not in out

    def test_extra_fields_merged(self):
        out = json.loads(JsonFormatter().format(self._record(extra_fields={"post_id": "p1"})))
        assert out["post_id"] == "p1"

    def test_extra_fields_cannot_override_fixed_keys(self):
        out = json.loads(JsonFormatter().format(self._record(extra_fields={"level": "DEBUG", "service": "x"})))
        assert out["level"] == "INFO"
        assert out["service"] == "urdigest"

    def test_correlation_id_included(self):
        token = set_correlation_id("cid-1")
        try:
            out = json.loads(JsonFormatter().format(self._record()))
        finally:
            reset_correlation_id(token)
        assert out["correlationId"] == "cid-1"
        assert get_correlation_id() == ""


class TestGetLogger:
    def test_single_handler(self):
        first = get_logger("urdigest.test.single")
        second = get_logger("urdigest.test.single")
        assert first is second
        assert len(first.handlers) == 1
        assert isinstance(first.handlers[0].formatter, JsonFormatter)

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert get_logger("urdigest.test.level_env").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert get_logger("urdigest.test.level_unknown").level == logging.INFO


class TestCorrelationHeader:
    def test_plain_id_reused(self):
        assert correlation_id_from_header("run-2024.10:7") == "run-2024.10:7"

    def test_missing_id_generated(self):
        assert len(correlation_id_from_header(None)) == 36
        assert correlation_id_from_header("") != ""

    def test_unsafe_id_replaced(self):
        assert correlation_id_from_header("abc\n") != "abc\n"
        assert len(correlation_id_from_header("a" * 200)) == 36
