"""Tests for Postgres repositories with a mocked cursor.

The integration class at the bottom runs only when DATABASE_URL is set and
the migrations have been applied.
"""

from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from datetime import time
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.extras import Json

from urdigest.domain.models import OnboardingState
from urdigest.domain.stores import StoreError
from urdigest.infra.repositories.posts_repository import PostgresPostStore
from urdigest.infra.repositories.processed_messages_repository import PostgresDeduplicator
from urdigest.infra.repositories.users_repository import PostgresUserStore

_USER_ROW = (
    uuid.UUID("11111111-1111-1111-1111-111111111111"),
    "sam@example.com",
    "42",
    "sam",
    "onboarded",
    time(8, 0),
    True,
    "UTC",
    3,
    1,
    None,
)


def _fake_txn(cursor):
    @contextmanager
    def fake():
        yield cursor

    return fake


def _cursor(fetchone=None, fetchall=None, rowcount=1):
    cur = MagicMock()
    cur.fetchone.return_value = fetchone
    cur.fetchall.return_value = fetchall or []
    cur.rowcount = rowcount
    return cur


class TestPostgresUserStore:
    def test_row_mapping(self):
        cur = _cursor(fetchone=_USER_ROW)
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            user = PostgresUserStore().find_by_external_id("42")

        assert user.id == "11111111-1111-1111-1111-111111111111"
        assert user.onboarding_state == OnboardingState.ONBOARDED
        assert user.digest_time == "08:00:00"
        assert user.total_posts_saved == 3
        assert cur.execute.call_args.args[1] == ("42",)

    def test_not_found(self):
        cur = _cursor(fetchone=None)
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            assert PostgresUserStore().get("missing") is None

    def test_unknown_state_maps_to_none(self):
        row = list(_USER_ROW)
        row[4] = "legacy_state"
        cur = _cursor(fetchone=tuple(row))
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            assert PostgresUserStore().get("x").onboarding_state is None

    def test_update_serializes_enum(self):
        cur = _cursor()
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            PostgresUserStore().update("u1", {"onboarding_state": OnboardingState.AWAITING_TIME})
        params = cur.execute.call_args.args[1]
        assert params[0] == "awaiting_time"
        assert params[-1] == "u1"

    def test_update_missing_user(self):
        cur = _cursor(rowcount=0)
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            with pytest.raises(StoreError):
                PostgresUserStore().update("u1", {"digest_enabled": False})

    def test_update_rejects_unknown_columns(self):
        with pytest.raises(StoreError):
            PostgresUserStore().update("u1", {"password": "x"})

    def test_driver_errors_wrapped(self):
        cur = _cursor()
        cur.execute.side_effect = psycopg2.OperationalError("gone")
        with patch("urdigest.infra.repositories.users_repository.txn", _fake_txn(cur)):
            with pytest.raises(StoreError):
                PostgresUserStore().find_by_external_id("42")


class TestPostgresPostStore:
    def test_insert_wraps_json_columns(self):
        returned = ("pid", "uid", "https://i/p/A/", "A") + (None,) * 12 + ("pending", None, None)
        cur = _cursor(fetchone=returned)
        with patch("urdigest.infra.repositories.posts_repository.txn", _fake_txn(cur)):
            post = PostgresPostStore().insert(
                {"user_id": "uid", "instagram_url": "https://i/p/A/", "media_urls": ["a", "b"]}
            )

        params = cur.execute.call_args.args[1]
        assert any(isinstance(p, Json) for p in params)
        assert post.id == "pid"
        assert post.processing_status == "pending"

    def test_list_by_status(self):
        cur = _cursor(fetchall=[])
        with patch("urdigest.infra.repositories.posts_repository.txn", _fake_txn(cur)):
            assert PostgresPostStore().list_by_status("pending", limit=5) == []
        assert cur.execute.call_args.args[1] == ("pending", 5)

    def test_update_rejects_user_id(self):
        with pytest.raises(StoreError):
            PostgresPostStore().update("p", {"user_id": "other"})


class TestPostgresDeduplicator:
    def test_seen(self):
        cur = _cursor(fetchone=(1,))
        with patch("urdigest.infra.repositories.processed_messages_repository.txn", _fake_txn(cur)):
            assert PostgresDeduplicator().seen("m1")
        assert cur.execute.call_args.args[1][:2] == ("instagram_webhook", "m1")

    def test_record_upserts(self):
        cur = _cursor()
        with patch("urdigest.infra.repositories.processed_messages_repository.txn", _fake_txn(cur)):
            PostgresDeduplicator().record("m1")
        assert "ON CONFLICT" in cur.execute.call_args.args[0]

    def test_purge_returns_rowcount(self):
        cur = _cursor(rowcount=7)
        with patch("urdigest.infra.repositories.processed_messages_repository.txn", _fake_txn(cur)):
            assert PostgresDeduplicator().purge_expired() == 7


@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping Postgres integration tests",
)
class TestPostgresIntegration:
    def test_user_lifecycle(self):
        store = PostgresUserStore()
        external_id = f"it-{uuid.uuid4()}"
        user = store.create(
            {
                "email": f"pending_{external_id}@placeholder.urdigest",
                "instagram_user_id": external_id,
                "onboarding_state": OnboardingState.AWAITING_EMAIL,
            }
        )
        store.update(user.id, {"digest_time": "08:00:00", "digest_enabled": True})
        found = store.find_by_external_id(external_id)
        assert found.digest_time == "08:00:00"
        assert found.digest_enabled is True

    def test_dedup_roundtrip(self):
        dedup = PostgresDeduplicator()
        message_id = f"it-{uuid.uuid4()}"
        assert not dedup.seen(message_id)
        dedup.record(message_id)
        assert dedup.seen(message_id)
        dedup.forget(message_id)
        assert not dedup.seen(message_id)
