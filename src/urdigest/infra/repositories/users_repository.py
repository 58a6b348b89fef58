"""Users repository - Postgres-backed UserStore.

Uses raw SQL with psycopg2 (no ORM). Each call runs in its own short
transaction; the onboarding dialogue does not need multi-statement atomicity.
"""

from __future__ import annotations

import uuid
from typing import Any

import psycopg2
from psycopg2 import sql

from urdigest.domain.models import OnboardingState, User, parse_state
from urdigest.domain.stores import StoreError, UserStore
from urdigest.infra.db import txn
from urdigest.infra.time import utc_now

_COLUMNS = (
    "id",
    "email",
    "instagram_user_id",
    "instagram_username",
    "onboarding_state",
    "digest_time",
    "digest_enabled",
    "timezone",
    "total_posts_saved",
    "total_digests_sent",
    "last_post_received_at",
)

_WRITABLE = frozenset(_COLUMNS) - {"id"}

_SELECT = sql.SQL("SELECT {cols} FROM users").format(
    cols=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)
)


def _row_to_user(row: tuple[Any, ...]) -> User:
    data = dict(zip(_COLUMNS, row))
    data["id"] = str(data["id"])
    data["onboarding_state"] = parse_state(data["onboarding_state"])
    if data["digest_time"] is not None:
        # TIME column comes back as datetime.time
        data["digest_time"] = str(data["digest_time"])
    data["digest_enabled"] = bool(data["digest_enabled"])
    data["total_posts_saved"] = data["total_posts_saved"] or 0
    data["total_digests_sent"] = data["total_digests_sent"] or 0
    return User(**data)


def _to_db(value: Any) -> Any:
    if isinstance(value, OnboardingState):
        return value.value
    return value


class PostgresUserStore(UserStore):
    def find_by_external_id(self, instagram_user_id: str) -> User | None:
        query = _SELECT + sql.SQL(" WHERE instagram_user_id = %s")
        return self._fetch_one(query, (instagram_user_id,))

    def get(self, user_id: str) -> User | None:
        query = _SELECT + sql.SQL(" WHERE id = %s")
        return self._fetch_one(query, (user_id,))

    def create(self, fields: dict[str, Any]) -> User:
        values = {k: _to_db(v) for k, v in fields.items()}
        values.setdefault("id", str(uuid.uuid4()))
        unknown = set(values) - set(_COLUMNS)
        if unknown:
            raise StoreError(f"unknown user columns: {sorted(unknown)}")

        names = list(values)
        query = sql.SQL("INSERT INTO users ({cols}) VALUES ({vals}) RETURNING {ret}").format(
            cols=sql.SQL(", ").join(sql.Identifier(n) for n in names),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in names),
            ret=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS),
        )
        try:
            with txn() as cur:
                cur.execute(query, [values[n] for n in names])
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"user insert failed: {type(e).__name__}") from e
        return _row_to_user(row)

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        unknown = set(fields) - _WRITABLE
        if unknown:
            raise StoreError(f"unknown user columns: {sorted(unknown)}")

        names = list(fields)
        query = sql.SQL("UPDATE users SET {assignments}, updated_at = %s WHERE id = %s").format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(n)) for n in names
            )
        )
        params = [_to_db(fields[n]) for n in names] + [utc_now(), user_id]
        try:
            with txn() as cur:
                cur.execute(query, params)
                if cur.rowcount == 0:
                    raise StoreError(f"user not found: {user_id}")
        except psycopg2.Error as e:
            raise StoreError(f"user update failed: {type(e).__name__}") from e

    def _fetch_one(self, query: sql.Composable, params: tuple[Any, ...]) -> User | None:
        try:
            with txn() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"user lookup failed: {type(e).__name__}") from e
        return _row_to_user(row) if row else None
