"""Saved posts repository - Postgres-backed PostStore.

JSONB columns (media_urls, extracted_metadata, sources_used) are wrapped
with psycopg2's Json adapter on write and come back as Python objects.
"""

from __future__ import annotations

import uuid
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json

from urdigest.domain.models import SavedPost
from urdigest.domain.stores import PostStore, StoreError
from urdigest.infra.db import txn
from urdigest.infra.time import utc_now

_COLUMNS = (
    "id",
    "user_id",
    "instagram_url",
    "instagram_post_id",
    "post_type",
    "caption",
    "author_username",
    "author_profile_url",
    "posted_at",
    "media_urls",
    "thumbnail_url",
    "extracted_metadata",
    "transcript_text",
    "ocr_text",
    "sources_used",
    "content_confidence",
    "processing_status",
    "processing_error",
    "enrichment_completed_at",
)

_JSON_COLUMNS = frozenset({"media_urls", "extracted_metadata", "sources_used"})
_WRITABLE = frozenset(_COLUMNS) - {"id", "user_id"}

_SELECT = sql.SQL("SELECT {cols} FROM saved_posts").format(
    cols=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)
)


def _row_to_post(row: tuple[Any, ...]) -> SavedPost:
    data = dict(zip(_COLUMNS, row))
    data["id"] = str(data["id"])
    data["user_id"] = str(data["user_id"])
    if data["posted_at"] is not None:
        data["posted_at"] = str(data["posted_at"])
    return SavedPost(**data)


def _to_db(name: str, value: Any) -> Any:
    if name in _JSON_COLUMNS and value is not None:
        return Json(value)
    return value


class PostgresPostStore(PostStore):
    def find_by_user_and_external_post_id(
        self, user_id: str, instagram_post_id: str
    ) -> SavedPost | None:
        query = _SELECT + sql.SQL(" WHERE user_id = %s AND instagram_post_id = %s LIMIT 1")
        rows = self._fetch(query, (user_id, instagram_post_id))
        return rows[0] if rows else None

    def insert(self, fields: dict[str, Any]) -> SavedPost:
        values = dict(fields)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("processing_status", "pending")
        unknown = set(values) - set(_COLUMNS)
        if unknown:
            raise StoreError(f"unknown saved_posts columns: {sorted(unknown)}")

        names = list(values)
        query = sql.SQL(
            "INSERT INTO saved_posts ({cols}) VALUES ({vals}) RETURNING {ret}"
        ).format(
            cols=sql.SQL(", ").join(sql.Identifier(n) for n in names),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in names),
            ret=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS),
        )
        try:
            with txn() as cur:
                cur.execute(query, [_to_db(n, values[n]) for n in names])
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"saved post insert failed: {type(e).__name__}") from e
        return _row_to_post(row)

    def update(self, post_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        unknown = set(fields) - _WRITABLE
        if unknown:
            raise StoreError(f"unknown saved_posts columns: {sorted(unknown)}")

        names = list(fields)
        query = sql.SQL(
            "UPDATE saved_posts SET {assignments}, updated_at = %s WHERE id = %s"
        ).format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(n)) for n in names
            )
        )
        params = [_to_db(n, fields[n]) for n in names] + [utc_now(), post_id]
        try:
            with txn() as cur:
                cur.execute(query, params)
        except psycopg2.Error as e:
            raise StoreError(f"saved post update failed: {type(e).__name__}") from e

    def list_by_status(self, status: str, limit: int = 50) -> list[SavedPost]:
        query = _SELECT + sql.SQL(" WHERE processing_status = %s ORDER BY created_at LIMIT %s")
        return self._fetch(query, (status, limit))

    def _fetch(self, query: sql.Composable, params: tuple[Any, ...]) -> list[SavedPost]:
        try:
            with txn() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise StoreError(f"saved post lookup failed: {type(e).__name__}") from e
        return [_row_to_post(r) for r in rows]
