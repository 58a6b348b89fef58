"""Shared replay window backed by the processed_messages table.

Rows older than the retention window are ignored by seen() and removed by
purge_expired(), which the scheduler can call periodically.
"""

from __future__ import annotations

from datetime import timedelta

import psycopg2

from urdigest.domain.dedup import MessageDeduplicator
from urdigest.domain.stores import StoreError
from urdigest.infra.db import txn
from urdigest.infra.time import utc_now

# Meta retries failed deliveries for up to a day
DEFAULT_RETENTION = timedelta(hours=24)

SOURCE = "instagram_webhook"


class PostgresDeduplicator(MessageDeduplicator):
    def __init__(self, retention: timedelta = DEFAULT_RETENTION) -> None:
        self.retention = retention

    def seen(self, message_id: str) -> bool:
        cutoff = utc_now() - self.retention
        try:
            with txn() as cur:
                cur.execute(
                    """
                    SELECT 1 FROM processed_messages
                    WHERE source = %s AND message_id = %s AND received_at >= %s
                    """,
                    (SOURCE, message_id, cutoff),
                )
                return cur.fetchone() is not None
        except psycopg2.Error as e:
            raise StoreError(f"dedup lookup failed: {type(e).__name__}") from e

    def record(self, message_id: str) -> None:
        try:
            with txn() as cur:
                cur.execute(
                    """
                    INSERT INTO processed_messages (source, message_id, received_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (source, message_id) DO UPDATE
                    SET received_at = EXCLUDED.received_at
                    """,
                    (SOURCE, message_id, utc_now()),
                )
        except psycopg2.Error as e:
            raise StoreError(f"dedup insert failed: {type(e).__name__}") from e

    def forget(self, message_id: str) -> None:
        try:
            with txn() as cur:
                cur.execute(
                    "DELETE FROM processed_messages WHERE source = %s AND message_id = %s",
                    (SOURCE, message_id),
                )
        except psycopg2.Error as e:
            raise StoreError(f"dedup delete failed: {type(e).__name__}") from e

    def purge_expired(self) -> int:
        """Delete rows outside the retention window. Returns rows removed."""
        cutoff = utc_now() - self.retention
        try:
            with txn() as cur:
                cur.execute(
                    "DELETE FROM processed_messages WHERE source = %s AND received_at < %s",
                    (SOURCE, cutoff),
                )
                return cur.rowcount
        except psycopg2.Error as e:
            raise StoreError(f"dedup purge failed: {type(e).__name__}") from e
