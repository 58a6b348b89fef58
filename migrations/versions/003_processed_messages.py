"""Webhook replay window shared across instances (SQL-only).

Revision ID: 003_processed_messages
Revises: 002_saved_posts
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op


revision = "003_processed_messages"
down_revision = "002_saved_posts"
branch_labels = None
depends_on = None

_SQL = """
CREATE TABLE IF NOT EXISTS processed_messages (
    source TEXT NOT NULL,
    message_id TEXT NOT NULL,
    received_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (source, message_id)
);

CREATE INDEX IF NOT EXISTS idx_processed_messages_received_at
    ON processed_messages (received_at);
"""


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(_SQL)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS processed_messages")
