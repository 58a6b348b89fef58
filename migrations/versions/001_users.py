"""Users and onboarding state (SQL-only).

Revision ID: 001_users
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_users"
down_revision = None
branch_labels = None
depends_on = None

_SQL = """
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email TEXT NOT NULL UNIQUE,
    instagram_user_id TEXT UNIQUE,
    instagram_username TEXT,
    onboarding_state TEXT
        CHECK (onboarding_state IN ('awaiting_email', 'awaiting_time', 'onboarded')),
    digest_time TIME,
    digest_enabled BOOLEAN NOT NULL DEFAULT FALSE,
    timezone TEXT NOT NULL DEFAULT 'UTC',
    total_posts_saved INTEGER NOT NULL DEFAULT 0,
    total_digests_sent INTEGER NOT NULL DEFAULT 0,
    last_post_received_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


def upgrade() -> None:
    # Raw execution keeps the script as one unit.
    conn = op.get_bind()
    conn.exec_driver_sql(_SQL)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users")
