"""Saved posts with enrichment columns (SQL-only).

Revision ID: 002_saved_posts
Revises: 001_users
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op


revision = "002_saved_posts"
down_revision = "001_users"
branch_labels = None
depends_on = None

_SQL = """
CREATE TABLE IF NOT EXISTS saved_posts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    instagram_url TEXT NOT NULL,
    instagram_post_id TEXT,
    post_type TEXT,
    caption TEXT,
    author_username TEXT,
    author_profile_url TEXT,
    posted_at TIMESTAMPTZ,
    media_urls JSONB,
    thumbnail_url TEXT,
    extracted_metadata JSONB,
    transcript_text TEXT,
    ocr_text TEXT,
    sources_used JSONB,
    content_confidence TEXT
        CHECK (content_confidence IN ('high', 'medium', 'low')),
    processing_status TEXT NOT NULL DEFAULT 'pending'
        CHECK (processing_status IN ('pending', 'enriching', 'completed', 'failed')),
    processing_error TEXT,
    enrichment_completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT saved_posts_user_post_uniq UNIQUE (user_id, instagram_post_id)
);

CREATE INDEX IF NOT EXISTS idx_saved_posts_status_created
    ON saved_posts (processing_status, created_at);
"""


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(_SQL)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS saved_posts")
