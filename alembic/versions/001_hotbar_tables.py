"""hotbar state tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op


revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One versioned state document per owner
    op.execute("""
        CREATE TABLE hotbar_documents (
            owner_id TEXT PRIMARY KEY,
            version INTEGER NOT NULL DEFAULT 0,
            document JSONB NOT NULL,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    # Pre-unification per-owner flags, deleted once migrated
    op.execute("""
        CREATE TABLE hotbar_legacy_flags (
            owner_id TEXT NOT NULL,
            flag TEXT NOT NULL,
            value JSONB,
            PRIMARY KEY (owner_id, flag)
        );
    """)

    # Global values (GM alternate hotbar)
    op.execute("""
        CREATE TABLE hotbar_settings (
            key TEXT PRIMARY KEY,
            value JSONB,
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_hotbar_documents_updated ON hotbar_documents(updated_at);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS hotbar_settings CASCADE;")
    op.execute("DROP TABLE IF EXISTS hotbar_legacy_flags CASCADE;")
    op.execute("DROP TABLE IF EXISTS hotbar_documents CASCADE;")
