"""Anonymous usage tables: device_tokens and network_origins.

Creates the two counter tables behind the anonymous search quota:

1. device_tokens    - one row per server-minted identity token
2. network_origins  - one row per salted SHA-256 of a client address

Both counters carry a ``search_count >= 0`` check constraint.  Increments are
issued as single UPDATE / INSERT ... ON CONFLICT statements by the
application, so the schema needs no triggers.  Both tables carry an
expression index on ``coalesce(last_search_at, created_at)`` for the
retention purge.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the anonymous usage tables and their indexes."""

    # ------------------------------------------------------------------
    # 1. device_tokens
    # ------------------------------------------------------------------
    op.create_table(
        "device_tokens",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("search_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_search_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("token", name="uq_device_tokens_token"),
        sa.CheckConstraint("search_count >= 0", name="ck_device_tokens_search_count_nonneg"),
    )
    op.create_index("idx_device_tokens_created_at", "device_tokens", ["created_at"])
    op.create_index(
        "idx_device_tokens_last_activity",
        "device_tokens",
        [sa.text("coalesce(last_search_at, created_at)")],
    )

    # ------------------------------------------------------------------
    # 2. network_origins
    # ------------------------------------------------------------------
    op.create_table(
        "network_origins",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("hashed_address", sa.String(64), nullable=False),
        sa.Column("search_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_search_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("hashed_address", name="uq_network_origins_hashed_address"),
        sa.CheckConstraint("search_count >= 0", name="ck_network_origins_search_count_nonneg"),
    )
    op.create_index(
        "idx_network_origins_last_activity",
        "network_origins",
        [sa.text("coalesce(last_search_at, created_at)")],
    )


def downgrade() -> None:
    """Drop the anonymous usage tables."""
    op.drop_index("idx_network_origins_last_activity", table_name="network_origins")
    op.drop_table("network_origins")
    op.drop_index("idx_device_tokens_last_activity", table_name="device_tokens")
    op.drop_index("idx_device_tokens_created_at", table_name="device_tokens")
    op.drop_table("device_tokens")
