"""ORM models backing the anonymous search quota.

``device_tokens``
    One row per server-minted identity token.  The token reaches the client
    only inside an HTTP-only cookie.  Rows are never resurrected: a cookie
    whose token has no row is replaced by a freshly minted token.

``network_origins``
    One row per salted SHA-256 digest of a client address.  The raw address
    is never stored.  Rows are created lazily by the first counted search.

Neither table is cleaned up automatically; see
:mod:`curalink.core.retention_service` for the opt-in purge.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from curalink.core.models.base import Base, TimestampMixin


class DeviceToken(Base, TimestampMixin):
    """Anonymous identity issued to a visitor without an account.

    token:          opaque random identifier (uuid4 string), unique
    search_count:   searches counted against this token; only incremented
    last_search_at: time of the most recent counted search, NULL until then
    """

    __tablename__ = "device_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    token: Mapped[str] = mapped_column(
        sa.String(64),
        nullable=False,
    )
    search_count: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
        server_default=sa.text("0"),
    )
    last_search_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.UniqueConstraint("token", name="uq_device_tokens_token"),
        sa.CheckConstraint("search_count >= 0", name="ck_device_tokens_search_count_nonneg"),
        sa.Index("idx_device_tokens_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DeviceToken token={self.token[:8]}... search_count={self.search_count}>"


class NetworkOrigin(Base, TimestampMixin):
    """Search counter keyed by a salted hash of the client address.

    hashed_address: hex SHA-256 of (address + salt); 64 characters
    search_count:   searches counted against this origin
    last_search_at: time of the most recent counted search
    """

    __tablename__ = "network_origins"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    hashed_address: Mapped[str] = mapped_column(
        sa.String(64),
        nullable=False,
    )
    search_count: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
        server_default=sa.text("0"),
    )
    last_search_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.UniqueConstraint("hashed_address", name="uq_network_origins_hashed_address"),
        sa.CheckConstraint("search_count >= 0", name="ck_network_origins_search_count_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<NetworkOrigin hashed_address={self.hashed_address[:12]}... search_count={self.search_count}>"


# Retention purges filter on the last activity of each row.
sa.Index(
    "idx_device_tokens_last_activity",
    sa.func.coalesce(DeviceToken.last_search_at, DeviceToken.created_at),
)
sa.Index(
    "idx_network_origins_last_activity",
    sa.func.coalesce(NetworkOrigin.last_search_at, NetworkOrigin.created_at),
)
