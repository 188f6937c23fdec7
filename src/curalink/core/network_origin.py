"""Network-origin signal: salted address hashing and its counter store.

The client address is a secondary, cookie-independent identity proxy.  It is
derived from request metadata, hashed with a process-wide secret salt, and
only the digest is ever stored::

    SHA-256(address + ip_hash_salt)

Address derivation order (first match wins):

1. First entry of ``X-Forwarded-For``.
2. ``X-Real-IP``.
3. The transport peer address.

Trust boundary: steps 1 and 2 are only meaningful behind a reverse proxy that
overwrites those headers.  Anyone reaching the application directly can put
any value there and so pick their own network-origin key.  Deployments
without such a proxy must set ``trust_forwarded_headers=False``, which limits
derivation to step 3.
"""

from __future__ import annotations

import hashlib
import logging

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import Request

from curalink.core.exceptions import ConfigurationError, QuotaStoreError
from curalink.core.models.anonymous import NetworkOrigin
from curalink.core.stores import NetworkOriginStore, UsageRecord

logger = logging.getLogger(__name__)

STORE_NAME = "network_origin"

DEFAULT_IP_HASH_SALT: str = "curalink-default-ip-hash-salt"
"""Fallback salt for non-production environments without ``IP_HASH_SALT``."""


# ---------------------------------------------------------------------------
# Address derivation and hashing
# ---------------------------------------------------------------------------


def client_address(request: Request, *, trust_forwarded_headers: bool = True) -> str | None:
    """Return the best-guess client address for *request*, or ``None``.

    Args:
        request: The inbound request.
        trust_forwarded_headers: Consult ``X-Forwarded-For`` and
            ``X-Real-IP`` before the peer address.
    """
    if trust_forwarded_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first
        real_ip = (request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return None


def hash_address(address: str, salt: str) -> str:
    """Return the hex SHA-256 digest of ``address + salt``."""
    return hashlib.sha256(f"{address}{salt}".encode("utf-8")).hexdigest()


def resolve_ip_hash_salt(salt: str | None, *, production: bool) -> str:
    """Return the salt to hash addresses with.

    Args:
        salt: The configured ``IP_HASH_SALT`` value, if any.
        production: Whether the application runs in production.

    Raises:
        ConfigurationError: If no salt is configured in production.
    """
    if salt:
        return salt
    if production:
        raise ConfigurationError(
            "IP_HASH_SALT is required in production. Set it to a long random secret."
        )
    logger.warning(
        "ip_hash_salt_defaulted",
        extra={"detail": "IP_HASH_SALT not set; using the built-in default. Do not run production like this."},
    )
    return DEFAULT_IP_HASH_SALT


# ---------------------------------------------------------------------------
# PostgreSQL store
# ---------------------------------------------------------------------------


class SqlNetworkOriginStore(NetworkOriginStore):
    """Network-origin store on the ``network_origins`` table.

    ``upsert_increment`` is a single ``INSERT ... ON CONFLICT DO UPDATE``,
    so parallel searches sharing an address never lose increments.

    Args:
        session_factory: Factory producing :class:`AsyncSession` objects.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_hash(self, hashed_address: str) -> UsageRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(NetworkOrigin).where(NetworkOrigin.hashed_address == hashed_address)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise QuotaStoreError(f"network origin lookup failed: {exc}", store=STORE_NAME) from exc
        if row is None:
            return None
        return UsageRecord(
            key=row.hashed_address,
            search_count=row.search_count,
            last_search_at=row.last_search_at,
            created_at=row.created_at,
        )

    async def upsert_increment(self, hashed_address: str) -> UsageRecord:
        insert_stmt = pg_insert(NetworkOrigin).values(
            hashed_address=hashed_address,
            search_count=1,
            last_search_at=func.now(),
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[NetworkOrigin.hashed_address],
            set_={
                "search_count": NetworkOrigin.search_count + 1,
                "last_search_at": func.now(),
                "updated_at": func.now(),
            },
        ).returning(
            NetworkOrigin.search_count,
            NetworkOrigin.last_search_at,
            NetworkOrigin.created_at,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                search_count, last_search_at, created_at = result.one()
                await session.commit()
        except SQLAlchemyError as exc:
            raise QuotaStoreError(f"network origin upsert failed: {exc}", store=STORE_NAME) from exc
        return UsageRecord(
            key=hashed_address,
            search_count=search_count,
            last_search_at=last_search_at,
            created_at=created_at,
        )


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class NetworkOriginTracker:
    """Hashes request addresses and reads or bumps their counters.

    Args:
        store: Backing :class:`NetworkOriginStore`.
        salt: Resolved salt, see :func:`resolve_ip_hash_salt`.
        trust_forwarded_headers: Passed through to :func:`client_address`.
    """

    def __init__(
        self,
        store: NetworkOriginStore,
        salt: str,
        *,
        trust_forwarded_headers: bool = True,
    ) -> None:
        if not salt:
            raise ConfigurationError("NetworkOriginTracker requires a non-empty salt")
        self._store = store
        self._salt = salt
        self._trust_forwarded_headers = trust_forwarded_headers

    def hashed_origin(self, request: Request) -> str | None:
        """Return the salted digest of the request's address, or ``None``."""
        address = client_address(request, trust_forwarded_headers=self._trust_forwarded_headers)
        if address is None:
            return None
        return hash_address(address, self._salt)

    async def lookup(self, hashed_address: str) -> UsageRecord | None:
        """Return the counter for *hashed_address*; ``None`` means zero usage."""
        return await self._store.find_by_hash(hashed_address)

    async def increment(self, hashed_address: str) -> UsageRecord:
        """Count one search against *hashed_address*."""
        return await self._store.upsert_increment(hashed_address)
