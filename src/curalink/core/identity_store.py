"""PostgreSQL-backed :class:`~curalink.core.stores.IdentityStore`.

Each operation opens its own short-lived session from the injected
``async_sessionmaker`` and commits before returning.  The increment is a
single ``UPDATE ... SET search_count = search_count + 1`` so concurrent
searches from one token serialise in the database.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curalink.core.exceptions import QuotaStoreError
from curalink.core.models.anonymous import DeviceToken
from curalink.core.stores import IdentityStore, UsageRecord

logger = logging.getLogger(__name__)

STORE_NAME = "identity"


def _to_record(row: DeviceToken) -> UsageRecord:
    return UsageRecord(
        key=row.token,
        search_count=row.search_count,
        last_search_at=row.last_search_at,
        created_at=row.created_at,
    )


class SqlIdentityStore(IdentityStore):
    """Identity store on the ``device_tokens`` table.

    Args:
        session_factory: Factory producing :class:`AsyncSession` objects,
            normally :data:`curalink.core.database.AsyncSessionLocal`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_token(self, token: str) -> UsageRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DeviceToken).where(DeviceToken.token == token)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise QuotaStoreError(f"device token lookup failed: {exc}", store=STORE_NAME) from exc
        return _to_record(row) if row is not None else None

    async def create(self, token: str) -> UsageRecord:
        stmt = (
            insert(DeviceToken)
            .values(token=token, search_count=0)
            .returning(DeviceToken.search_count, DeviceToken.created_at)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                search_count, created_at = result.one()
                await session.commit()
        except SQLAlchemyError as exc:
            raise QuotaStoreError(f"device token insert failed: {exc}", store=STORE_NAME) from exc
        return UsageRecord(key=token, search_count=search_count, created_at=created_at)

    async def increment_by_token(self, token: str) -> None:
        stmt = (
            update(DeviceToken)
            .where(DeviceToken.token == token)
            .values(
                search_count=DeviceToken.search_count + 1,
                last_search_at=func.now(),
                updated_at=func.now(),
            )
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise QuotaStoreError(f"device token increment failed: {exc}", store=STORE_NAME) from exc
        if not result.rowcount:
            logger.warning("device_token_increment_missed", extra={"rows": result.rowcount})
