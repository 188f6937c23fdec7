"""Opt-in retention for anonymous usage records.

Device tokens and network origins are never removed by the request path.
When ``ANONYMOUS_RETENTION_DAYS`` is set, this service purges rows whose last
activity (``last_search_at``, or ``created_at`` for rows that never searched)
is older than the threshold.

Purging is lossy in a known way: a returning visitor whose token row was
purged gets a fresh token (the orphaned-cookie path), and a purged network
origin starts again from zero.

Usage::

    from curalink.core.retention_service import AnonymousUsageRetentionService
    from curalink.core.database import AsyncSessionLocal

    service = AnonymousUsageRetentionService()
    async with AsyncSessionLocal() as db:
        summary = await service.purge_inactive(db, retention_days=365)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from curalink.core.models.anonymous import DeviceToken, NetworkOrigin

logger = logging.getLogger(__name__)


class AnonymousUsageRetentionService:
    """Deletes anonymous usage rows inactive for longer than a threshold.

    Stateless; all methods accept the ``AsyncSession`` from the caller.
    """

    async def purge_inactive(
        self,
        db: AsyncSession,
        retention_days: int,
    ) -> dict[str, int]:
        """Delete device tokens and network origins idle for *retention_days*.

        Both deletes are committed together inside this method.

        Args:
            db: Active async database session.
            retention_days: Maximum idle age to keep, in days.  Must be
                positive.

        Returns:
            ``{"identities": n, "network_origins": m}`` deleted row counts.

        Raises:
            ValueError: If *retention_days* is not positive.
        """
        if retention_days <= 0:
            raise ValueError("retention_days must be positive")
        threshold = datetime.now(tz=timezone.utc) - timedelta(days=retention_days)

        token_result = await db.execute(
            delete(DeviceToken).where(
                func.coalesce(DeviceToken.last_search_at, DeviceToken.created_at) < threshold
            )
        )
        origin_result = await db.execute(
            delete(NetworkOrigin).where(
                func.coalesce(NetworkOrigin.last_search_at, NetworkOrigin.created_at) < threshold
            )
        )
        await db.commit()

        summary = {
            "identities": token_result.rowcount or 0,
            "network_origins": origin_result.rowcount or 0,
        }
        logger.info(
            "anonymous_usage_purged",
            extra={
                "threshold_date": threshold.isoformat(),
                "retention_days": retention_days,
                **summary,
            },
        )
        return summary
