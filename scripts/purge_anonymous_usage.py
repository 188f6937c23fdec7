#!/usr/bin/env python
"""Purge anonymous usage rows that have been idle for too long.

Deletes device tokens and network origins whose last search (or creation,
for rows that never searched) is older than the retention threshold.  Meant
to run from cron or a scheduled job; the request path never deletes rows.

Usage::

    python scripts/purge_anonymous_usage.py
    python scripts/purge_anonymous_usage.py --days 180

Without ``--days`` the ``ANONYMOUS_RETENTION_DAYS`` setting is used.  When
neither is set, nothing is purged.

Exit codes:
    0 - Success, or retention disabled.
    1 - Invalid threshold or database error.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Optional

# Ensure the src layout is on sys.path when running as a standalone script.
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SRC_DIR = os.path.join(os.path.dirname(_SCRIPT_DIR), "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


async def _purge(retention_days: Optional[int]) -> int:
    """Run the purge and return the process exit code."""
    from sqlalchemy.exc import SQLAlchemyError  # noqa: PLC0415

    from curalink.config.settings import get_settings  # noqa: PLC0415
    from curalink.core.logging_config import configure_logging  # noqa: PLC0415

    settings = get_settings()
    configure_logging(settings.log_level)

    days = retention_days if retention_days is not None else settings.anonymous_retention_days
    if days is None:
        print("[purge_anonymous_usage] Retention disabled (ANONYMOUS_RETENTION_DAYS unset).")
        return 0
    if days <= 0:
        print(f"[purge_anonymous_usage] ERROR: retention must be positive, got {days}", file=sys.stderr)
        return 1

    from curalink.core.database import AsyncSessionLocal, async_engine  # noqa: PLC0415
    from curalink.core.retention_service import AnonymousUsageRetentionService  # noqa: PLC0415

    service = AnonymousUsageRetentionService()
    try:
        async with AsyncSessionLocal() as db:
            summary = await service.purge_inactive(db, retention_days=days)
    except SQLAlchemyError as exc:
        print(f"[purge_anonymous_usage] ERROR: database error: {exc}", file=sys.stderr)
        return 1
    finally:
        await async_engine.dispose()

    print(
        f"[purge_anonymous_usage] Deleted {summary['identities']} identities and "
        f"{summary['network_origins']} network origins idle for more than {days} days."
    )
    return 0


def main() -> None:
    """Parse arguments and run the purge."""
    parser = argparse.ArgumentParser(
        description="Delete anonymous usage rows idle for longer than the retention period.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention period in days (default: ANONYMOUS_RETENTION_DAYS)",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(_purge(args.days)))


if __name__ == "__main__":
    main()
