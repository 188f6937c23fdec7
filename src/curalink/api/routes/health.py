"""Health check route handlers for the CuraLink API.

``GET /api/health``
    Verifies the process is alive and can reach the database (``SELECT 1``).
    Always returns HTTP 200; the ``status`` field distinguishes ``"ok"`` from
    ``"degraded"``.

This endpoint is diagnostic: it must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import sqlalchemy as sa
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


async def _check_database(request: Request) -> str:
    """Run ``SELECT 1`` against the configured database.

    Returns:
        ``"ok"`` if the query succeeds, ``"unconfigured"`` when the app runs
        without a database, ``"error"`` otherwise.
    """
    session_factory = request.app.state.components.session_factory
    if session_factory is None:
        return "unconfigured"
    try:
        async with session_factory() as session:
            await session.execute(sa.text("SELECT 1"))
        return "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        return "error"


@router.get("/api/health", include_in_schema=True)
async def system_health(request: Request) -> JSONResponse:
    """Return process-level health including database connectivity.

    Returns:
        JSON with keys: ``status``, ``version``, ``database``, ``timestamp``.
    """
    db_status = await _check_database(request)
    return JSONResponse(
        {
            "status": "ok" if db_status == "ok" else "degraded",
            "version": request.app.version,
            "database": db_status,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )
