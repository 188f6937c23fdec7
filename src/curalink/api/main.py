"""FastAPI application factory and entry point.

Creates the application instance, builds the quota subsystem and scholar
client, registers all middleware and mounts the route routers.

Usage::

    # Development server (from project root)
    uvicorn curalink.api.main:app --reload

    # Production
    gunicorn curalink.api.main:app -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from curalink.api.components import AppComponents, build_components
from curalink.api.metrics import (
    get_metrics_response,
    http_request_duration_seconds,
    http_requests_total,
)
from curalink.api.middleware import AnonymousIdentityMiddleware
from curalink.config.settings import get_settings
from curalink.core.logging_config import configure_logging, request_id_var

# ---------------------------------------------------------------------------
# Logging configuration - applied once at module import time so that log
# records emitted during app construction are captured correctly.
# The log level is re-applied inside create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        components: Pre-built collaborators.  When ``None`` they are built
            from settings with the PostgreSQL stores.  Tests pass in-memory
            stores here.

    Returns:
        A fully configured ``FastAPI`` instance.

    Raises:
        ConfigurationError: If the settings are unsafe for the environment
            (e.g. no ``IP_HASH_SALT`` in production).
    """
    settings = get_settings()

    # Re-apply logging configuration with the correct level from settings.
    configure_logging(settings.log_level)

    if components is None:
        components = build_components(settings)

    application = FastAPI(
        title=settings.app_name,
        description="Scholarly search for patients and researchers.",
        version="0.1.0",
        debug=settings.debug,
        redirect_slashes=False,
    )
    application.state.components = components

    # ---- Middleware --------------------------------------------------------
    # Starlette runs the last-added middleware first: request logging wraps
    # CORS, which wraps anonymous identity resolution.

    application.add_middleware(
        AnonymousIdentityMiddleware,
        resolver=components.resolver,
        cookie_policy=components.cookie_policy,
        trust_forwarded_headers=components.trust_forwarded_headers,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,  # required for the identity cookie
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Request logging middleware ----------------------------------------

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every incoming request and its response status + duration.

        Attaches a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated, and records the
        HTTP request metrics.
        """
        request_id = str(uuid.uuid4())
        # Populate the ContextVar so stdlib logging records also carry the ID.
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed = time.perf_counter() - start
            status_code = getattr(response, "status_code", 500)
            path = _route_template(request)
            http_requests_total.labels(
                method=request.method, path=path, status=str(status_code)
            ).inc()
            http_request_duration_seconds.labels(method=request.method, path=path).observe(elapsed)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(
                "request_complete",
                status_code=status_code,
                elapsed_ms=round(elapsed * 1000, 2),
            )

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Routers -----------------------------------------------------------

    from curalink.api.routes import health as health_routes  # noqa: PLC0415
    from curalink.api.routes import search as search_routes  # noqa: PLC0415

    application.include_router(health_routes.router)
    application.include_router(search_routes.router)

    # ---- Lifecycle events -------------------------------------------------

    @application.on_event("startup")
    async def on_startup() -> None:
        """Log application startup information."""
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            environment=settings.environment,
            search_quota_limit=components.quota.limit,
            cookie_profile=components.cookie_policy.profile.value,
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        """Log clean shutdown."""
        logger.info("application_shutdown")

    # ---- System endpoints -------------------------------------------------

    @application.get("/health", tags=["system"], include_in_schema=True)
    async def health() -> JSONResponse:
        """Return a minimal process-level liveness status.

        Used by load balancers that need a fast ``200 OK`` without any I/O.
        The database check is at ``/api/health``.
        """
        return JSONResponse({"status": "ok"})

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        async def metrics() -> Response:
            """Expose Prometheus metrics in text format."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn / Gunicorn.
"""
