"""Construction of the long-lived objects the API needs.

``build_components()`` wires settings into the quota subsystem and the
scholar client once per application.  Every value that used to be an ambient
default (limit, salt, cookie name, timeouts) is passed in explicitly here, so
tests can build :class:`AppComponents` by hand with in-memory stores.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curalink.config.cookies import CookiePolicy
from curalink.config.settings import Settings
from curalink.core.identity_resolver import IdentityResolver
from curalink.core.network_origin import NetworkOriginTracker, resolve_ip_hash_salt
from curalink.core.quota_service import QuotaService
from curalink.core.session import SessionInspector
from curalink.scholar.client import ScholarSearchClient


@dataclass
class AppComponents:
    """Per-application singletons shared by middleware and routes.

    Attributes:
        resolver: Finds or mints the anonymous identity per request.
        quota: Evaluates and records anonymous searches.
        cookie_policy: Builds the identity cookie.
        scholar: Scholarly search client.
        trust_forwarded_headers: Whether proxy headers describe the client.
        session_factory: Database session factory for health checks;
            ``None`` when running without a database.
    """

    resolver: IdentityResolver
    quota: QuotaService
    cookie_policy: CookiePolicy
    scholar: ScholarSearchClient
    trust_forwarded_headers: bool = True
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_components(settings: Settings) -> AppComponents:
    """Build the production components from *settings*.

    Raises:
        ConfigurationError: If ``IP_HASH_SALT`` is missing in production.
    """
    from curalink.core.database import AsyncSessionLocal  # noqa: PLC0415
    from curalink.core.identity_store import SqlIdentityStore  # noqa: PLC0415
    from curalink.core.network_origin import SqlNetworkOriginStore  # noqa: PLC0415

    salt = resolve_ip_hash_salt(settings.ip_hash_salt, production=settings.is_production)
    identity_store = SqlIdentityStore(AsyncSessionLocal)
    tracker = NetworkOriginTracker(
        SqlNetworkOriginStore(AsyncSessionLocal),
        salt,
        trust_forwarded_headers=settings.trust_forwarded_headers,
    )
    inspector = SessionInspector(
        settings.secret_key,
        cookie_name=settings.session_cookie_name,
        audience=settings.session_jwt_audience,
    )
    return AppComponents(
        resolver=IdentityResolver(
            identity_store,
            inspector,
            cookie_name=settings.device_cookie_name,
            timeout=settings.store_timeout_seconds,
        ),
        quota=QuotaService(
            identity_store,
            tracker,
            limit=settings.search_quota_limit,
            failure_policy=settings.quota_failure_policy,
            timeout=settings.store_timeout_seconds,
        ),
        cookie_policy=CookiePolicy(
            name=settings.device_cookie_name,
            profile=settings.cookie_profile,
            max_age_seconds=settings.device_cookie_max_age_days * 24 * 60 * 60,
        ),
        scholar=ScholarSearchClient(
            settings.serpapi_api_key,
            timeout=settings.scholar_timeout_seconds,
        ),
        trust_forwarded_headers=settings.trust_forwarded_headers,
        session_factory=AsyncSessionLocal,
    )
