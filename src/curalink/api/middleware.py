"""Request-scoped anonymous identity middleware.

Runs the :class:`~curalink.core.identity_resolver.IdentityResolver` before
every route handler, stores the result on ``request.state.anonymous_identity``
and, when a token was minted for this request, writes the identity cookie on
the way out.  The cookie is written only for a freshly minted token, so a
response carries at most one identity ``Set-Cookie``.

Operational paths (health, metrics, docs) and CORS preflights skip
resolution so that probes do not mint identities.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from curalink.config.cookies import CookiePolicy
from curalink.core.identity_resolver import IdentityResolution, IdentityResolver

EXEMPT_PATHS: frozenset[str] = frozenset({
    "/health",
    "/api/health",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
})


def is_secure_transport(request: Request, *, trust_forwarded_headers: bool = True) -> bool:
    """Return ``True`` if the client reached us over HTTPS.

    Behind a TLS-terminating proxy the scheme is only visible through
    ``X-Forwarded-Proto``, which is consulted when proxy headers are trusted.
    """
    if request.url.scheme == "https":
        return True
    if trust_forwarded_headers:
        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return False


class AnonymousIdentityMiddleware(BaseHTTPMiddleware):
    """Attach the anonymous identity to each request and issue its cookie.

    Args:
        app: The wrapped ASGI application.
        resolver: Identity resolver shared by all requests.
        cookie_policy: Builds the identity cookie.
        trust_forwarded_headers: Passed to :func:`is_secure_transport`.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        resolver: IdentityResolver,
        cookie_policy: CookiePolicy,
        trust_forwarded_headers: bool = True,
    ) -> None:
        super().__init__(app)
        self._resolver = resolver
        self._cookie_policy = cookie_policy
        self._trust_forwarded_headers = trust_forwarded_headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
            request.state.anonymous_identity = IdentityResolution(token=None)
            return await call_next(request)

        resolution = await self._resolver.resolve(request)
        request.state.anonymous_identity = resolution

        response = await call_next(request)

        if resolution.issued and resolution.token:
            self._cookie_policy.apply(
                response,
                resolution.token,
                secure_transport=is_secure_transport(
                    request, trust_forwarded_headers=self._trust_forwarded_headers
                ),
            )
        return response
