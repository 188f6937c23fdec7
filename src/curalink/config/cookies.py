"""Cookie attribute profiles for the anonymous identity cookie.

Browsers treat ``SameSite`` and ``Secure`` differently depending on how the
frontend and API are deployed, so the attributes are chosen from an explicit
deployment profile rather than branching at each call site:

``local_http``
    Frontend and API on plain-HTTP localhost.  ``Secure`` is never set and
    ``SameSite=Lax``.

``same_origin_https``
    Frontend and API share a site.  ``SameSite=Lax``; ``Secure`` follows the
    transport of the request.

``cross_origin_https``
    Frontend on another site (e.g. a separate Vercel deployment).  Browsers
    only send such cookies with ``SameSite=None``, which in turn requires
    ``Secure``.  When a request arrives over plain HTTP the policy falls back
    to ``SameSite=Lax`` without ``Secure`` because browsers reject
    ``SameSite=None`` cookies that are not ``Secure``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Literal

from starlette.responses import Response

SameSite = Literal["lax", "strict", "none"]


class CookieProfile(str, enum.Enum):
    """Deployment profiles for identity cookie attributes."""

    LOCAL_HTTP = "local_http"
    SAME_ORIGIN_HTTPS = "same_origin_https"
    CROSS_ORIGIN_HTTPS = "cross_origin_https"


@dataclass(frozen=True)
class CookieAttributes:
    """Resolved attributes for one ``Set-Cookie`` header."""

    secure: bool
    samesite: SameSite
    httponly: bool = True
    path: str = "/"


@dataclass(frozen=True)
class CookiePolicy:
    """Builds the identity cookie for a deployment profile.

    Attributes:
        name: Cookie name (``device_token`` by default).
        profile: The :class:`CookieProfile` in effect.
        max_age_seconds: Cookie lifetime.
    """

    name: str
    profile: CookieProfile
    max_age_seconds: int

    def attributes(self, *, secure_transport: bool) -> CookieAttributes:
        """Return the cookie attributes for a request.

        Args:
            secure_transport: Whether the request arrived over HTTPS.
        """
        if self.profile is CookieProfile.LOCAL_HTTP:
            return CookieAttributes(secure=False, samesite="lax")
        if self.profile is CookieProfile.CROSS_ORIGIN_HTTPS and secure_transport:
            return CookieAttributes(secure=True, samesite="none")
        return CookieAttributes(secure=secure_transport, samesite="lax")

    def apply(self, response: Response, token: str, *, secure_transport: bool) -> None:
        """Attach the identity cookie to *response*."""
        attrs = self.attributes(secure_transport=secure_transport)
        response.set_cookie(
            key=self.name,
            value=token,
            max_age=self.max_age_seconds,
            path=attrs.path,
            secure=attrs.secure,
            httponly=attrs.httponly,
            samesite=attrs.samesite,
        )
