"""Detection of authenticated sessions.

Login itself is handled by the account service, which issues HS256 JWTs
(audience ``fastapi-users:auth``) in the ``access_token`` cookie or as a
bearer token.  This module only verifies such a token so that the anonymous
quota can be skipped for signed-in users.  A forged or expired token counts
as anonymous.
"""

from __future__ import annotations

import logging

import jwt
from starlette.requests import Request

logger = logging.getLogger(__name__)


class SessionInspector:
    """Decides whether a request belongs to an authenticated user.

    Args:
        secret_key: HMAC secret the login service signs JWTs with.
        cookie_name: Cookie carrying the session JWT.
        audience: Required ``aud`` claim.
        algorithm: JWT signing algorithm.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        cookie_name: str = "access_token",
        audience: str = "fastapi-users:auth",
        algorithm: str = "HS256",
    ) -> None:
        self._secret_key = secret_key
        self._cookie_name = cookie_name
        self._audience = audience
        self._algorithm = algorithm

    def _presented_token(self, request: Request) -> str | None:
        cookie = request.cookies.get(self._cookie_name)
        if cookie:
            return cookie
        scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return None

    def is_authenticated(self, request: Request) -> bool:
        """Return ``True`` if the request carries a valid session JWT."""
        token = self._presented_token(request)
        if token is None:
            return False
        try:
            jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
            )
        except jwt.PyJWTError as exc:
            logger.debug("session_token_rejected", extra={"reason": type(exc).__name__})
            return False
        return True
