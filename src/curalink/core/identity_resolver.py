"""Resolution of the anonymous identity behind a request.

For every unauthenticated request the resolver guarantees that the request is
associated with a device token that has a row in the identity store:

- no ``device_token`` cookie: mint a token and create its row;
- cookie whose token has a row: reuse it;
- cookie whose token has no row (store reset, external deletion, a cookie
  from another environment): mint a replacement.  The old token is
  abandoned, never recreated.

Only a minted token needs a ``Set-Cookie``; the resolution says so via
``issued`` and the middleware writes the cookie.

Store failures never block the request.  They degrade to "no identity"
(``token=None``) marked ``degraded``, so the quota evaluator applies its
failure policy instead of treating the visitor as identity-less.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from starlette.requests import Request

from curalink.api.metrics import anonymous_identities_issued_total, quota_signal_degraded_total
from curalink.core.exceptions import QuotaStoreError
from curalink.core.session import SessionInspector
from curalink.core.stores import IdentityStore, bounded

logger = logging.getLogger(__name__)


def mint_token() -> str:
    """Return a new random device token (``uuid4`` from ``os.urandom``)."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class IdentityResolution:
    """Outcome of resolving one request.

    Attributes:
        token: The device token to use, or ``None``.
        issued: ``True`` when *token* was minted for this request and must be
            sent back in a cookie.
        authenticated: ``True`` when the caller is signed in and anonymous
            quotas do not apply.
        degraded: ``True`` when the identity store failed while resolving.
    """

    token: str | None
    issued: bool = False
    authenticated: bool = False
    degraded: bool = False


class IdentityResolver:
    """Finds or mints the device token for a request.

    Args:
        store: The identity store.
        session_inspector: Detects signed-in callers.
        cookie_name: Name of the device token cookie.
        timeout: Per-call store timeout in seconds.
        token_factory: Produces new tokens; injectable for tests.
    """

    def __init__(
        self,
        store: IdentityStore,
        session_inspector: SessionInspector,
        *,
        cookie_name: str = "device_token",
        timeout: float = 2.0,
        token_factory: Callable[[], str] = mint_token,
    ) -> None:
        self._store = store
        self._session_inspector = session_inspector
        self._cookie_name = cookie_name
        self._timeout = timeout
        self._token_factory = token_factory

    async def resolve(self, request: Request) -> IdentityResolution:
        """Return the identity for *request*, creating one if needed."""
        if self._session_inspector.is_authenticated(request):
            return IdentityResolution(token=None, authenticated=True)

        presented = request.cookies.get(self._cookie_name) or None
        try:
            if presented is not None:
                record = await bounded(
                    self._store.find_by_token(presented),
                    timeout=self._timeout,
                    store="identity",
                )
                if record is not None:
                    return IdentityResolution(token=presented)
                reason = "orphaned_cookie"
            else:
                reason = "missing_cookie"

            token = self._token_factory()
            await bounded(self._store.create(token), timeout=self._timeout, store="identity")
        except QuotaStoreError as exc:
            quota_signal_degraded_total.labels(signal="identity", stage="resolve").inc()
            logger.warning("identity_resolution_degraded", extra={"error": str(exc)})
            return IdentityResolution(token=None, degraded=True)
        except Exception:
            quota_signal_degraded_total.labels(signal="identity", stage="resolve").inc()
            logger.exception("identity_resolution_failed")
            return IdentityResolution(token=None, degraded=True)

        anonymous_identities_issued_total.labels(reason=reason).inc()
        logger.info("identity_issued", extra={"reason": reason, "identity": token[:8]})
        return IdentityResolution(token=token, issued=True)
