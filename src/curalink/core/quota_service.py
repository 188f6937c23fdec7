"""Anonymous search quota: admission decisions and usage recording.

Two independent signals are consulted for every anonymous search:

identity
    The device token counter.  A missing token or a token without a row
    means the visitor has no established identity and cannot search, unless
    the token is missing because the identity store failed while resolving.

network origin
    The counter for the salted hash of the client address.  No resolvable
    address, or no row yet, means no recorded usage.

Both are compared against the same limit and combined strictly: a search is
allowed only if both signals allow it, and the reported remaining count is
the smaller of the two.

Store errors and timeouts never escape this module.  While evaluating, the
failing signal is replaced by the configured :class:`FailurePolicy`
(fail-open by default).  While recording, each counter is bumped
independently so one failing store never blocks the other.

Usage in a route handler::

    decision = await quota.evaluate(token, request)
    if not decision.allowed:
        ...  # respond with "limit reached"
    results = await run_search(...)
    await quota.record_search(token, request)
"""

from __future__ import annotations

import logging

from starlette.requests import Request

from curalink.api.metrics import quota_decisions_total, quota_signal_degraded_total
from curalink.core.exceptions import QuotaStoreError
from curalink.core.network_origin import NetworkOriginTracker
from curalink.core.quota_policy import FailurePolicy, QuotaDecision, SignalQuota
from curalink.core.stores import IdentityStore, bounded

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT: int = 6


class QuotaService:
    """Evaluates and records anonymous searches against both signals.

    Stateless apart from its collaborators; a single instance serves all
    requests.

    Args:
        identity_store: Device token counters.
        origin_tracker: Hashed network-origin counters.
        limit: Searches allowed per signal.
        failure_policy: Replacement for a signal whose store failed.
        timeout: Per-call store timeout in seconds.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        origin_tracker: NetworkOriginTracker,
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        timeout: float = 2.0,
    ) -> None:
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self._identity_store = identity_store
        self._origin_tracker = origin_tracker
        self._limit = limit
        self._failure_policy = failure_policy
        self._timeout = timeout

    @property
    def limit(self) -> int:
        return self._limit

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _identity_signal(self, token: str | None, degraded: bool) -> SignalQuota:
        if not token:
            if degraded:
                return self._failure_policy.degraded(self._limit)
            return SignalQuota.exhausted()
        try:
            record = await bounded(
                self._identity_store.find_by_token(token),
                timeout=self._timeout,
                store="identity",
            )
        except Exception as exc:
            return self._degrade("identity", "evaluate", exc)
        if record is None:
            return SignalQuota.exhausted()
        return SignalQuota.from_count(record.search_count, self._limit)

    async def _origin_signal(self, request: Request) -> SignalQuota:
        hashed = self._origin_tracker.hashed_origin(request)
        if hashed is None:
            logger.info("network_origin_unresolvable")
            return SignalQuota.unused(self._limit)
        try:
            record = await bounded(
                self._origin_tracker.lookup(hashed),
                timeout=self._timeout,
                store="network_origin",
            )
        except Exception as exc:
            return self._degrade("network_origin", "evaluate", exc)
        if record is None:
            return SignalQuota.unused(self._limit)
        return SignalQuota.from_count(record.search_count, self._limit)

    def _degrade(self, signal: str, stage: str, exc: Exception) -> SignalQuota:
        quota_signal_degraded_total.labels(signal=signal, stage=stage).inc()
        if isinstance(exc, QuotaStoreError):
            logger.warning(
                "quota_signal_degraded",
                extra={"signal": signal, "policy": self._failure_policy.value, "error": str(exc)},
            )
        else:
            logger.exception(
                "quota_signal_failed",
                extra={"signal": signal, "policy": self._failure_policy.value},
            )
        return self._failure_policy.degraded(self._limit)

    async def evaluate(
        self,
        token: str | None,
        request: Request,
        *,
        identity_degraded: bool = False,
    ) -> QuotaDecision:
        """Decide whether the anonymous caller may run one more search.

        Args:
            token: The device token resolved for this request, or ``None``.
            request: The inbound request, used to derive the network origin.
            identity_degraded: The identity could not be resolved because its
                store failed; the failure policy replaces the identity signal.

        Returns:
            A :class:`QuotaDecision`; never raises on store failures.
        """
        identity = await self._identity_signal(token, identity_degraded)
        origin = await self._origin_signal(request)
        decision = QuotaDecision.combine(self._limit, identity, origin)
        quota_decisions_total.labels(outcome="allowed" if decision.allowed else "denied").inc()
        return decision

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def record_search(self, token: str | None, request: Request) -> None:
        """Count one completed search against both signals.

        Call exactly once per admitted search, after the search has been
        dispatched.  Not idempotent: a second call counts a second search.
        """
        if token:
            try:
                await bounded(
                    self._identity_store.increment_by_token(token),
                    timeout=self._timeout,
                    store="identity",
                )
            except QuotaStoreError as exc:
                quota_signal_degraded_total.labels(signal="identity", stage="record").inc()
                logger.warning("identity_increment_failed", extra={"error": str(exc)})
            except Exception:
                quota_signal_degraded_total.labels(signal="identity", stage="record").inc()
                logger.exception("identity_increment_failed")

        hashed = self._origin_tracker.hashed_origin(request)
        if hashed is None:
            return
        try:
            await bounded(
                self._origin_tracker.increment(hashed),
                timeout=self._timeout,
                store="network_origin",
            )
        except QuotaStoreError as exc:
            quota_signal_degraded_total.labels(signal="network_origin", stage="record").inc()
            logger.warning("network_origin_increment_failed", extra={"error": str(exc)})
        except Exception:
            quota_signal_degraded_total.labels(signal="network_origin", stage="record").inc()
            logger.exception("network_origin_increment_failed")
