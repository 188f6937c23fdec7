"""Quota limits, per-signal quota arithmetic, and store-failure policies.

A *signal* is one independent piece of evidence about how many searches a
visitor has run: the device token counter or the hashed network-origin
counter.  Each signal yields a :class:`SignalQuota`; the
:class:`~curalink.core.quota_service.QuotaService` combines them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True)
class SignalQuota:
    """Remaining allowance according to a single signal."""

    allowed: bool
    remaining: int

    @classmethod
    def from_count(cls, search_count: int, limit: int) -> "SignalQuota":
        """Build a signal from a stored counter.  Never goes negative."""
        remaining = max(0, limit - search_count)
        return cls(allowed=remaining > 0, remaining=remaining)

    @classmethod
    def unused(cls, limit: int) -> "SignalQuota":
        return cls(allowed=True, remaining=limit)

    @classmethod
    def exhausted(cls) -> "SignalQuota":
        return cls(allowed=False, remaining=0)


@dataclass(frozen=True)
class QuotaDecision:
    """Admission decision for one anonymous search.

    Attributes:
        allowed: ``True`` only when every signal allows the search.
        remaining: The smallest remaining count across signals.
        limit: The configured quota, echoed for API responses.
    """

    allowed: bool
    remaining: int
    limit: int

    @classmethod
    def combine(cls, limit: int, *signals: SignalQuota) -> "QuotaDecision":
        return cls(
            allowed=all(s.allowed for s in signals),
            remaining=min(s.remaining for s in signals),
            limit=limit,
        )


class FailurePolicy(str, enum.Enum):
    """How a signal degrades when its backing store is unavailable.

    ``fail_open`` keeps search available during store outages at the cost of
    strict enforcement.  ``fail_closed`` denies instead.
    """

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"

    def degraded(self, limit: int) -> SignalQuota:
        """Return the signal to use in place of a failed store read."""
        if self is FailurePolicy.FAIL_OPEN:
            return SignalQuota.unused(limit)
        return SignalQuota.exhausted()
