"""Prometheus metrics for CuraLink.

All metrics are module-level singletons registered on the default
``REGISTRY``.

Metrics defined here:

  anonymous_identities_issued_total{reason}
      Counter - device tokens minted, by why a new token was needed
      (missing_cookie, orphaned_cookie).

  quota_decisions_total{outcome}
      Counter - anonymous search admission decisions (allowed, denied).

  quota_signal_degraded_total{signal, stage}
      Counter - store failures absorbed by the quota subsystem, by signal
      (identity, network_origin) and stage (resolve, evaluate, record).

  http_requests_total{method, path, status}
      Counter - HTTP requests handled by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram - HTTP request latency in seconds.

Usage::

    from curalink.api.metrics import quota_decisions_total
    quota_decisions_total.labels(outcome="denied").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Anonymous quota metrics
# ---------------------------------------------------------------------------

anonymous_identities_issued_total: Counter = Counter(
    "anonymous_identities_issued_total",
    "Device tokens minted for anonymous visitors, by reason.",
    labelnames=["reason"],
)

quota_decisions_total: Counter = Counter(
    "quota_decisions_total",
    "Anonymous search admission decisions by outcome.",
    labelnames=["outcome"],
)

quota_signal_degraded_total: Counter = Counter(
    "quota_signal_degraded_total",
    "Quota store failures absorbed locally, by signal and stage.",
    labelnames=["signal", "stage"],
)
"""Incremented whenever a store error or timeout is replaced by a fallback.

Labels:
  signal: identity or network_origin
  stage:  resolve, evaluate, or record
"""

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
