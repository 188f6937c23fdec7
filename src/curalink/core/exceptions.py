"""Application-wide exception hierarchy for CuraLink.

All custom exceptions subclass ``CuraLinkError``, enabling consistent error
handling and structured logging across the application.

Hierarchy::

    CuraLinkError
    ├── ConfigurationError
    ├── QuotaStoreError          (store: str)
    └── ScholarSearchError       (provider: str | None)
        └── ScholarNotConfiguredError
"""

from __future__ import annotations


class CuraLinkError(Exception):
    """Base class for all CuraLink exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


class ConfigurationError(CuraLinkError):
    """Raised at startup when a required setting is missing or unsafe."""


# ---------------------------------------------------------------------------
# Quota exceptions
# ---------------------------------------------------------------------------


class QuotaStoreError(CuraLinkError):
    """Raised when a quota store operation fails or times out.

    The quota subsystem never lets this escape to route handlers: the
    resolver degrades to "no identity" and the evaluator applies the
    configured :class:`~curalink.core.quota_policy.FailurePolicy`.

    Args:
        message: Human-readable description of the failure.
        store: Which store failed (``"identity"`` or ``"network_origin"``).
    """

    def __init__(self, message: str, store: str | None = None) -> None:
        super().__init__(message)
        self.store = store


# ---------------------------------------------------------------------------
# Scholar search exceptions
# ---------------------------------------------------------------------------


class ScholarSearchError(CuraLinkError):
    """Raised when a scholarly search provider request fails.

    Args:
        message: Human-readable description of the failure.
        provider: Provider label (``"serpapi"`` or ``"semantic_scholar"``).
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ScholarNotConfiguredError(ScholarSearchError):
    """Raised when a search needs a provider whose API key is not set."""
