"""Pydantic request/response schemas for CuraLink."""

from __future__ import annotations

from curalink.core.schemas.search import LimitReached, Publication, QuotaStatus, SearchResponse

__all__ = [
    "LimitReached",
    "Publication",
    "QuotaStatus",
    "SearchResponse",
]
