"""Pydantic schemas for the search API.

``Publication`` is the provider-neutral shape every scholar result is
normalized into.  ``QuotaStatus`` and ``LimitReached`` expose the anonymous
search quota to the frontend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Publication(BaseModel):
    """A single scholarly publication returned by a search provider."""

    title: str = "Untitled"
    link: Optional[str] = None
    snippet: str = ""
    abstract: str = ""
    authors: list[str] = Field(default_factory=list)
    publication: str = ""
    year: Optional[int] = None
    citations: int = 0
    pdf_link: Optional[str] = None
    source: str = Field(description="Provider that produced the record.")


class QuotaStatus(BaseModel):
    """Remaining anonymous searches for the caller.

    Authenticated callers are not subject to the quota; for them
    ``allowed`` is always ``True`` and ``remaining``/``limit`` are ``None``.
    """

    authenticated: bool
    allowed: bool
    remaining: Optional[int] = None
    limit: Optional[int] = None


class SearchResponse(BaseModel):
    """Results of one admitted search plus the caller's updated quota."""

    query: str
    results: list[Publication]
    quota: QuotaStatus


class LimitReached(BaseModel):
    """Body of the HTTP 429 returned when the anonymous quota is exhausted."""

    detail: str
    limit_reached: bool = True
    remaining: int = 0
    limit: int
