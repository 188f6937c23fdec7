"""Scholarly search client.

Wraps the provider helpers in :mod:`._client` and normalizes every raw result
into a :class:`~curalink.core.schemas.search.Publication`.

Two operations:

- :meth:`ScholarSearchClient.search` - general Google Scholar query through
  SerpAPI.  Raises :class:`ScholarNotConfiguredError` without an API key.
- :meth:`ScholarSearchClient.search_publications` - an author's publications.
  SerpAPI first (``author:"..."``); Semantic Scholar when SerpAPI is not
  configured, fails, or returns nothing.

Both raise :class:`ScholarSearchError` when no provider could answer, so the
route layer can tell "no results" apart from "search not dispatched".
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from curalink.core.exceptions import ScholarNotConfiguredError, ScholarSearchError
from curalink.core.schemas.search import Publication
from curalink.scholar._client import fetch_semantic_scholar_papers, fetch_serpapi_scholar
from curalink.scholar.config import (
    DEFAULT_RESULTS,
    MAX_RESULTS,
    MIN_RESULTS,
    PROVIDER_SEMANTIC_SCHOLAR,
    PROVIDER_SERPAPI,
)

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def clamp_results(num: int) -> int:
    """Clamp a requested result count to the provider range (1-20)."""
    return min(max(MIN_RESULTS, num), MAX_RESULTS)


def _extract_year(*texts: str) -> int | None:
    for text in texts:
        if text:
            match = _YEAR_RE.search(text)
            if match:
                return int(match.group(0))
    return None


def normalize_serpapi(raw: dict[str, Any]) -> Publication:
    """Map a SerpAPI ``organic_results`` entry to a :class:`Publication`."""
    info = raw.get("publication_info") or {}
    summary = info.get("summary") or ""
    snippet = raw.get("snippet") or ""
    authors = [a.get("name") for a in info.get("authors") or [] if a.get("name")]
    cited_by = (raw.get("inline_links") or {}).get("cited_by") or {}
    pdf_link = next(
        (
            res.get("link")
            for res in raw.get("resources") or []
            if (res.get("file_format") or "").upper() == "PDF"
        ),
        None,
    )
    return Publication(
        title=raw.get("title") or "Untitled",
        link=raw.get("link"),
        snippet=snippet,
        abstract=snippet,
        authors=authors,
        publication=summary,
        year=_extract_year(summary, snippet),
        citations=cited_by.get("total") or 0,
        pdf_link=pdf_link,
        source=PROVIDER_SERPAPI,
    )


def normalize_semantic_scholar(raw: dict[str, Any]) -> Publication:
    """Map a Semantic Scholar paper to a :class:`Publication`."""
    abstract = raw.get("abstract") or ""
    return Publication(
        title=raw.get("title") or "Untitled",
        link=raw.get("url"),
        snippet=abstract,
        abstract=abstract,
        authors=[a.get("name") for a in raw.get("authors") or [] if a.get("name")],
        publication=raw.get("venue") or "",
        year=raw.get("year"),
        citations=raw.get("citationCount") or 0,
        pdf_link=None,
        source=PROVIDER_SEMANTIC_SCHOLAR,
    )


class ScholarSearchClient:
    """Runs scholarly searches against SerpAPI and Semantic Scholar.

    Args:
        serpapi_api_key: SerpAPI key; ``None`` disables SerpAPI.
        timeout: Request timeout in seconds for a client created here.
        http_client: Optional injected :class:`httpx.AsyncClient`.  Inject
            for testing; an injected client is never closed by this class.
    """

    def __init__(
        self,
        serpapi_api_key: str | None = None,
        *,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._serpapi_api_key = serpapi_api_key
        self._timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def search(self, query: str, num: int = DEFAULT_RESULTS) -> list[Publication]:
        """Run a general Google Scholar search.

        Returns:
            Normalized publications; empty for a blank query.

        Raises:
            ScholarNotConfiguredError: If no SerpAPI key is configured.
            ScholarSearchError: If SerpAPI fails.
        """
        query = query.strip()
        if not query:
            return []
        if not self._serpapi_api_key:
            raise ScholarNotConfiguredError(
                "SERPAPI_API_KEY is not configured", provider=PROVIDER_SERPAPI
            )
        async with self._client() as client:
            raw = await fetch_serpapi_scholar(
                client, query, self._serpapi_api_key, clamp_results(num)
            )
        results = [normalize_serpapi(item) for item in raw]
        logger.info("scholar_search_complete", extra={"provider": PROVIDER_SERPAPI, "count": len(results)})
        return results

    async def search_publications(self, author: str, num: int = DEFAULT_RESULTS) -> list[Publication]:
        """Return publications by *author*.

        Returns:
            Normalized publications; empty for a blank author or when no
            provider knows the author.

        Raises:
            ScholarSearchError: If every provider attempted failed.
        """
        author = author.strip()
        if not author:
            return []
        num = clamp_results(num)
        serpapi_error: ScholarSearchError | None = None

        async with self._client() as client:
            if self._serpapi_api_key:
                try:
                    raw = await fetch_serpapi_scholar(
                        client, f'author:"{author}"', self._serpapi_api_key, num
                    )
                except ScholarSearchError as exc:
                    logger.warning("scholar_provider_failed", extra={"provider": exc.provider, "error": str(exc)})
                    serpapi_error = exc
                else:
                    if raw:
                        return [normalize_serpapi(item) for item in raw]

            logger.info("scholar_fallback", extra={"provider": PROVIDER_SEMANTIC_SCHOLAR})
            try:
                papers = await fetch_semantic_scholar_papers(client, author, num)
            except ScholarSearchError:
                if serpapi_error is not None:
                    logger.warning("scholar_all_providers_failed")
                raise

        return [normalize_semantic_scholar(paper) for paper in papers]
