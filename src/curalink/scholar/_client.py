"""HTTP client helpers for the scholarly search providers.

Contains the low-level request functions for SerpAPI (Google Scholar) and the
Semantic Scholar Graph API.  Private to the ``scholar`` package; use
:class:`curalink.scholar.client.ScholarSearchClient` instead.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from curalink.core.exceptions import ScholarSearchError
from curalink.scholar.config import (
    PROVIDER_SEMANTIC_SCHOLAR,
    PROVIDER_SERPAPI,
    SCHOLAR_LANGUAGE,
    SEMANTIC_SCHOLAR_AUTHOR_CANDIDATES,
    SEMANTIC_SCHOLAR_AUTHOR_PAPERS_URL,
    SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL,
    SEMANTIC_SCHOLAR_PAPER_FIELDS,
    SERPAPI_URL,
)

logger = logging.getLogger(__name__)


async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any],
    provider: str,
) -> dict[str, Any]:
    """Execute a GET request and return the decoded JSON body.

    Raises:
        ScholarSearchError: On non-2xx responses, network failures or a
            body that is not a JSON object.
    """
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        code = exc.response.status_code
        if code in (401, 403):
            raise ScholarSearchError(
                f"{provider}: HTTP {code} (invalid API key)", provider=provider
            ) from exc
        raise ScholarSearchError(
            f"{provider}: HTTP {code}: {exc.response.text[:200]}", provider=provider
        ) from exc
    except httpx.RequestError as exc:
        raise ScholarSearchError(f"{provider}: network error: {exc}", provider=provider) from exc

    try:
        body = response.json()
    except ValueError as exc:
        raise ScholarSearchError(f"{provider}: response is not JSON", provider=provider) from exc
    if not isinstance(body, dict):
        raise ScholarSearchError(f"{provider}: unexpected response shape", provider=provider)
    return body


async def fetch_serpapi_scholar(
    client: httpx.AsyncClient,
    query: str,
    api_key: str,
    num: int,
) -> list[dict[str, Any]]:
    """Fetch Google Scholar organic results through SerpAPI.

    Args:
        client: Shared HTTP client.
        query: Scholar query string (may use ``author:"..."`` syntax).
        api_key: SerpAPI API key.
        num: Number of results requested (1-20).

    Returns:
        List of raw ``organic_results`` dicts (may be empty).

    Raises:
        ScholarSearchError: On any provider failure.
    """
    params: dict[str, Any] = {
        "engine": "google_scholar",
        "q": query,
        "api_key": api_key,
        "num": num,
        "hl": SCHOLAR_LANGUAGE,
    }
    body = await _get_json(client, SERPAPI_URL, params, PROVIDER_SERPAPI)
    return body.get("organic_results") or []


async def fetch_semantic_scholar_papers(
    client: httpx.AsyncClient,
    author: str,
    num: int,
) -> list[dict[str, Any]]:
    """Fetch the most cited papers of the best-matching Semantic Scholar author.

    Two requests: an author search, then the first match's papers sorted by
    citation count.

    Returns:
        List of raw paper dicts; empty when no author matches.

    Raises:
        ScholarSearchError: On any provider failure.
    """
    authors_body = await _get_json(
        client,
        SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL,
        {"query": author, "limit": SEMANTIC_SCHOLAR_AUTHOR_CANDIDATES, "fields": "authorId,name"},
        PROVIDER_SEMANTIC_SCHOLAR,
    )
    candidates = authors_body.get("data") or []
    if not candidates:
        return []

    author_id = candidates[0].get("authorId")
    if not author_id:
        return []

    papers_body = await _get_json(
        client,
        SEMANTIC_SCHOLAR_AUTHOR_PAPERS_URL.format(author_id=author_id),
        {
            "fields": SEMANTIC_SCHOLAR_PAPER_FIELDS,
            "limit": num,
            "sort": "citationCount:desc",
        },
        PROVIDER_SEMANTIC_SCHOLAR,
    )
    return papers_body.get("data") or []
