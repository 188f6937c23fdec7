"""Tests for ScholarSearchClient with mocked HTTP (respx).

Covers:
- search() happy path via SerpAPI, with result normalization
- search() without an API key -> ScholarNotConfiguredError (no HTTP call)
- search() with a blank query -> [] (no HTTP call)
- search() HTTP 401 / 500 / network error -> ScholarSearchError
- num is clamped to the provider range
- search_publications() uses SerpAPI author: syntax when configured
- search_publications() falls back to Semantic Scholar when SerpAPI is
  unconfigured, fails, or returns nothing
- search_publications() raises when the fallback fails too
- an injected http client is never closed

These tests run without a live network connection.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
import respx

from curalink.core.exceptions import ScholarNotConfiguredError, ScholarSearchError
from curalink.scholar.client import (
    ScholarSearchClient,
    clamp_results,
    normalize_semantic_scholar,
    normalize_serpapi,
)
from curalink.scholar.config import (
    SEMANTIC_SCHOLAR_AUTHOR_PAPERS_URL,
    SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL,
    SERPAPI_URL,
)

API_KEY = "test-serpapi-key"


def _serpapi_result(**overrides: Any) -> dict[str, Any]:
    result = {
        "title": "Post-exertional malaise in long COVID",
        "link": "https://example.org/pem",
        "snippet": "A cohort study published 2023 on fatigue.",
        "publication_info": {
            "summary": "J Doe, A Smith - The Lancet, 2022 - thelancet.com",
            "authors": [{"name": "J Doe"}, {"name": "A Smith"}],
        },
        "inline_links": {"cited_by": {"total": 87}},
        "resources": [
            {"title": "thelancet.com", "file_format": "HTML", "link": "https://example.org/html"},
            {"title": "thelancet.com", "file_format": "PDF", "link": "https://example.org/pem.pdf"},
        ],
    }
    result.update(overrides)
    return result


def _semantic_paper() -> dict[str, Any]:
    return {
        "paperId": "abc",
        "title": "Bronchial thermoplasty outcomes",
        "url": "https://www.semanticscholar.org/paper/abc",
        "abstract": "Five-year follow-up.",
        "year": 2019,
        "citationCount": 140,
        "authors": [{"authorId": "42", "name": "Jane Doe"}],
        "venue": "Chest",
    }


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_serpapi_fields(self) -> None:
        pub = normalize_serpapi(_serpapi_result())

        assert pub.title == "Post-exertional malaise in long COVID"
        assert pub.authors == ["J Doe", "A Smith"]
        assert pub.year == 2022
        assert pub.citations == 87
        assert pub.pdf_link == "https://example.org/pem.pdf"
        assert pub.publication.startswith("J Doe, A Smith")
        assert pub.source == "serpapi"

    def test_serpapi_sparse_result(self) -> None:
        pub = normalize_serpapi({"title": None})

        assert pub.title == "Untitled"
        assert pub.authors == []
        assert pub.year is None
        assert pub.citations == 0
        assert pub.pdf_link is None

    def test_semantic_scholar_fields(self) -> None:
        pub = normalize_semantic_scholar(_semantic_paper())

        assert pub.title == "Bronchial thermoplasty outcomes"
        assert pub.authors == ["Jane Doe"]
        assert pub.year == 2019
        assert pub.citations == 140
        assert pub.publication == "Chest"
        assert pub.source == "semantic_scholar"

    @pytest.mark.parametrize(("requested", "expected"), [(0, 1), (10, 10), (50, 20)])
    def test_clamp_results(self, requested: int, expected: int) -> None:
        assert clamp_results(requested) == expected


# ---------------------------------------------------------------------------
# search()
# ---------------------------------------------------------------------------


class TestSearch:
    @respx.mock
    async def test_happy_path(self) -> None:
        route = respx.get(SERPAPI_URL).mock(
            return_value=httpx.Response(200, json={"organic_results": [_serpapi_result()]})
        )

        results = await ScholarSearchClient(API_KEY).search("long covid", num=5)

        assert len(results) == 1
        params = route.calls.last.request.url.params
        assert params["engine"] == "google_scholar"
        assert params["q"] == "long covid"
        assert params["num"] == "5"
        assert params["api_key"] == API_KEY

    @respx.mock
    async def test_num_is_clamped(self) -> None:
        route = respx.get(SERPAPI_URL).mock(return_value=httpx.Response(200, json={}))

        results = await ScholarSearchClient(API_KEY).search("asthma", num=100)

        assert results == []
        assert route.calls.last.request.url.params["num"] == "20"

    @respx.mock
    async def test_without_key_raises_not_configured(self) -> None:
        route = respx.get(SERPAPI_URL)

        with pytest.raises(ScholarNotConfiguredError):
            await ScholarSearchClient(None).search("asthma")

        assert not route.called

    async def test_blank_query_returns_empty(self) -> None:
        assert await ScholarSearchClient(API_KEY).search("   ") == []

    @pytest.mark.parametrize("status", [401, 500])
    async def test_http_error_raises(self, status: int) -> None:
        with respx.mock:
            respx.get(SERPAPI_URL).mock(return_value=httpx.Response(status, text="nope"))
            with pytest.raises(ScholarSearchError) as exc_info:
                await ScholarSearchClient(API_KEY).search("asthma")

        assert exc_info.value.provider == "serpapi"
        assert not isinstance(exc_info.value, ScholarNotConfiguredError)

    @respx.mock
    async def test_network_error_raises(self) -> None:
        respx.get(SERPAPI_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ScholarSearchError):
            await ScholarSearchClient(API_KEY).search("asthma")

    @respx.mock
    async def test_non_object_body_raises(self) -> None:
        respx.get(SERPAPI_URL).mock(return_value=httpx.Response(200, json=["unexpected"]))

        with pytest.raises(ScholarSearchError):
            await ScholarSearchClient(API_KEY).search("asthma")

    @respx.mock
    async def test_injected_client_is_left_open(self) -> None:
        respx.get(SERPAPI_URL).mock(return_value=httpx.Response(200, json={}))
        http_client = httpx.AsyncClient()

        await ScholarSearchClient(API_KEY, http_client=http_client).search("asthma")

        assert not http_client.is_closed
        await http_client.aclose()


# ---------------------------------------------------------------------------
# search_publications()
# ---------------------------------------------------------------------------


def _mock_semantic_scholar(author_id: str = "42") -> respx.Route:
    respx.get(SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL).mock(
        return_value=httpx.Response(200, json={"data": [{"authorId": author_id, "name": "Jane Doe"}]})
    )
    return respx.get(SEMANTIC_SCHOLAR_AUTHOR_PAPERS_URL.format(author_id=author_id)).mock(
        return_value=httpx.Response(200, json={"data": [_semantic_paper()]})
    )


class TestSearchPublications:
    @respx.mock
    async def test_serpapi_author_query(self) -> None:
        route = respx.get(SERPAPI_URL).mock(
            return_value=httpx.Response(200, json={"organic_results": [_serpapi_result()]})
        )

        results = await ScholarSearchClient(API_KEY).search_publications("Jane Doe")

        assert route.calls.last.request.url.params["q"] == 'author:"Jane Doe"'
        assert [r.source for r in results] == ["serpapi"]

    @respx.mock
    async def test_unconfigured_serpapi_uses_semantic_scholar(self) -> None:
        serpapi = respx.get(SERPAPI_URL)
        papers = _mock_semantic_scholar()

        results = await ScholarSearchClient(None).search_publications("Jane Doe", num=3)

        assert not serpapi.called
        assert papers.calls.last.request.url.params["limit"] == "3"
        assert papers.calls.last.request.url.params["sort"] == "citationCount:desc"
        assert [r.source for r in results] == ["semantic_scholar"]

    @respx.mock
    async def test_serpapi_failure_falls_back(self) -> None:
        respx.get(SERPAPI_URL).mock(return_value=httpx.Response(500))
        _mock_semantic_scholar()

        results = await ScholarSearchClient(API_KEY).search_publications("Jane Doe")

        assert results[0].title == "Bronchial thermoplasty outcomes"

    @respx.mock
    async def test_empty_serpapi_falls_back(self) -> None:
        respx.get(SERPAPI_URL).mock(return_value=httpx.Response(200, json={"organic_results": []}))
        _mock_semantic_scholar()

        results = await ScholarSearchClient(API_KEY).search_publications("Jane Doe")

        assert [r.source for r in results] == ["semantic_scholar"]

    @respx.mock
    async def test_unknown_author_returns_empty(self) -> None:
        respx.get(SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL).mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        assert await ScholarSearchClient(None).search_publications("Nobody") == []

    @respx.mock
    async def test_all_providers_failing_raises(self) -> None:
        respx.get(SERPAPI_URL).mock(return_value=httpx.Response(503))
        respx.get(SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL).mock(return_value=httpx.Response(429))

        with pytest.raises(ScholarSearchError) as exc_info:
            await ScholarSearchClient(API_KEY).search_publications("Jane Doe")

        assert exc_info.value.provider == "semantic_scholar"

    async def test_blank_author_returns_empty(self) -> None:
        assert await ScholarSearchClient(API_KEY).search_publications("") == []
