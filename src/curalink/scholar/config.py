"""Scholarly search provider configuration.

Two providers are used:

- **SerpAPI** (``engine=google_scholar``) - general scholar search and the
  primary source for author publications.  Requires ``SERPAPI_API_KEY``.
- **Semantic Scholar Graph API** - keyless fallback for author publications
  when SerpAPI is not configured, fails, or returns nothing.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

SERPAPI_URL: str = "https://serpapi.com/search"
"""SerpAPI endpoint (GET, query parameters)."""

SEMANTIC_SCHOLAR_AUTHOR_SEARCH_URL: str = "https://api.semanticscholar.org/graph/v1/author/search"
"""Semantic Scholar author search endpoint."""

SEMANTIC_SCHOLAR_AUTHOR_PAPERS_URL: str = "https://api.semanticscholar.org/graph/v1/author/{author_id}/papers"
"""Semantic Scholar author papers endpoint; format with ``author_id``."""

# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------

SCHOLAR_LANGUAGE: str = "en"
"""``hl`` parameter sent to Google Scholar."""

MIN_RESULTS: int = 1
MAX_RESULTS: int = 20
"""SerpAPI Google Scholar accepts ``num`` between 1 and 20."""

DEFAULT_RESULTS: int = 10

SEMANTIC_SCHOLAR_AUTHOR_CANDIDATES: int = 5
"""Author matches requested before picking the most relevant one."""

SEMANTIC_SCHOLAR_PAPER_FIELDS: str = "title,url,abstract,year,citationCount,authors,venue"

PROVIDER_SERPAPI: str = "serpapi"
PROVIDER_SEMANTIC_SCHOLAR: str = "semantic_scholar"
