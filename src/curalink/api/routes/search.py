"""Scholarly search route handlers with anonymous quota enforcement.

``GET /api/search``
    General scholarly search.  Quota-gated for anonymous callers.

``GET /api/search/publications``
    Publications by an author.  Quota-gated for anonymous callers.

``GET /api/search/limit``
    The caller's remaining anonymous searches.  Never counts a search.

For anonymous callers a search is counted only after the provider call
returned; a refused (HTTP 429), unconfigured (HTTP 503) or failed (HTTP 502)
search is never counted, and neither is a blank query (HTTP 422), which
is rejected before the quota is consulted.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from curalink.api.dependencies import get_identity, get_quota_service, get_scholar_client
from curalink.core.exceptions import ScholarNotConfiguredError, ScholarSearchError
from curalink.core.identity_resolver import IdentityResolution
from curalink.core.quota_service import QuotaService
from curalink.core.schemas.search import LimitReached, Publication, QuotaStatus, SearchResponse
from curalink.scholar.client import ScholarSearchClient
from curalink.scholar.config import DEFAULT_RESULTS, MAX_RESULTS, MIN_RESULTS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])

LIMIT_REACHED_DETAIL = "Free search limit reached. Sign in to continue searching."

_QUOTA_RESPONSES = {
    status.HTTP_429_TOO_MANY_REQUESTS: {"model": LimitReached},
    status.HTTP_502_BAD_GATEWAY: {"description": "Search provider failed."},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Search provider not configured."},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_text(value: str, field: str) -> str:
    """Strip *value* and reject it with HTTP 422 when nothing is left."""
    stripped = value.strip()
    if not stripped:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{field} must not be blank.",
        )
    return stripped


async def _dispatch(run: Callable[[], Awaitable[list[Publication]]]) -> list[Publication]:
    """Run a provider call, mapping provider errors to HTTP errors."""
    try:
        return await run()
    except ScholarNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ScholarSearchError as exc:
        logger.warning("scholar_search_failed", extra={"provider": exc.provider, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The search provider did not respond. Please try again later.",
        ) from exc


async def _quota_gated_search(
    request: Request,
    identity: IdentityResolution,
    quota: QuotaService,
    query: str,
    run: Callable[[], Awaitable[list[Publication]]],
) -> Union[SearchResponse, JSONResponse]:
    if identity.authenticated:
        results = await _dispatch(run)
        return SearchResponse(
            query=query,
            results=results,
            quota=QuotaStatus(authenticated=True, allowed=True),
        )

    decision = await quota.evaluate(
        identity.token, request, identity_degraded=identity.degraded
    )
    if not decision.allowed:
        logger.info("search_refused", extra={"limit": decision.limit})
        body = LimitReached(detail=LIMIT_REACHED_DETAIL, limit=decision.limit)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(),
        )

    results = await _dispatch(run)
    await quota.record_search(identity.token, request)

    remaining = max(0, decision.remaining - 1)
    return SearchResponse(
        query=query,
        results=results,
        quota=QuotaStatus(
            authenticated=False,
            allowed=remaining > 0,
            remaining=remaining,
            limit=decision.limit,
        ),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("", response_model=SearchResponse, responses=_QUOTA_RESPONSES)
async def search(
    request: Request,
    identity: Annotated[IdentityResolution, Depends(get_identity)],
    quota: Annotated[QuotaService, Depends(get_quota_service)],
    scholar: Annotated[ScholarSearchClient, Depends(get_scholar_client)],
    q: str = Query(..., min_length=1, max_length=500, description="Search terms."),
    num: int = Query(DEFAULT_RESULTS, ge=MIN_RESULTS, le=MAX_RESULTS),
) -> Union[SearchResponse, JSONResponse]:
    """Run a general scholarly search.

    Raises:
        HTTPException 503: If the search provider is not configured.
        HTTPException 502: If the search provider failed.
    """
    q = _require_text(q, "q")
    return await _quota_gated_search(request, identity, quota, q, lambda: scholar.search(q, num))


@router.get("/publications", response_model=SearchResponse, responses=_QUOTA_RESPONSES)
async def search_publications(
    request: Request,
    identity: Annotated[IdentityResolution, Depends(get_identity)],
    quota: Annotated[QuotaService, Depends(get_quota_service)],
    scholar: Annotated[ScholarSearchClient, Depends(get_scholar_client)],
    author: str = Query(..., min_length=1, max_length=200, description="Author name."),
    num: int = Query(DEFAULT_RESULTS, ge=MIN_RESULTS, le=MAX_RESULTS),
) -> Union[SearchResponse, JSONResponse]:
    """Return publications by an author.

    Raises:
        HTTPException 502: If no publication provider could answer.
    """
    author = _require_text(author, "author")
    return await _quota_gated_search(
        request, identity, quota, author, lambda: scholar.search_publications(author, num)
    )


@router.get("/limit", response_model=QuotaStatus)
async def search_limit(
    request: Request,
    identity: Annotated[IdentityResolution, Depends(get_identity)],
    quota: Annotated[QuotaService, Depends(get_quota_service)],
) -> QuotaStatus:
    """Report how many anonymous searches the caller has left."""
    if identity.authenticated:
        return QuotaStatus(authenticated=True, allowed=True)
    decision = await quota.evaluate(
        identity.token, request, identity_degraded=identity.degraded
    )
    return QuotaStatus(
        authenticated=False,
        allowed=decision.allowed,
        remaining=decision.remaining,
        limit=decision.limit,
    )
