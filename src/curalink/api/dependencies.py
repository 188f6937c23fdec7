"""FastAPI dependency injection providers.

Every provider reads from objects attached to the request by
:func:`curalink.api.main.create_app` (``app.state.components``) or by
:class:`curalink.api.middleware.AnonymousIdentityMiddleware`
(``request.state.anonymous_identity``).  Tests override them with
``app.dependency_overrides`` or by building the app with hand-made
:class:`~curalink.api.components.AppComponents`.

Dependency hierarchy::

    get_components          - AppComponents for this application
    get_quota_service       - QuotaService from the components
    get_scholar_client      - ScholarSearchClient from the components
    get_identity            - IdentityResolution for this request
    get_device_token        - the anonymous token, or None
    is_authenticated        - True when a verified session is present
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request

from curalink.api.components import AppComponents
from curalink.core.identity_resolver import IdentityResolution
from curalink.core.quota_service import QuotaService
from curalink.scholar.client import ScholarSearchClient


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_quota_service(
    components: Annotated[AppComponents, Depends(get_components)],
) -> QuotaService:
    return components.quota


def get_scholar_client(
    components: Annotated[AppComponents, Depends(get_components)],
) -> ScholarSearchClient:
    return components.scholar


def get_identity(request: Request) -> IdentityResolution:
    """Return the identity resolved by the middleware for this request.

    Requests that bypassed the middleware get an empty resolution, which the
    quota evaluator treats as an exhausted identity signal.
    """
    return getattr(request.state, "anonymous_identity", None) or IdentityResolution(token=None)


def get_device_token(
    identity: Annotated[IdentityResolution, Depends(get_identity)],
) -> Optional[str]:
    return identity.token


def is_authenticated(
    identity: Annotated[IdentityResolution, Depends(get_identity)],
) -> bool:
    return identity.authenticated
