"""In-memory stand-ins for the quota stores and request builders.

Used by unit and route tests so that the quota subsystem can be exercised
without PostgreSQL.  Counters are plain dicts; increments run without an
``await`` between read and write, so concurrent tasks on one event loop
never lose updates.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

from starlette.requests import Request

from curalink.core.exceptions import QuotaStoreError
from curalink.core.stores import IdentityStore, NetworkOriginStore, UsageRecord

TEST_SECRET_KEY = "test-secret-key-for-tests-only-not-production"
TEST_IP_HASH_SALT = "test-ip-hash-salt-for-unit-tests"


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class InMemoryIdentityStore(IdentityStore):
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.created: list[str] = []

    async def find_by_token(self, token: str) -> UsageRecord | None:
        if token not in self.counts:
            return None
        return UsageRecord(key=token, search_count=self.counts[token])

    async def create(self, token: str) -> UsageRecord:
        self.counts[token] = 0
        self.created.append(token)
        return UsageRecord(key=token, created_at=_now())

    async def increment_by_token(self, token: str) -> None:
        if token in self.counts:
            self.counts[token] += 1


class InMemoryNetworkOriginStore(NetworkOriginStore):
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    async def find_by_hash(self, hashed_address: str) -> UsageRecord | None:
        if hashed_address not in self.counts:
            return None
        return UsageRecord(key=hashed_address, search_count=self.counts[hashed_address])

    async def upsert_increment(self, hashed_address: str) -> UsageRecord:
        self.counts[hashed_address] = self.counts.get(hashed_address, 0) + 1
        return UsageRecord(
            key=hashed_address,
            search_count=self.counts[hashed_address],
            last_search_at=_now(),
        )


class FailingIdentityStore(IdentityStore):
    """Every call raises the configured exception."""

    def __init__(self, exc: Optional[Exception] = None) -> None:
        self.exc = exc or QuotaStoreError("identity store down", store="identity")
        self.calls = 0

    async def find_by_token(self, token: str) -> UsageRecord | None:
        self.calls += 1
        raise self.exc

    async def create(self, token: str) -> UsageRecord:
        self.calls += 1
        raise self.exc

    async def increment_by_token(self, token: str) -> None:
        self.calls += 1
        raise self.exc


class FailingNetworkOriginStore(NetworkOriginStore):
    def __init__(self, exc: Optional[Exception] = None) -> None:
        self.exc = exc or QuotaStoreError("origin store down", store="network_origin")
        self.calls = 0

    async def find_by_hash(self, hashed_address: str) -> UsageRecord | None:
        self.calls += 1
        raise self.exc

    async def upsert_increment(self, hashed_address: str) -> UsageRecord:
        self.calls += 1
        raise self.exc


class HangingNetworkOriginStore(NetworkOriginStore):
    """Never answers within any reasonable timeout."""

    async def find_by_hash(self, hashed_address: str) -> UsageRecord | None:
        await asyncio.sleep(60)
        return None

    async def upsert_increment(self, hashed_address: str) -> UsageRecord:
        await asyncio.sleep(60)
        return UsageRecord(key=hashed_address)


def make_request(
    *,
    client: Optional[tuple[str, int]] = ("203.0.113.7", 51234),
    headers: Optional[dict[str, str]] = None,
    cookies: Optional[dict[str, str]] = None,
    scheme: str = "http",
    path: str = "/api/search",
) -> Request:
    """Build a bare Starlette request for unit tests."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode("latin-1")))
    scope: dict[str, Any] = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "root_path": "",
        "headers": raw_headers,
        "client": client,
        "server": ("testserver", 443 if scheme == "https" else 80),
    }
    return Request(scope)
