"""Store interfaces consumed by the anonymous quota subsystem.

Two independent stores back the quota:

- :class:`IdentityStore` - counters keyed by the device token from the
  ``device_token`` cookie.
- :class:`NetworkOriginStore` - counters keyed by a salted hash of the
  client address.

Concrete PostgreSQL implementations live in
:mod:`curalink.core.identity_store` and :mod:`curalink.core.network_origin`.
Tests substitute in-memory implementations.

Implementations must raise :class:`~curalink.core.exceptions.QuotaStoreError`
for every persistence failure, and increments must be atomic at the store
(no read-modify-write in application code).
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TypeVar

from curalink.core.exceptions import QuotaStoreError

T = TypeVar("T")


@dataclass(frozen=True)
class UsageRecord:
    """Snapshot of one counter row.

    Attributes:
        key: The device token or the hashed address.
        search_count: Searches counted so far.
        last_search_at: Time of the latest counted search, if any.
        created_at: Time the row was first written, if known.
    """

    key: str
    search_count: int = 0
    last_search_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class IdentityStore(ABC):
    """Durable mapping from device token to search counters."""

    @abstractmethod
    async def find_by_token(self, token: str) -> UsageRecord | None:
        """Return the record for *token*, or ``None`` if there is none."""

    @abstractmethod
    async def create(self, token: str) -> UsageRecord:
        """Insert a record for a newly minted *token* with ``search_count=0``."""

    @abstractmethod
    async def increment_by_token(self, token: str) -> None:
        """Atomically add one to the counter of an existing *token*."""


class NetworkOriginStore(ABC):
    """Durable mapping from hashed client address to search counters."""

    @abstractmethod
    async def find_by_hash(self, hashed_address: str) -> UsageRecord | None:
        """Return the record for *hashed_address*, or ``None`` if there is none."""

    @abstractmethod
    async def upsert_increment(self, hashed_address: str) -> UsageRecord:
        """Create the record with count 1, or atomically add one to it."""


async def bounded(awaitable: Awaitable[T], *, timeout: float, store: str) -> T:
    """Await a store call under *timeout* seconds.

    A timeout is reported as :class:`QuotaStoreError` so callers handle it
    exactly like any other store failure.  The abandoned call is not retried.

    Args:
        awaitable: The pending store operation.
        timeout: Seconds to wait before giving up.
        store: Store label attached to the raised error.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise QuotaStoreError(f"{store} store timed out after {timeout}s", store=store) from exc
