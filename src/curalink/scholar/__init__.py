"""Scholarly search providers.

Typical usage::

    from curalink.scholar import ScholarSearchClient

    client = ScholarSearchClient(serpapi_api_key=settings.serpapi_api_key)
    publications = await client.search("long covid fatigue", num=10)
"""

from __future__ import annotations

from curalink.scholar.client import ScholarSearchClient

__all__ = ["ScholarSearchClient"]
