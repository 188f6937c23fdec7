"""SQLAlchemy ORM models for CuraLink.

All models are imported here so that:
1. Alembic autogenerate can discover them via Base.metadata.
2. Application code can do `from curalink.core.models import DeviceToken`
   without knowing which sub-module a model lives in.
"""

from __future__ import annotations

from curalink.core.models.base import Base, TimestampMixin
from curalink.core.models.anonymous import DeviceToken, NetworkOrigin

__all__ = [
    "Base",
    "TimestampMixin",
    "DeviceToken",
    "NetworkOrigin",
]
