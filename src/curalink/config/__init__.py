"""Configuration package for CuraLink.

Re-exports the most commonly used configuration symbols so that
callers can write::

    from curalink.config import get_settings, CookiePolicy

without needing to know which sub-module each symbol lives in.
"""

from __future__ import annotations

from curalink.config.cookies import CookieAttributes, CookiePolicy, CookieProfile
from curalink.config.settings import Settings, get_settings

__all__ = [
    # settings
    "Settings",
    "get_settings",
    # cookies
    "CookieAttributes",
    "CookiePolicy",
    "CookieProfile",
]
