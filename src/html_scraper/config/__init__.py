"""Configuration package for HTML Scraper.

Re-exports the settings symbols so that callers can write::

    from html_scraper.config import get_settings
"""

from __future__ import annotations

from html_scraper.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
