"""Pydantic response schemas.

Sub-modules:
    scrape — ScrapeResponse, DynamicScrapeResponse, ErrorResponse
"""

from __future__ import annotations
