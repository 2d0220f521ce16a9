"""FastAPI dependency injection providers.

The retrieval configuration and the admission guard are built once in
``create_app()`` and stored on ``app.state``; these providers hand them to
the route handlers.  Tests swap any of them through
``app.dependency_overrides``.

Dependency summary::

    get_retrieval_config — immutable RetrievalConfig for this app
    get_url_guard        — UrlGuard configured from settings
    get_client_factory   — builds the per-request httpx.AsyncClient
    get_browser_type     — Playwright browser type, None = start a driver
"""

from __future__ import annotations

from typing import Callable, Optional

import httpx
from fastapi import Request

from html_scraper.scraper.config import RetrievalConfig
from html_scraper.scraper.http_fetcher import build_client
from html_scraper.scraper.url_guard import UrlGuard

ClientFactory = Callable[[RetrievalConfig, Optional[UrlGuard]], httpx.AsyncClient]


def get_retrieval_config(request: Request) -> RetrievalConfig:
    return request.app.state.retrieval_config


def get_url_guard(request: Request) -> UrlGuard:
    return request.app.state.url_guard


def get_client_factory() -> ClientFactory:
    """Return the factory used to build one httpx client per static fetch."""
    return build_client


def get_browser_type() -> object | None:
    """Return the browser type used by dynamic renders.

    ``None`` makes :func:`~html_scraper.scraper.playwright_fetcher.render_dynamic`
    start a Playwright driver per render.
    """
    return None
