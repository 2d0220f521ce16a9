"""Health check route handlers.

``GET /health``
    Process liveness: ``{"status": "ok"}`` without any I/O.

``GET /health/browser``
    Reports whether the Playwright driver package is importable and which
    Chromium launch flags are in effect.  Never launches a browser; a real
    launch costs as much as a render.

These endpoints are diagnostic and never raise HTTP 5xx errors.
"""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from html_scraper.api.dependencies import get_retrieval_config
from html_scraper.scraper.config import RetrievalConfig

router = APIRouter(tags=["system"])


@router.get("/health")
async def health() -> JSONResponse:
    """Return a minimal process-level liveness status."""
    return JSONResponse({"status": "ok"})


@router.get("/health/browser")
async def browser_health(
    config: Annotated[RetrievalConfig, Depends(get_retrieval_config)],
) -> JSONResponse:
    """Return the installed Playwright version and the browser launch flags."""
    try:
        version = importlib.metadata.version("playwright")
    except importlib.metadata.PackageNotFoundError:
        version = None
    return JSONResponse(
        {
            "status": "ok" if version else "degraded",
            "playwright": version,
            "browser_args": list(config.browser_args),
        }
    )
