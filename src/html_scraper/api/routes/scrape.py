"""Scrape route handlers.

Routes:
    GET     /scrape           — static fetch + JS-rendering heuristic
    GET     /scrape-dynamic   — headless-browser render + screenshot
    OPTIONS both              — CORS preflight, empty 200
    other methods on both     — 405

Each handler parses the ``url`` query parameter, runs the admission guard,
invokes one retriever, and maps the outcome to a JSON response.  Errors are
mapped by exception type (see :mod:`html_scraper.core.exceptions`); bodies
are ``{"error": ...}``, plus ``details`` for unclassified failures.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from html_scraper.api.dependencies import (
    ClientFactory,
    get_browser_type,
    get_client_factory,
    get_retrieval_config,
    get_url_guard,
)
from html_scraper.api.metrics import (
    render_sessions_active,
    scrape_duration_seconds,
    scrape_requests_total,
)
from html_scraper.core.exceptions import (
    FetchTimeoutError,
    ScraperError,
    UpstreamUnreachableError,
)
from html_scraper.core.schemas.scrape import (
    JS_RENDERED_WARNING,
    DynamicScrapeResponse,
    ErrorResponse,
    ScrapeResponse,
)
from html_scraper.scraper.config import RetrievalConfig
from html_scraper.scraper.http_fetcher import fetch_static
from html_scraper.scraper.js_detector import classify
from html_scraper.scraper.playwright_fetcher import render_dynamic
from html_scraper.scraper.url_guard import Rejected, UrlGuard, ValidatedUrl

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["scrape"])

STATIC_FAILURE: str = "Failed to scrape URL"
DYNAMIC_FAILURE: str = "Failed to scrape URL with dynamic rendering"
PAGE_LOAD_FAILURE: str = "Failed to load page"

_REJECTED_METHODS: list[str] = ["POST", "PUT", "PATCH", "DELETE", "HEAD"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(body, status_code=status_code)


def _preflight(allowed_methods: str) -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": allowed_methods,
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )


def _method_not_allowed() -> JSONResponse:
    return _error(405, "Method not allowed")


async def _admit(raw_url: Optional[str], guard: UrlGuard) -> ValidatedUrl | JSONResponse:
    """Run the guard; return the admitted URL or the 400 response to send."""
    if not raw_url:
        return _error(400, "URL parameter is required")
    if guard.resolver is None:
        verdict = guard.validate(raw_url)
    else:
        # Resolution does blocking DNS I/O.
        verdict = await asyncio.to_thread(guard.validate, raw_url)
    if isinstance(verdict, Rejected):
        logger.info("scrape_rejected", url=raw_url, reason=verdict.reason)
        return _error(400, verdict.reason)
    return verdict.url


def _error_for(
    exc: Exception,
    generic: str,
    unreachable: str | None = None,
) -> JSONResponse:
    """Map a retrieval failure to its JSON response.

    Args:
        exc: The failure.
        generic: ``error`` text for 500 responses.
        unreachable: Fixed ``error`` text for network-level failures, or
            ``None`` to echo the exception message.
    """
    if isinstance(exc, FetchTimeoutError):
        return _error(exc.status_code, "Request timed out")
    if isinstance(exc, UpstreamUnreachableError) and unreachable is not None:
        return _error(exc.status_code, unreachable)
    if isinstance(exc, ScraperError) and exc.status_code != 500:
        return _error(exc.status_code, str(exc))
    return _error(500, generic, str(exc))


# ---------------------------------------------------------------------------
# Static scrape
# ---------------------------------------------------------------------------


@router.get("/scrape", response_model=ScrapeResponse)
async def scrape(
    config: Annotated[RetrievalConfig, Depends(get_retrieval_config)],
    guard: Annotated[UrlGuard, Depends(get_url_guard)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
    url: Optional[str] = None,
) -> ScrapeResponse | JSONResponse:
    """Fetch the raw HTML of ``url`` and flag pages that look JavaScript-rendered.

    Returns:
        ``ScrapeResponse`` on success; an ``ErrorResponse`` body with status
        400, 413, 500, 502 or 504 otherwise.
    """
    admitted = await _admit(url, guard)
    if isinstance(admitted, JSONResponse):
        scrape_requests_total.labels(mode="static", outcome="rejected").inc()
        return admitted

    start = time.perf_counter()
    try:
        async with client_factory(config, guard) as client:
            document = await fetch_static(admitted, client=client, config=config)
    except ScraperError as exc:
        scrape_requests_total.labels(mode="static", outcome=type(exc).__name__).inc()
        logger.info("static_scrape_failed", url=admitted.href, error=str(exc))
        return _error_for(exc, STATIC_FAILURE)
    except Exception as exc:
        scrape_requests_total.labels(mode="static", outcome="error").inc()
        logger.exception("static_scrape_error", url=admitted.href)
        return _error_for(exc, STATIC_FAILURE)
    finally:
        scrape_duration_seconds.labels(mode="static").observe(time.perf_counter() - start)

    classification = classify(document.html)
    scrape_requests_total.labels(mode="static", outcome="ok").inc()
    return ScrapeResponse(
        html=document.html,
        url=admitted.href,
        size=document.byte_length,
        timestamp=datetime.now(UTC),
        is_js_rendered=classification.is_js_rendered,
        warning=JS_RENDERED_WARNING if classification.is_js_rendered else None,
        framework=classification.framework,
    )


@router.options("/scrape", include_in_schema=False)
async def scrape_preflight() -> Response:
    return _preflight("GET, OPTIONS")


@router.api_route("/scrape", methods=_REJECTED_METHODS, include_in_schema=False)
async def scrape_method_not_allowed() -> JSONResponse:
    return _method_not_allowed()


# ---------------------------------------------------------------------------
# Dynamic scrape
# ---------------------------------------------------------------------------


@router.get("/scrape-dynamic", response_model=DynamicScrapeResponse)
async def scrape_dynamic(
    config: Annotated[RetrievalConfig, Depends(get_retrieval_config)],
    guard: Annotated[UrlGuard, Depends(get_url_guard)],
    browser_type: Annotated[object, Depends(get_browser_type)],
    url: Optional[str] = None,
) -> DynamicScrapeResponse | JSONResponse:
    """Render ``url`` in headless Chromium and return the rendered DOM and a screenshot.

    One browser process is launched for this request and closed before the
    response is sent.

    Returns:
        ``DynamicScrapeResponse`` on success; an ``ErrorResponse`` body with
        status 400, 413, 500, 502 or 504 otherwise.
    """
    admitted = await _admit(url, guard)
    if isinstance(admitted, JSONResponse):
        scrape_requests_total.labels(mode="dynamic", outcome="rejected").inc()
        return admitted

    start = time.perf_counter()
    render_sessions_active.inc()
    try:
        document = await render_dynamic(admitted, config=config, browser_type=browser_type)
    except ScraperError as exc:
        scrape_requests_total.labels(mode="dynamic", outcome=type(exc).__name__).inc()
        logger.info("dynamic_scrape_failed", url=admitted.href, error=str(exc))
        return _error_for(exc, DYNAMIC_FAILURE, unreachable=PAGE_LOAD_FAILURE)
    except Exception as exc:
        scrape_requests_total.labels(mode="dynamic", outcome="error").inc()
        logger.exception("dynamic_scrape_error", url=admitted.href)
        return _error_for(exc, DYNAMIC_FAILURE)
    finally:
        render_sessions_active.dec()
        scrape_duration_seconds.labels(mode="dynamic").observe(time.perf_counter() - start)

    scrape_requests_total.labels(mode="dynamic", outcome="ok").inc()
    return DynamicScrapeResponse(
        html=document.html,
        title=document.title,
        screenshot=document.screenshot_data_uri,
        url=admitted.href,
        size=document.byte_length,
        timestamp=datetime.now(UTC),
        render_time=document.rendered_at,
    )


@router.options("/scrape-dynamic", include_in_schema=False)
async def scrape_dynamic_preflight() -> Response:
    return _preflight("GET, POST, OPTIONS")


@router.api_route("/scrape-dynamic", methods=_REJECTED_METHODS, include_in_schema=False)
async def scrape_dynamic_method_not_allowed() -> JSONResponse:
    return _method_not_allowed()
