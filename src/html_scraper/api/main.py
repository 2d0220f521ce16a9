"""FastAPI application factory and entry point.

Creates the application instance, registers middleware, and mounts the
scrape and health routers.

Usage::

    # Development server (from project root)
    uvicorn html_scraper.api.main:app --reload

    # Production
    gunicorn html_scraper.api.main:app -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from html_scraper import __version__
from html_scraper.api.metrics import get_metrics_response, http_requests_total
from html_scraper.config.settings import Settings, get_settings
from html_scraper.core.logging_config import configure_logging, request_id_var
from html_scraper.scraper.config import RetrievalConfig
from html_scraper.scraper.url_guard import SocketResolver, UrlGuard

# ---------------------------------------------------------------------------
# Logging configuration: applied once at import time so that records
# emitted during app construction are captured.  The level is re-applied
# inside create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Separated from the module-level ``app`` singleton so that tests can build
    an app with their own settings.

    Args:
        settings: Settings to use; defaults to :func:`get_settings`.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Fetches the HTML of public web pages, statically or rendered in "
            "a headless browser, behind SSRF admission control."
        ),
        version=__version__,
        debug=settings.debug,
        redirect_slashes=False,
    )

    # ---- Retrieval components (immutable, shared read-only) ---------------

    retrieval_config = RetrievalConfig.from_settings(settings)
    application.state.retrieval_config = retrieval_config
    application.state.url_guard = UrlGuard(
        retrieval_config,
        resolver=SocketResolver() if settings.resolve_hostnames else None,
    )

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every request with its status and duration.

        Binds a unique ``request_id`` to the structlog context so all log
        lines emitted while serving the request can be correlated.
        """
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = getattr(response, "status_code", 500)
            # Route template, not the raw path, keeps label cardinality fixed.
            route = request.scope.get("route")
            http_requests_total.labels(
                method=request.method,
                path=getattr(route, "path", "unmatched"),
                status=str(status_code),
            ).inc()
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn("request_complete", status_code=status_code, elapsed_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Routers -----------------------------------------------------------

    from html_scraper.api.routes import health, scrape  # noqa: PLC0415

    application.include_router(health.router)
    application.include_router(scrape.router)
    # Same handlers under /api for deployments that route by path prefix.
    application.include_router(scrape.router, prefix="/api")

    if settings.metrics_enabled:

        @application.get("/metrics", include_in_schema=False)
        async def metrics() -> Response:
            """Prometheus text exposition."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    # ---- Lifecycle events -------------------------------------------------

    @application.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            max_response_size=retrieval_config.max_response_size,
            resolve_hostnames=settings.resolve_hostnames,
            revalidate_redirects=settings.revalidate_redirects,
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("application_shutdown")

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn / Gunicorn.
"""
