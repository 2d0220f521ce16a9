"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Every tunable of the service is read through this module; never call
``os.getenv`` directly elsewhere in the codebase.

Usage::

    from html_scraper.config.settings import get_settings

    settings = get_settings()
    ceiling = settings.max_response_size
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide configuration backed by environment variables and an optional .env file.

    Every field has a default, so the service starts without any environment.
    Retrieval limits are copied into an immutable
    :class:`~html_scraper.scraper.config.RetrievalConfig` at app construction;
    the scraper components never read ``Settings`` themselves.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "HTML Scraper"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    # ------------------------------------------------------------------
    # CORS
    # ------------------------------------------------------------------

    allowed_origins: list[str] = ["*"]
    """Origins permitted by the CORS middleware.  The scrape endpoints are
    public, so any origin is allowed unless narrowed here."""

    # ------------------------------------------------------------------
    # Retrieval limits
    # ------------------------------------------------------------------

    max_response_size: int = Field(default=1024 * 1024, gt=0)
    """Ceiling, in bytes, for any document returned to a caller (1 MiB)."""

    static_timeout_ms: int = Field(default=5000, gt=0)
    """Wall-clock budget for a static fetch, body included."""

    navigation_timeout_ms: int = Field(default=10000, gt=0)
    """Playwright navigation timeout for dynamic renders."""

    settle_delay_ms: int = Field(default=2000, ge=0)
    """Extra wait after navigation so deferred client-side rendering can finish."""

    render_timeout_ms: int = Field(default=30000, gt=0)
    """Overall wall-clock budget for one dynamic render, launch to teardown."""

    viewport_width: int = Field(default=1920, gt=0)
    viewport_height: int = Field(default=1080, gt=0)

    # ------------------------------------------------------------------
    # SSRF hardening (both off by default)
    # ------------------------------------------------------------------

    resolve_hostnames: bool = False
    """Resolve the hostname during admission and reject private addresses.

    Closes the gap left by purely lexical checks for hostnames that point at
    internal addresses.  Adds one DNS lookup per request.
    """

    revalidate_redirects: bool = False
    """Run every redirect hop of a static fetch back through the admission guard.

    Legitimate redirects to hosts the guard rejects will fail with 400.
    """

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    In tests, call ``get_settings.cache_clear()`` after patching environment
    variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
