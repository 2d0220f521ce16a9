"""Prometheus metrics for HTML Scraper.

All metrics are module-level singletons registered on the default
``REGISTRY``.

Metrics defined here:

  scrape_requests_total{mode, outcome}
      Counter — scrape requests by mode (static, dynamic) and outcome
      (ok, rejected, or the name of the error class).

  scrape_duration_seconds{mode}
      Histogram — wall-clock time spent retrieving, admission excluded.

  render_sessions_active
      Gauge — dynamic renders currently holding a browser process.

  http_requests_total{method, path, status}
      Counter — HTTP requests handled by the FastAPI application.

Usage::

    from html_scraper.api.metrics import scrape_requests_total
    scrape_requests_total.labels(mode="static", outcome="ok").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Scrape metrics
# ---------------------------------------------------------------------------

scrape_requests_total: Counter = Counter(
    "scrape_requests_total",
    "Scrape requests by mode and outcome.",
    labelnames=["mode", "outcome"],
)

scrape_duration_seconds: Histogram = Histogram(
    "scrape_duration_seconds",
    "Retrieval duration in seconds.",
    labelnames=["mode"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)

render_sessions_active: Gauge = Gauge(
    "render_sessions_active",
    "Dynamic renders currently holding a browser process.",
)

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)


# ---------------------------------------------------------------------------
# Response helper
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
