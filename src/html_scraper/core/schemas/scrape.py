"""Pydantic response schemas for the scrape endpoints.

Field names are snake_case in Python and camelCase on the wire
(``is_js_rendered`` → ``isJsRendered``), which is what browser clients of
the service expect.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

#: Advisory attached to static results that look JavaScript-rendered.
JS_RENDERED_WARNING: str = (
    "This page appears to use JavaScript rendering. Content may be incomplete."
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapeResponse(_CamelModel):
    """Result of a static fetch.

    Attributes:
        html: Raw markup as served, decoded as UTF-8.
        url: Normalized URL that was admitted and fetched.
        size: Exact byte length of the fetched body.
        timestamp: Time the response was assembled (UTC).
        is_js_rendered: Heuristic guess that the page needs JavaScript.
        warning: Fixed advisory when ``is_js_rendered`` is true, else ``None``.
        framework: Framework named by a fingerprint match, if any.
    """

    html: str
    url: str
    size: int
    timestamp: datetime
    is_js_rendered: bool
    warning: Optional[str] = None
    framework: Optional[str] = None


class DynamicScrapeResponse(_CamelModel):
    """Result of a headless-browser render.

    Attributes:
        html: Markup of the rendered DOM.
        title: Document title after rendering.
        screenshot: PNG screenshot as a ``data:`` URI.
        url: Normalized URL that was admitted and rendered.
        size: Byte length of ``html`` encoded as UTF-8.
        timestamp: Time the response was assembled (UTC).
        render_time: Time the render completed (UTC).
        is_dynamic: Always ``True``.
        method: Rendering method label kept stable for existing clients.
    """

    html: str
    title: str
    screenshot: str
    url: str
    size: int
    timestamp: datetime
    render_time: datetime
    is_dynamic: bool = True
    method: str = "puppeteer"


class ErrorResponse(BaseModel):
    """JSON error body; ``details`` only accompanies unclassified failures."""

    error: str
    details: Optional[str] = None
