"""Application-wide exception hierarchy for HTML Scraper.

All custom exceptions subclass ``HtmlScraperError``.  Retrieval failures
subclass ``ScraperError`` and carry the HTTP status code the request
handlers answer with, so the mapping lives next to the error taxonomy
instead of in string matching on messages.

Hierarchy::

    HtmlScraperError
    └── ScraperError                      (status_code 500)
        ├── ForbiddenUrlError             (400)
        ├── UnsupportedContentTypeError   (400)
        ├── ResponseTooLargeError         (413)
        ├── UpstreamHttpError             (502; status, reason)
        ├── UpstreamUnreachableError      (502)
        ├── FetchTimeoutError             (504)
        └── RenderEngineUnavailableError  (500)
"""

from __future__ import annotations


class HtmlScraperError(Exception):
    """Base class for all HTML Scraper exceptions."""


# ---------------------------------------------------------------------------
# Retrieval exceptions
# ---------------------------------------------------------------------------


class ScraperError(HtmlScraperError):
    """Raised when a URL cannot be admitted, fetched, or rendered.

    Attributes:
        status_code: HTTP status the API answers with for this error.
    """

    status_code: int = 500


class ForbiddenUrlError(ScraperError):
    """Raised when the admission guard rejects a URL.

    Raised directly only by the redirect re-validation hook; the initial
    admission check returns a ``Rejected`` value instead.

    Args:
        reason: The guard's rejection reason.
        url: The rejected URL.
    """

    status_code = 400

    def __init__(self, reason: str, url: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.url = url


class UnsupportedContentTypeError(ScraperError):
    """Raised when the target does not serve HTML or XHTML.

    Args:
        content_type: The offending ``Content-Type`` header value.
    """

    status_code = 400

    def __init__(self, content_type: str = "") -> None:
        super().__init__("URL does not return HTML content")
        self.content_type = content_type


class ResponseTooLargeError(ScraperError):
    """Raised when a document exceeds the size ceiling.

    Args:
        limit: The ceiling in bytes.
        size: The declared or observed size, when known.
    """

    status_code = 413

    def __init__(self, limit: int, size: int | None = None) -> None:
        if size is None:
            msg = f"Response too large (max {limit} bytes)"
        else:
            msg = f"Response too large ({size} bytes, max {limit} bytes)"
        super().__init__(msg)
        self.limit = limit
        self.size = size


class UpstreamHttpError(ScraperError):
    """Raised when the target answers with a non-success HTTP status.

    Args:
        status: Upstream status code.
        reason: Upstream reason phrase.
    """

    status_code = 502

    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(f"HTTP {status}: {reason}" if reason else f"HTTP {status}")
        self.status = status
        self.reason = reason


class UpstreamUnreachableError(ScraperError):
    """Raised on network-level failures reaching the target (DNS, TLS, refused)."""

    status_code = 502


class FetchTimeoutError(ScraperError):
    """Raised when a fetch or navigation exceeds its time budget."""

    status_code = 504


class RenderEngineUnavailableError(ScraperError):
    """Raised when the headless browser cannot be started.

    Not retried; the request fails immediately.
    """

    status_code = 500
