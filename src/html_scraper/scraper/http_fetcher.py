"""Bounded static HTML fetcher.

Uses ``httpx`` for a single streamed GET.  The whole exchange runs under one
wall-clock deadline, and the body is read chunk by chunk against a hard size
ceiling, so neither a slow-drip server nor an unbounded or mis-declared body
can hold the worker or its memory.
"""

from __future__ import annotations

import asyncio
import zlib
from collections.abc import Iterator
from dataclasses import dataclass

import httpx
import structlog

from html_scraper.core.exceptions import (
    FetchTimeoutError,
    ForbiddenUrlError,
    ResponseTooLargeError,
    UnsupportedContentTypeError,
    UpstreamHttpError,
    UpstreamUnreachableError,
)
from html_scraper.scraper.config import HTML_CONTENT_TYPES, RetrievalConfig
from html_scraper.scraper.url_guard import Rejected, UrlGuard, ValidatedUrl

logger = structlog.get_logger(__name__)

#: Content-Encodings decoded here; matches the ``Accept-Encoding`` we send.
#: ``wbits`` of ``MAX_WBITS | 32`` accepts both gzip and zlib framing.
_ZLIB_ENCODINGS: frozenset[str] = frozenset({"gzip", "x-gzip", "deflate"})
_IDENTITY_ENCODINGS: frozenset[str] = frozenset({"", "identity"})


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class StaticDocument:
    """A fetched HTML document.

    Attributes:
        html: Body decoded as UTF-8 (invalid sequences replaced).
        byte_length: Exact number of body bytes read; never above the ceiling.
        content_type: ``Content-Type`` header of the final response.
        final_url: URL after following redirects.
        status_code: HTTP status of the final response.
    """

    html: str
    byte_length: int
    content_type: str
    final_url: str
    status_code: int


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------


def build_client(
    config: RetrievalConfig,
    guard: UrlGuard | None = None,
    **kwargs,
) -> httpx.AsyncClient:
    """Create a per-request :class:`httpx.AsyncClient` for :func:`fetch_static`.

    When ``config.revalidate_redirects`` is set and a ``guard`` is given, every
    outgoing request (the first one and each redirect hop) is run back through
    the guard, and a rejected hop aborts the fetch with
    :class:`~html_scraper.core.exceptions.ForbiddenUrlError`.

    Args:
        config: Retrieval configuration supplying headers.
        guard: Admission guard for redirect re-validation.
        **kwargs: Passed to :class:`httpx.AsyncClient` (tests inject
            ``transport=``).
    """
    event_hooks: dict[str, list] = {"request": [], "response": []}
    if config.revalidate_redirects and guard is not None:

        async def _revalidate(request: httpx.Request) -> None:
            verdict = guard.validate(str(request.url))
            if isinstance(verdict, Rejected):
                logger.warning(
                    "static_fetch_redirect_rejected",
                    url=str(request.url),
                    reason=verdict.reason,
                )
                raise ForbiddenUrlError(verdict.reason, url=str(request.url))

        event_hooks["request"].append(_revalidate)

    return httpx.AsyncClient(
        headers=config.request_headers,
        follow_redirects=True,
        event_hooks=event_hooks,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Header checks
# ---------------------------------------------------------------------------


def _is_html_content_type(content_type: str) -> bool:
    """Return ``True`` if the Content-Type names HTML or XHTML."""
    ct = content_type.lower()
    return any(accepted in ct for accepted in HTML_CONTENT_TYPES)


def _declared_length(response: httpx.Response) -> int | None:
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class _BoundedDecoder:
    """Decode a raw body chunk by chunk, never producing more than is asked for.

    httpx's own decoding inflates each network chunk in full; decompressing
    here with ``max_length`` keeps a small gzip body from expanding into
    memory before the size ceiling is checked.
    """

    def __init__(self, encoding: str) -> None:
        self._inflater = None if encoding in _IDENTITY_ENCODINGS else zlib.decompressobj(
            zlib.MAX_WBITS | 32
        )

    def decode(self, raw: bytes, budget: int) -> Iterator[bytes]:
        """Yield decoded pieces of ``raw``, each at most ``budget`` bytes."""
        if self._inflater is None:
            yield raw
            return
        pending = raw
        while pending:
            out = self._inflater.decompress(pending, budget)
            pending = self._inflater.unconsumed_tail
            if out:
                yield out
            elif pending:
                # Input left but no output: nothing more to decode.
                break

    def flush(self) -> bytes:
        return b"" if self._inflater is None else self._inflater.flush()


# ---------------------------------------------------------------------------
# Public fetch function
# ---------------------------------------------------------------------------


async def _read_bounded(url: str, client: httpx.AsyncClient, limit: int) -> StaticDocument:
    async with client.stream("GET", url) as response:
        if not response.is_success:
            logger.info("static_fetch_http_error", url=url, status_code=response.status_code)
            raise UpstreamHttpError(response.status_code, response.reason_phrase)

        content_type = response.headers.get("content-type", "")
        if not _is_html_content_type(content_type):
            raise UnsupportedContentTypeError(content_type)

        declared = _declared_length(response)
        if declared is not None and declared > limit:
            logger.info("static_fetch_too_large", url=url, declared=declared, limit=limit)
            raise ResponseTooLargeError(limit, size=declared)

        encoding = response.headers.get("content-encoding", "").strip().lower()
        if encoding not in _IDENTITY_ENCODINGS and encoding not in _ZLIB_ENCODINGS:
            logger.info("static_fetch_unsupported_encoding", url=url, encoding=encoding)
            raise UnsupportedContentTypeError(f"{content_type}; content-encoding={encoding}")
        decoder = _BoundedDecoder(encoding)

        chunks: list[bytes] = []
        total = 0

        def take(piece: bytes) -> None:
            nonlocal total
            total += len(piece)
            if total > limit:
                logger.info("static_fetch_too_large", url=url, read=total, limit=limit)
                raise ResponseTooLargeError(limit)
            chunks.append(piece)

        try:
            async for raw in response.aiter_raw():
                for piece in decoder.decode(raw, limit - total + 1):
                    take(piece)
            take(decoder.flush())
        except zlib.error as exc:
            raise UpstreamUnreachableError(f"Malformed {encoding} body: {exc}") from exc

        body = b"".join(chunks)
        return StaticDocument(
            html=body.decode("utf-8", errors="replace"),
            byte_length=total,
            content_type=content_type,
            final_url=str(response.url),
            status_code=response.status_code,
        )


async def fetch_static(
    url: ValidatedUrl,
    *,
    client: httpx.AsyncClient,
    config: RetrievalConfig,
) -> StaticDocument:
    """Fetch an admitted URL with time and size limits.

    Performs the following checks in order:

    1. **Status**: a non-2xx final response (after redirects) raises
       :class:`UpstreamHttpError`.
    2. **Content-Type**: anything other than HTML/XHTML (including a missing
       header) raises :class:`UnsupportedContentTypeError` before the body
       is read.
    3. **Declared size**: a ``Content-Length`` above the ceiling raises
       :class:`ResponseTooLargeError` before the body is read.
    4. **Streamed size**: each chunk is added to a running total which is
       compared against the ceiling; exceeding it aborts the read.

    The deadline covers connect, headers and body.  On expiry the in-flight
    request is cancelled and the stream closed.

    Args:
        url: Output of the admission guard.
        client: Client from :func:`build_client`.
        config: Supplies ``max_response_size`` and ``static_timeout_ms``.

    Returns:
        A :class:`StaticDocument`.

    Raises:
        FetchTimeoutError: Deadline or an httpx timeout expired.
        UpstreamUnreachableError: DNS, connection, TLS or redirect-loop failure.
        UpstreamHttpError: Non-success status.
        UnsupportedContentTypeError: Not HTML.
        ResponseTooLargeError: Declared or streamed size above the ceiling.
        ForbiddenUrlError: A redirect hop was rejected by the guard.
    """
    try:
        async with asyncio.timeout(config.static_timeout_ms / 1000):
            document = await _read_bounded(url.href, client, config.max_response_size)
    except TimeoutError as exc:
        logger.warning("static_fetch_timeout", url=url.href, timeout_ms=config.static_timeout_ms)
        raise FetchTimeoutError("Request timed out") from exc
    except httpx.TimeoutException as exc:
        logger.warning("static_fetch_timeout", url=url.href, error=str(exc))
        raise FetchTimeoutError("Request timed out") from exc
    except httpx.RequestError as exc:
        logger.warning("static_fetch_unreachable", url=url.href, error=str(exc))
        raise UpstreamUnreachableError(f"Failed to reach {url.hostname}: {exc}") from exc

    logger.info(
        "static_fetch_complete",
        url=url.href,
        final_url=document.final_url,
        size=document.byte_length,
    )
    return document
