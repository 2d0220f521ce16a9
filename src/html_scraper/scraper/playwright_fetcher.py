"""Playwright-based headless browser renderer for JavaScript-heavy pages.

Every render owns a fresh Chromium process and a single page; nothing is
pooled or shared between requests.  :class:`RenderSession` is the scoped
acquisition: entering it launches the browser, leaving it closes the page
and then the browser, on success, on any exception, and when the render is
cancelled by its deadline.

Install the browser binary once per host::

    playwright install chromium
"""

from __future__ import annotations

import asyncio
import base64
import enum
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from types import TracebackType

import structlog
from playwright.async_api import BrowserType, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from html_scraper.core.exceptions import (
    FetchTimeoutError,
    RenderEngineUnavailableError,
    ResponseTooLargeError,
    UpstreamUnreachableError,
)
from html_scraper.scraper.config import RetrievalConfig
from html_scraper.scraper.url_guard import ValidatedUrl

logger = structlog.get_logger(__name__)

#: Prefix Chromium uses for network-level navigation failures.
NET_ERROR_PREFIX: str = "net::ERR_"


class RenderState(str, enum.Enum):
    """Lifecycle of a :class:`RenderSession`."""

    LAUNCHING = "launching"
    NAVIGATING = "navigating"
    SETTLING = "settling"
    EXTRACTING = "extracting"
    TORN_DOWN = "torn_down"
    FAILED = "failed"


@dataclass
class RenderedDocument:
    """Output of a successful render.

    Attributes:
        html: Markup of the rendered DOM.
        title: Document title.
        screenshot: PNG bytes, clipped to the configured rectangle.
        rendered_at: Time extraction finished (UTC).
        byte_length: Size of ``html`` encoded as UTF-8.
    """

    html: str
    title: str
    screenshot: bytes
    rendered_at: datetime
    byte_length: int

    @property
    def screenshot_data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.screenshot).decode("ascii")


class RenderSession:
    """One browser process and one page, released together.

    Usage::

        async with RenderSession(playwright.chromium, config) as session:
            document = await session.render(url)

    Args:
        browser_type: Playwright browser type to launch (``playwright.chromium``).
        config: Supplies timeouts, viewport, user-agent and launch flags.
    """

    def __init__(self, browser_type: BrowserType, config: RetrievalConfig) -> None:
        self._browser_type = browser_type
        self._config = config
        self.browser = None
        self.page = None
        self.state = RenderState.LAUNCHING
        self.failed_in: RenderState | None = None

    async def __aenter__(self) -> RenderSession:
        try:
            self.browser = await self._browser_type.launch(
                headless=True,
                args=list(self._config.browser_args),
            )
        except (PlaywrightError, OSError) as exc:
            self._fail()
            logger.error("render_launch_failed", error=str(exc))
            raise RenderEngineUnavailableError(f"Failed to launch browser: {exc}") from exc
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self._fail()
        await self.close()

    def _fail(self) -> None:
        if self.state not in (RenderState.TORN_DOWN, RenderState.FAILED):
            self.failed_in = self.state
            self.state = RenderState.FAILED

    async def close(self) -> None:
        """Close the page, then the browser.

        A failure closing one never prevents closing the other, and close
        failures are logged rather than raised so they cannot mask the error
        that ended the render.
        """
        try:
            if self.page is not None:
                try:
                    await self.page.close()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("render_page_close_failed", error=str(exc))
        finally:
            if self.browser is not None:
                try:
                    await self.browser.close()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("render_browser_close_failed", error=str(exc))
            if self.state is not RenderState.FAILED:
                self.state = RenderState.TORN_DOWN

    async def render(self, url: ValidatedUrl) -> RenderedDocument:
        """Navigate to ``url``, let it settle, and extract markup, title and screenshot.

        Raises:
            FetchTimeoutError: Navigation did not reach network idle in time.
            UpstreamUnreachableError: Chromium reported a ``net::ERR_*`` failure.
            ResponseTooLargeError: Rendered markup exceeds the ceiling.  Only
                known after rendering, so the render cost is always paid.
        """
        cfg = self._config
        self.state = RenderState.NAVIGATING
        self.page = await self.browser.new_page(
            viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            user_agent=cfg.user_agent,
        )
        try:
            await self.page.goto(
                url.href,
                wait_until="networkidle",
                timeout=cfg.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            logger.warning("render_navigation_timeout", url=url.href, timeout_ms=cfg.navigation_timeout_ms)
            raise FetchTimeoutError(
                f"Navigation timeout of {cfg.navigation_timeout_ms} ms exceeded"
            ) from exc
        except PlaywrightError as exc:
            if NET_ERROR_PREFIX in str(exc):
                logger.warning("render_navigation_failed", url=url.href, error=str(exc))
                raise UpstreamUnreachableError(str(exc)) from exc
            raise

        self.state = RenderState.SETTLING
        await asyncio.sleep(cfg.settle_delay_ms / 1000)

        self.state = RenderState.EXTRACTING
        html = await self.page.content()
        size = len(html.encode("utf-8"))
        if size > cfg.max_response_size:
            raise ResponseTooLargeError(cfg.max_response_size, size=size)

        title = await self.page.title()
        screenshot = await self.page.screenshot(type="png", clip=cfg.screenshot_clip)
        return RenderedDocument(
            html=html,
            title=title,
            screenshot=screenshot,
            rendered_at=datetime.now(UTC),
            byte_length=size,
        )


async def _render_with(
    browser_type: BrowserType, url: ValidatedUrl, config: RetrievalConfig
) -> RenderedDocument:
    async with RenderSession(browser_type, config) as session:
        return await session.render(url)


async def _render_with_playwright(url: ValidatedUrl, config: RetrievalConfig) -> RenderedDocument:
    try:
        playwright = await async_playwright().start()
    except Exception as exc:  # noqa: BLE001
        logger.error("render_driver_start_failed", error=str(exc))
        raise RenderEngineUnavailableError(f"Failed to start browser driver: {exc}") from exc
    try:
        return await _render_with(playwright.chromium, url, config)
    finally:
        try:
            await playwright.stop()
        except Exception as exc:  # noqa: BLE001
            logger.warning("render_driver_stop_failed", error=str(exc))


async def render_dynamic(
    url: ValidatedUrl,
    *,
    config: RetrievalConfig,
    browser_type: BrowserType | None = None,
) -> RenderedDocument:
    """Render an admitted URL in a fresh headless Chromium.

    The whole render (driver start, launch, navigation, settle delay,
    extraction, teardown) runs under ``config.render_timeout_ms``.  When the
    deadline fires, the session is cancelled and its teardown still closes
    the page and the browser.

    Args:
        url: Output of the admission guard.
        config: Retrieval configuration.
        browser_type: Browser type to launch.  ``None`` starts a Playwright
            driver for this render and uses its Chromium.

    Returns:
        A :class:`RenderedDocument`.

    Raises:
        RenderEngineUnavailableError: The driver or browser could not start.
        FetchTimeoutError: Navigation timeout or overall deadline expired.
        UpstreamUnreachableError: Network-level navigation failure.
        ResponseTooLargeError: Rendered markup above the ceiling.
    """
    started = time.perf_counter()
    try:
        async with asyncio.timeout(config.render_timeout_ms / 1000):
            if browser_type is None:
                document = await _render_with_playwright(url, config)
            else:
                document = await _render_with(browser_type, url, config)
    except TimeoutError as exc:
        logger.warning("render_deadline_exceeded", url=url.href, timeout_ms=config.render_timeout_ms)
        raise FetchTimeoutError("Render timed out") from exc

    logger.info(
        "render_complete",
        url=url.href,
        size=document.byte_length,
        title=document.title,
        elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return document
