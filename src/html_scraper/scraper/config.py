"""Constants and the immutable retrieval configuration.

The module-level constants are the reference defaults.  Components never
read them directly: they receive a :class:`RetrievalConfig` at construction
so tests can shrink ceilings and timeouts without touching global state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from html_scraper.config.settings import Settings

# ---------------------------------------------------------------------------
# Size and timing
# ---------------------------------------------------------------------------

#: Maximum document size (bytes) returned to a caller, static or rendered.
MAX_RESPONSE_SIZE: int = 1024 * 1024  # 1 MiB

#: Wall-clock budget for a static fetch, headers and body included.
STATIC_TIMEOUT_MS: int = 5000

#: Playwright navigation timeout.
NAVIGATION_TIMEOUT_MS: int = 10000

#: Fixed wait after navigation for deferred client-side rendering.
SETTLE_DELAY_MS: int = 2000

#: Overall budget for one dynamic render, browser launch to teardown.
RENDER_TIMEOUT_MS: int = 30000

# ---------------------------------------------------------------------------
# Browser geometry
# ---------------------------------------------------------------------------

VIEWPORT_WIDTH: int = 1920
VIEWPORT_HEIGHT: int = 1080

#: Screenshots are clipped to at most this size, anchored top-left.
SCREENSHOT_MAX_WIDTH: int = 1200
SCREENSHOT_MAX_HEIGHT: int = 800

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: Browser user-agent sent by both the static fetcher and the renderer.
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

#: Default request headers for static fetches.
REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Upgrade-Insecure-Requests": "1",
}

#: Content-Type substrings accepted as HTML.
HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml")

# ---------------------------------------------------------------------------
# Admission deny-list
# ---------------------------------------------------------------------------

#: Hostname patterns rejected as private, loopback, or link-local.  Matched
#: against the lower-cased hostname string, not the resolved address.
PRIVATE_HOST_PATTERNS: tuple[str, ...] = (
    r"^10\.",
    r"^172\.(1[6-9]|2[0-9]|3[0-1])\.",
    r"^192\.168\.",
    r"^127\.",
    r"^169\.254\.",
    r"^f[cd][0-9a-f]{0,2}:",  # fc00::/7 unique-local
    r"^fe80:",
    r"^::1$",
    r"^localhost$",
)

#: Literal hostnames rejected even when no pattern caught them.
BLOCKED_HOSTNAMES: frozenset[str] = frozenset({"localhost", "0.0.0.0", "127.0.0.1"})

#: Chromium flags for a constrained container: no sandbox helpers, no GPU,
#: no zygote, single process, no /dev/shm dependence.
BROWSER_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-zygote",
    "--single-process",
)


# ---------------------------------------------------------------------------
# Immutable configuration value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetrievalConfig:
    """Limits and knobs shared by the guard, the fetcher and the renderer.

    Attributes:
        max_response_size: Size ceiling in bytes.
        static_timeout_ms: Static fetch budget.
        navigation_timeout_ms: Browser navigation timeout.
        settle_delay_ms: Post-navigation wait.
        render_timeout_ms: Overall dynamic render budget.
        viewport_width: Browser viewport width.
        viewport_height: Browser viewport height.
        user_agent: User-agent for both retrieval paths.
        private_host_patterns: Regexes matched against lower-cased hostnames.
        blocked_hostnames: Literal hostnames always rejected.
        browser_args: Chromium launch flags.
        revalidate_redirects: Re-admit every redirect hop of a static fetch.
    """

    max_response_size: int = MAX_RESPONSE_SIZE
    static_timeout_ms: int = STATIC_TIMEOUT_MS
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    settle_delay_ms: int = SETTLE_DELAY_MS
    render_timeout_ms: int = RENDER_TIMEOUT_MS
    viewport_width: int = VIEWPORT_WIDTH
    viewport_height: int = VIEWPORT_HEIGHT
    user_agent: str = USER_AGENT
    private_host_patterns: tuple[str, ...] = PRIVATE_HOST_PATTERNS
    blocked_hostnames: frozenset[str] = BLOCKED_HOSTNAMES
    browser_args: tuple[str, ...] = BROWSER_ARGS
    revalidate_redirects: bool = False
    _compiled_patterns: tuple[re.Pattern[str], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_compiled_patterns",
            tuple(re.compile(p, re.IGNORECASE) for p in self.private_host_patterns),
        )

    @property
    def host_patterns(self) -> tuple[re.Pattern[str], ...]:
        """Compiled :attr:`private_host_patterns`."""
        return self._compiled_patterns

    @property
    def screenshot_clip(self) -> dict[str, int]:
        """Top-left clip rectangle for screenshots, bounded by the viewport."""
        return {
            "x": 0,
            "y": 0,
            "width": min(self.viewport_width, SCREENSHOT_MAX_WIDTH),
            "height": min(self.viewport_height, SCREENSHOT_MAX_HEIGHT),
        }

    @property
    def request_headers(self) -> dict[str, str]:
        return {**REQUEST_HEADERS, "User-Agent": self.user_agent}

    @classmethod
    def from_settings(cls, settings: Settings) -> RetrievalConfig:
        """Build the configuration from application settings."""
        return cls(
            max_response_size=settings.max_response_size,
            static_timeout_ms=settings.static_timeout_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            settle_delay_ms=settings.settle_delay_ms,
            render_timeout_ms=settings.render_timeout_ms,
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            revalidate_redirects=settings.revalidate_redirects,
        )


DEFAULT_CONFIG: RetrievalConfig = RetrievalConfig()
