"""Heuristic detection of JavaScript-rendered pages.

Pattern-based, not parser-based: the body region is located with one
non-greedy regex and fingerprints are plain substring checks.  Both rules
are guesses.  A server-rendered page with a tiny body is flagged, and a
framework app that ships full server-side markup is still flagged because
its fingerprint is present.  Callers only see :func:`is_js_rendered` and
:func:`classify`, so the rules can be replaced by a real DOM analysis
without touching them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

#: Visible body text shorter than this (characters) marks a JS shell.
MIN_BODY_TEXT_LENGTH: int = 100

_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_LINK_RE = re.compile(r"<link[^>]*>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

#: Markup markers left by client-side frameworks and SPA mount points.
FRAMEWORK_FINGERPRINTS: tuple[str, ...] = (
    'id="__docusaurus"',
    'id="__next"',
    'id="__nuxt"',
    'id="app"',
    'id="root"',
    "data-reactroot",
    "ng-version",
)

#: Ordered (marker, framework name) pairs; first match wins.
_FRAMEWORK_NAMES: tuple[tuple[str, str], ...] = (
    ("__docusaurus", "Docusaurus"),
    ("__next", "Next.js"),
    ("__nuxt", "Nuxt.js"),
    ("data-reactroot", "React"),
    ("ng-version", "Angular"),
    ("data-v-", "Vue.js"),
)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of :func:`classify`.

    Attributes:
        is_js_rendered: ``True`` if the page likely needs JavaScript.
        framework: Framework named by a marker in the markup, if any.
    """

    is_js_rendered: bool
    framework: str | None = None


def visible_body_text(html: str) -> str | None:
    """Return the whitespace-collapsed body text, or ``None`` without a ``<body>``.

    ``<script>``, ``<style>`` and ``<link>`` elements are removed; other tags
    are left in place, as the length threshold is calibrated on that.
    """
    match = _BODY_RE.search(html)
    if match is None:
        return None
    body = match.group(1)
    body = _SCRIPT_RE.sub("", body)
    body = _STYLE_RE.sub("", body)
    body = _LINK_RE.sub("", body)
    return _WHITESPACE_RE.sub(" ", body).strip()


def has_framework_fingerprint(html: str) -> bool:
    return any(marker in html for marker in FRAMEWORK_FINGERPRINTS)


def detect_framework(html: str) -> str | None:
    """Name the client-side framework that produced ``html``, if recognisable."""
    for marker, name in _FRAMEWORK_NAMES:
        if marker in html:
            return name
    return None


def is_js_rendered(html: str) -> bool:
    """Guess whether ``html`` depends on client-side JavaScript for its content."""
    text = visible_body_text(html)
    if text is not None and len(text) < MIN_BODY_TEXT_LENGTH:
        return True
    return has_framework_fingerprint(html)


def classify(html: str) -> ClassificationResult:
    return ClassificationResult(
        is_js_rendered=is_js_rendered(html),
        framework=detect_framework(html),
    )
