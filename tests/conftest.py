"""Shared pytest fixtures for HTML Scraper tests.

Fixture summary
---------------
retrieval_config — RetrievalConfig with short timeouts and no settle delay.
settings         — Settings matching ``retrieval_config``, .env ignored.
app              — FastAPI app built from ``settings``.
client           — fastapi.testclient.TestClient against ``app``.
fake_page        — AsyncMock stand-in for a Playwright ``Page``.
fake_browser     — AsyncMock stand-in for a Playwright ``Browser``.
fake_browser_type — stand-in for ``playwright.chromium`` launching ``fake_browser``.

No network access and no browser binary are needed: HTTP goes through
``httpx.MockTransport`` / respx and Playwright objects are mocks.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from html_scraper.api.main import create_app
from html_scraper.config.settings import Settings
from html_scraper.scraper.config import RetrievalConfig

#: 1x1 transparent PNG.
PNG_BYTES: bytes = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)

RENDERED_HTML: str = (
    "<html><head><title>Rendered</title></head>"
    "<body><div id=\"app\"><h1>Hello from the client</h1></div></body></html>"
)


# ---------------------------------------------------------------------------
# Configuration and app
# ---------------------------------------------------------------------------


@pytest.fixture
def retrieval_config() -> RetrievalConfig:
    return RetrievalConfig(
        static_timeout_ms=2000,
        navigation_timeout_ms=1000,
        settle_delay_ms=0,
        render_timeout_ms=2000,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        static_timeout_ms=2000,
        navigation_timeout_ms=1000,
        settle_delay_ms=0,
        render_timeout_ms=2000,
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Playwright fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_page() -> MagicMock:
    page = MagicMock(name="page")
    page.goto = AsyncMock(return_value=None)
    page.content = AsyncMock(return_value=RENDERED_HTML)
    page.title = AsyncMock(return_value="Rendered")
    page.screenshot = AsyncMock(return_value=PNG_BYTES)
    page.close = AsyncMock(return_value=None)
    return page


@pytest.fixture
def fake_browser(fake_page: MagicMock) -> MagicMock:
    browser = MagicMock(name="browser")
    browser.new_page = AsyncMock(return_value=fake_page)
    browser.close = AsyncMock(return_value=None)
    return browser


@pytest.fixture
def fake_browser_type(fake_browser: MagicMock) -> MagicMock:
    browser_type = MagicMock(name="chromium")
    browser_type.launch = AsyncMock(return_value=fake_browser)
    return browser_type
