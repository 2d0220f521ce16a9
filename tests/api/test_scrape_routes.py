"""Route tests for the scrape and health endpoints.

The static retriever runs against ``httpx.MockTransport`` through an
overridden client factory; the dynamic renderer runs against the Playwright
fakes from ``conftest.py`` through an overridden browser type.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from html_scraper.api.dependencies import (
    get_browser_type,
    get_client_factory,
    get_retrieval_config,
)
from html_scraper.core.schemas.scrape import JS_RENDERED_WARNING
from html_scraper.scraper.config import RetrievalConfig
from html_scraper.scraper.http_fetcher import build_client

Handler = Callable[[httpx.Request], httpx.Response]


def _use_transport(app: FastAPI, handler: Handler) -> list[httpx.Request]:
    """Route static fetches through ``handler``; return the requests it saw."""
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    app.dependency_overrides[get_client_factory] = lambda: (
        lambda config, guard: build_client(config, guard, transport=httpx.MockTransport(recording))
    )
    return seen


def _use_browser(app: FastAPI, browser_type: MagicMock) -> None:
    app.dependency_overrides[get_browser_type] = lambda: browser_type


def _html(body: str) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=body)

    return handler


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


class TestAdmission:
    @pytest.mark.parametrize("path", ["/scrape", "/scrape-dynamic"])
    def test_missing_url_is_400(self, client: TestClient, path: str) -> None:
        response = client.get(path)

        assert response.status_code == 400
        assert response.json() == {"error": "URL parameter is required"}

    @pytest.mark.parametrize("path", ["/scrape", "/scrape-dynamic"])
    def test_private_address_rejected_before_any_io(
        self, app: FastAPI, client: TestClient, fake_browser_type: MagicMock, path: str
    ) -> None:
        seen = _use_transport(app, _html("<html></html>"))
        _use_browser(app, fake_browser_type)

        response = client.get(path, params={"url": "http://192.168.1.1/admin"})

        assert response.status_code == 400
        assert response.json() == {"error": "Private IP addresses are not allowed"}
        assert seen == []
        fake_browser_type.launch.assert_not_awaited()

    def test_non_http_scheme_rejected(self, client: TestClient) -> None:
        response = client.get("/scrape", params={"url": "file:///etc/passwd"})

        assert response.status_code == 400
        assert response.json() == {"error": "Only HTTP and HTTPS URLs are allowed"}

    def test_malformed_url_rejected(self, client: TestClient) -> None:
        response = client.get("/scrape", params={"url": "not a url"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid URL format"}

    def test_blocked_hostname_rejected(self, client: TestClient) -> None:
        response = client.get("/scrape", params={"url": "http://0.0.0.0:8080/"})

        assert response.status_code == 400
        assert response.json() == {"error": "This hostname is not allowed"}


# ---------------------------------------------------------------------------
# GET /scrape
# ---------------------------------------------------------------------------


class TestStaticScrape:
    def test_server_rendered_page(self, app: FastAPI, client: TestClient) -> None:
        body = "<html><body><article>" + ("x" * (51200 - 45)) + "</article></body></html>"
        assert len(body.encode("utf-8")) == 51200
        _use_transport(app, _html(body))

        response = client.get("/scrape", params={"url": "https://example.com/article"})

        assert response.status_code == 200
        data = response.json()
        assert data["html"] == body
        assert data["url"] == "https://example.com/article"
        assert data["size"] == 51200
        assert data["isJsRendered"] is False
        assert data["warning"] is None
        assert "timestamp" in data

    def test_js_rendered_page_carries_warning(self, app: FastAPI, client: TestClient) -> None:
        _use_transport(app, _html('<html><body><div id="__next"></div></body></html>'))

        response = client.get("/scrape", params={"url": "https://spa.example.com/"})

        assert response.status_code == 200
        data = response.json()
        assert data["isJsRendered"] is True
        assert data["warning"] == JS_RENDERED_WARNING
        assert data["framework"] == "Next.js"

    def test_upstream_404_is_502(self, app: FastAPI, client: TestClient) -> None:
        _use_transport(app, lambda request: httpx.Response(404))

        response = client.get("/scrape", params={"url": "https://example.com/missing"})

        assert response.status_code == 502
        assert response.json() == {"error": "HTTP 404: Not Found"}

    def test_non_html_is_400(self, app: FastAPI, client: TestClient) -> None:
        _use_transport(
            app,
            lambda request: httpx.Response(
                200, headers={"content-type": "application/json"}, content=b"{}"
            ),
        )

        response = client.get("/scrape", params={"url": "https://api.example.com/data"})

        assert response.status_code == 400
        assert response.json() == {"error": "URL does not return HTML content"}

    def test_oversized_stream_is_413(self, app: FastAPI, client: TestClient) -> None:
        async def two_megabytes() -> AsyncIterator[bytes]:
            for _ in range(2048):
                yield b"a" * 1024

        _use_transport(
            app,
            lambda request: httpx.Response(
                200, headers={"content-type": "text/html"}, content=two_megabytes()
            ),
        )

        response = client.get("/scrape", params={"url": "https://big.example.com/"})

        assert response.status_code == 413
        assert "too large" in response.json()["error"]

    def test_timeout_is_504(self, app: FastAPI, client: TestClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        _use_transport(app, handler)

        response = client.get("/scrape", params={"url": "https://slow.example.com/"})

        assert response.status_code == 504
        assert response.json() == {"error": "Request timed out"}

    def test_unreachable_is_502(self, app: FastAPI, client: TestClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        _use_transport(app, handler)

        response = client.get("/scrape", params={"url": "https://down.example.com/"})

        assert response.status_code == 502

    def test_unexpected_failure_is_500_with_details(self, app: FastAPI, client: TestClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport exploded")

        _use_transport(app, handler)

        response = client.get("/scrape", params={"url": "https://example.com/"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to scrape URL", "details": "transport exploded"}

    def test_api_prefix_alias(self, app: FastAPI, client: TestClient) -> None:
        _use_transport(app, _html("<html><body>" + ("text " * 40) + "</body></html>"))

        response = client.get("/api/scrape", params={"url": "https://example.com/"})

        assert response.status_code == 200
        assert response.json()["isJsRendered"] is False


# ---------------------------------------------------------------------------
# GET /scrape-dynamic
# ---------------------------------------------------------------------------


class TestDynamicScrape:
    def test_rendered_page(
        self, app: FastAPI, client: TestClient, fake_browser_type: MagicMock, fake_browser: MagicMock
    ) -> None:
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://spa.example.com/"})

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Rendered"
        assert data["url"] == "https://spa.example.com/"
        assert data["screenshot"].startswith("data:image/png;base64,")
        assert data["isDynamic"] is True
        assert data["method"] == "puppeteer"
        assert data["size"] == len(data["html"].encode("utf-8"))
        assert "renderTime" in data
        fake_browser.close.assert_awaited_once()

    def test_network_error_is_502_page_load_failure(
        self, app: FastAPI, client: TestClient, fake_browser_type: MagicMock, fake_page: MagicMock
    ) -> None:
        fake_page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_REFUSED at https://down.example.com/")
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://down.example.com/"})

        assert response.status_code == 502
        assert response.json() == {"error": "Failed to load page"}

    def test_launch_failure_is_500_with_details(
        self, app: FastAPI, client: TestClient, fake_browser_type: MagicMock
    ) -> None:
        fake_browser_type.launch.side_effect = PlaywrightError("Executable doesn't exist")
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://spa.example.com/"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to scrape URL with dynamic rendering"
        assert "Executable doesn't exist" in data["details"]

    def test_navigation_timeout_is_504(
        self,
        app: FastAPI,
        client: TestClient,
        fake_browser_type: MagicMock,
        fake_browser: MagicMock,
        fake_page: MagicMock,
    ) -> None:
        fake_page.goto.side_effect = PlaywrightTimeoutError("Timeout 1000ms exceeded.")
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://slow.example.com/"})

        assert response.status_code == 504
        assert response.json() == {"error": "Request timed out"}
        fake_page.close.assert_awaited_once()
        fake_browser.close.assert_awaited_once()

    def test_oversized_render_is_413(
        self, app: FastAPI, client: TestClient, fake_browser_type: MagicMock, fake_page: MagicMock
    ) -> None:
        fake_page.content.return_value = "<html><body>" + ("x" * (1024 * 1024)) + "</body></html>"
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://huge.example.com/"})

        assert response.status_code == 413
        assert "too large" in response.json()["error"]
        fake_page.screenshot.assert_not_awaited()

    def test_overall_render_deadline_is_504(
        self,
        app: FastAPI,
        client: TestClient,
        fake_browser_type: MagicMock,
        fake_browser: MagicMock,
        fake_page: MagicMock,
    ) -> None:
        async def hang(*args, **kwargs) -> None:
            await asyncio.sleep(5)

        fake_page.goto.side_effect = hang
        app.dependency_overrides[get_retrieval_config] = lambda: RetrievalConfig(
            settle_delay_ms=0, render_timeout_ms=50
        )
        _use_browser(app, fake_browser_type)

        response = client.get("/scrape-dynamic", params={"url": "https://hang.example.com/"})

        assert response.status_code == 504
        assert response.json() == {"error": "Request timed out"}
        fake_browser.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# Methods and preflight
# ---------------------------------------------------------------------------


class TestMethods:
    @pytest.mark.parametrize("path", ["/scrape", "/scrape-dynamic"])
    def test_post_is_405(self, client: TestClient, path: str) -> None:
        response = client.post(path, params={"url": "https://example.com/"})

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_options_static(self, client: TestClient) -> None:
        response = client.options("/scrape")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"

    def test_options_dynamic(self, client: TestClient) -> None:
        response = client.options("/scrape-dynamic")

        assert response.status_code == 200
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"


# ---------------------------------------------------------------------------
# Health and metrics
# ---------------------------------------------------------------------------


class TestSystemRoutes:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "x-request-id" in response.headers

    def test_browser_health_reports_launch_flags(self, client: TestClient) -> None:
        data = client.get("/health/browser").json()

        assert "--no-sandbox" in data["browser_args"]

    def test_metrics_exposes_scrape_counters(self, app: FastAPI, client: TestClient) -> None:
        _use_transport(app, _html("<html></html>"))
        client.get("/scrape", params={"url": "https://example.com/"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "scrape_requests_total" in response.text

    def test_request_counter_labels_by_route_template(self, client: TestClient) -> None:
        client.get("/no-such-page-8c1f")
        client.get("/health")

        text = client.get("/metrics").text

        assert "/no-such-page-8c1f" not in text
        assert 'path="unmatched"' in text
        assert 'path="/health"' in text
