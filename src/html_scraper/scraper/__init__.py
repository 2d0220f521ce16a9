"""Safe-retrieval core.

Sub-modules:
- ``config``             — constants and the immutable ``RetrievalConfig``
- ``url_guard``          — SSRF admission guard
- ``http_fetcher``       — bounded httpx-based static fetcher
- ``js_detector``        — regex heuristic for JavaScript-rendered pages
- ``playwright_fetcher`` — headless Chromium renderer with scoped teardown
"""
