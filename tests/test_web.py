"""
Tests for web page fetching and cleaning.
"""

import httpx
import pytest

from jarvis.exceptions import ExternalServiceError
from jarvis.integrations.web import WebPage, WebPageFetcher, html_to_text, sanitize_page_text
from jarvis.integrations.web.cleaning import extract_title


class TestCleaning:
    """html2text conversion and boilerplate removal."""

    def test_html_to_text_drops_links_and_images(self):
        text = html_to_text('<p>Read <a href="https://x.test">the docs</a> <img src="a.png" alt="logo"></p>')
        assert "the docs" in text
        assert "https://x.test" not in text
        assert "a.png" not in text

    def test_extract_title(self):
        assert extract_title("<html><head><title>\n  My   Page </title></head></html>") == "My Page"
        assert extract_title("<p>No title</p>") == ""

    def test_sanitize_removes_boilerplate(self):
        text = sanitize_page_text(
            "# Welcome\n"
            "Skip to main content\n"
            "Real paragraph with content.\n"
            "---\n"
            "Accept all cookies\n"
            "© 2024 Example Corp\n"
            "Privacy Policy | Terms of Service\n"
        )
        assert text == "Welcome\n\nReal paragraph with content."

    def test_sanitize_collapses_whitespace(self):
        assert sanitize_page_text("one    two\n\n\n\n\nthree\u200b") == "one two\n\nthree"

    def test_sanitize_empty(self):
        assert sanitize_page_text("") == ""

    def test_snippet(self):
        assert WebPage(url="https://x.test", text="short").snippet == "short"
        assert WebPage(url="https://x.test", text="a" * 250).snippet == "a" * 200 + "..."


class TestFetcher:
    """httpx fetching with a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_html(self, fetcher):
        page = await fetcher.fetch("https://example.com/")

        assert page.title == "Example Domain"
        assert "This domain is for use in illustrative examples in documents." in page.text
        assert "All rights reserved" not in page.text

    @pytest.mark.asyncio
    async def test_fetch_plain_text(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="plain   body"))
        page = await WebPageFetcher(transport=transport).fetch("https://example.com/robots.txt")

        assert page.title == ""
        assert page.text == "plain body"

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://example.com/new"})
            return httpx.Response(200, html="<html><head><title>New</title></head><body><p>Moved here.</p></body></html>")

        page = await WebPageFetcher(transport=httpx.MockTransport(handler)).fetch("https://example.com/old")

        assert page.title == "New"
        assert "Moved here." in page.text

    @pytest.mark.asyncio
    async def test_server_error(self, fetcher):
        with pytest.raises(ExternalServiceError, match="web_fetch failed"):
            await fetcher.fetch("https://broken.example.com/")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalServiceError, match="connection refused"):
            await WebPageFetcher(transport=httpx.MockTransport(handler)).fetch("https://example.com/")

    @pytest.mark.asyncio
    async def test_sends_user_agent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text="ok text")

        await WebPageFetcher(transport=httpx.MockTransport(handler)).fetch("https://example.com/")

        assert seen["ua"].startswith("Mozilla/5.0 (compatible; JarvisAssistant")
