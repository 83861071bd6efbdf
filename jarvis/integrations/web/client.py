"""
Web page fetching for the research specialist.

Fetches a page over HTTP and reduces it to readable text.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from ...exceptions import ExternalServiceError
from .cleaning import extract_title, html_to_text, sanitize_page_text

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; JarvisAssistant/0.1)"


class WebPage(BaseModel):
    url: str
    title: str = ""
    text: str = ""

    @property
    def snippet(self) -> str:
        if len(self.text) <= 200:
            return self.text
        return self.text[:200] + "..."


class WebPageFetcher:
    """Fetch pages with httpx and convert them with html2text."""

    def __init__(self, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> WebPage:
        """
        Download a page and return its cleaned text.

        Raises:
            ExternalServiceError: On network errors or non-2xx responses
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Fetching {url} failed: {e}")
            raise ExternalServiceError("web_fetch", str(e)) from e

        content_type = response.headers.get("content-type", "")
        body = response.text
        if "html" in content_type or body.lstrip().startswith("<"):
            return WebPage(
                url=url,
                title=extract_title(body),
                text=sanitize_page_text(html_to_text(body)),
            )
        return WebPage(url=url, text=sanitize_page_text(body))
