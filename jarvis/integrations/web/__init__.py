"""
Web page fetching and cleaning.
"""

from .client import WebPage, WebPageFetcher
from .cleaning import html_to_text, sanitize_page_text

__all__ = [
    "WebPage",
    "WebPageFetcher",
    "html_to_text",
    "sanitize_page_text",
]
