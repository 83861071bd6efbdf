"""
Integrations package for Jarvis.

This package contains integrations with external services.
Each integration has its own subfolder.
"""
from .web import (
    WebPage,
    WebPageFetcher,
)

__all__ = [
    # Web pages
    "WebPage",
    "WebPageFetcher",
]
