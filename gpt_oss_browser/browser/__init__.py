"""
Browser tools: search, open and find.

Components:
- browser_tool.py: BrowserToolExecutor, the session-aware tool logic
- backend.py: Search providers (DuckDuckGo, Exa) and the HTTP content fetcher
- page_contents.py: HTML to citable plain text
"""

from .backend import (
    DuckDuckGoSearchProvider,
    ExaSearchProvider,
    HttpContentFetcher,
    SearchProvider,
    SearchResult,
    build_content_fetcher,
    build_search_provider,
)
from .browser_tool import BrowserToolExecutor

__all__ = [
    "BrowserToolExecutor",
    "DuckDuckGoSearchProvider",
    "ExaSearchProvider",
    "HttpContentFetcher",
    "SearchProvider",
    "SearchResult",
    "build_content_fetcher",
    "build_search_provider",
]
