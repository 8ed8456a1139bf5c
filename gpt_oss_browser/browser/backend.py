"""
Fetch and search collaborators for the browser tools.

This module defines the two capabilities the tool executor depends on:
1. SearchProvider.search() - Query a search engine and return ranked results
2. ContentFetcher.fetch() - Retrieve a page and return its plain text

Concrete implementations:
- DuckDuckGoSearchProvider: Scrapes the DuckDuckGo HTML results page
- ExaSearchProvider: Uses the Exa Search API (https://exa.ai)
- HttpContentFetcher: Plain HTTP GET, HTML converted with page_contents

All implementations:
- Use an aiohttp ClientSession with a fixed total timeout
- Raise BackendError for network failures and non-success statuses
- Optionally retry transient network errors (num_retries, default 0)

API Keys:
---------
ExaSearchProvider reads its key from `api_key` or the EXA_API_KEY
environment variable.
"""

import asyncio
import logging
import os
from abc import abstractmethod
from typing import Awaitable, Callable, ParamSpec, TypeVar
from urllib.parse import parse_qs, urlparse

import chz
import lxml.etree
import lxml.html
import pydantic
from aiohttp import ClientError, ClientSession, ClientTimeout
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import DEFAULT_USER_AGENT, ServerConfig
from ..errors import BackendError
from .page_contents import process_html, process_plaintext

logger = logging.getLogger(__name__)

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"
EXA_BASE_URL = "https://api.exa.ai"
MAX_RETRY_WAIT = 10.0

P = ParamSpec("P")
R = TypeVar("R")


class SearchResult(pydantic.BaseModel):
    """One ranked search hit."""
    title: str
    url: str
    snippet: str = ""


def with_retries(
    func: Callable[P, Awaitable[R]],
    num_retries: int,
    max_wait_time: float,
) -> Callable[P, Awaitable[R]]:
    """
    Add retry logic with exponential backoff for transient network errors.

    Args:
        func: The coroutine function to wrap
        num_retries: Retries after the first attempt (0 returns `func` unchanged)
        max_wait_time: Maximum seconds to wait between retries

    Returns:
        Wrapped function with retry logic (or original if num_retries=0)
    """
    if num_retries > 0:
        retry_decorator = retry(
            stop=stop_after_attempt(num_retries + 1),
            wait=wait_exponential(
                multiplier=1,
                min=2,
                max=max_wait_time,
            ),
            before_sleep=before_sleep_log(logger, logging.INFO),
            after=after_log(logger, logging.INFO),
            retry=retry_if_exception_type((ClientError, asyncio.TimeoutError)),
            reraise=True,
        )
        return retry_decorator(func)
    else:
        return func


def maybe_truncate(text: str, num_chars: int = 1024) -> str:
    """Truncate text to a maximum length, adding ellipsis if truncated."""
    if len(text) > num_chars:
        text = text[: (num_chars - 3)] + "..."
    return text


def _class_xpath(tag: str, css_class: str) -> str:
    return f".//{tag}[contains(concat(' ', normalize-space(@class), ' '), ' {css_class} ')]"


def _text_of(node: lxml.html.HtmlElement) -> str:
    return " ".join(" ".join(node.itertext()).split())


def _unwrap_redirect(href: str) -> str:
    """DuckDuckGo wraps result links as //duckduckgo.com/l/?uddg=<target>."""
    parsed = urlparse(href)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    if href.startswith("//"):
        return "https:" + href
    return href


def parse_duckduckgo_results(html: str, limit: int) -> list[SearchResult]:
    """
    Extract `(title, url, snippet)` triples from a DuckDuckGo HTML results page.

    Results without a link are skipped. At most `limit` result blocks are read.
    """
    if not html.strip():
        return []
    try:
        root = lxml.html.fromstring(html)
    except lxml.etree.ParserError:
        return []

    results: list[SearchResult] = []
    for block in root.xpath(_class_xpath("div", "result"))[:limit]:
        anchors = block.xpath(_class_xpath("a", "result__a"))
        if not anchors:
            continue
        anchor = anchors[0]
        href = anchor.get("href", "").strip()
        if not href:
            continue
        title = _text_of(anchor) or "Untitled"
        snippets = block.xpath(_class_xpath("a", "result__snippet"))
        snippet = _text_of(snippets[0]) if snippets else ""
        results.append(SearchResult(title=title, url=_unwrap_redirect(href), snippet=snippet))
    return results


@chz.chz(typecheck=True)
class SearchProvider:
    """
    Abstract base class for web search backends.

    Attributes:
        source: Human-readable description of the backend
        timeout: Total timeout in seconds for one search
        user_agent: User-Agent header for outbound requests
        num_retries: Retries on transient network errors
    """
    source: str = chz.field(doc="Description of the backend source")
    timeout: float = chz.field(default=30.0, doc="Total request timeout in seconds")
    user_agent: str = chz.field(default=DEFAULT_USER_AGENT, doc="User-Agent header")
    num_retries: int = chz.field(default=0, doc="Retries on transient network errors")

    async def search(self, query: str, topn: int) -> list[SearchResult]:
        """
        Perform a web search.

        Args:
            query: Search query string
            topn: Maximum number of results to return

        Returns:
            Ranked results, at most `topn`

        Raises:
            BackendError: If the search fails
        """
        run = with_retries(self.run_search, self.num_retries, MAX_RETRY_WAIT)
        try:
            async with ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            ) as session:
                return await run(query, topn, session)
        except (ClientError, asyncio.TimeoutError) as e:
            logger.warning("Search failed for %r: %s", query, e)
            raise BackendError(
                f"Network error while searching: {maybe_truncate(str(e) or type(e).__name__)}"
            ) from e

    @abstractmethod
    async def run_search(
        self, query: str, topn: int, session: ClientSession
    ) -> list[SearchResult]:
        pass


@chz.chz(typecheck=True)
class DuckDuckGoSearchProvider(SearchProvider):
    """
    Search backend scraping the DuckDuckGo HTML endpoint.

    No API key is needed. Results are parsed from `div.result` blocks:
    title and URL from `a.result__a`, snippet from `a.result__snippet`.
    """
    source: str = chz.field(default="web", doc="Description of the backend source")

    async def run_search(
        self, query: str, topn: int, session: ClientSession
    ) -> list[SearchResult]:
        async with session.get(
            DUCKDUCKGO_HTML_URL, params={"q": query}, headers={"Accept": ACCEPT_HTML}
        ) as resp:
            if resp.status >= 400:
                raise BackendError(
                    f"Search request failed with status: {resp.status}\n\n"
                    "This might be a temporary issue. Please try again later."
                )
            html = await resp.text(errors="replace")
        return parse_duckduckgo_results(html, topn)


@chz.chz(typecheck=True)
class ExaSearchProvider(SearchProvider):
    """
    Search backend using the Exa Search API.

    Configuration:
        Set EXA_API_KEY environment variable or pass api_key parameter
    """
    source: str = chz.field(default="web", doc="Description of the backend source")
    api_key: str | None = chz.field(
        doc="Exa API key. Uses EXA_API_KEY environment variable if not provided.",
        default=None,
    )

    def get_api_key(self) -> str:
        key = self.api_key or os.environ.get("EXA_API_KEY")
        if not key:
            raise BackendError("Exa API key not provided")
        return key

    async def run_search(
        self, query: str, topn: int, session: ClientSession
    ) -> list[SearchResult]:
        headers = {"x-api-key": self.get_api_key()}
        payload = {"query": query, "numResults": topn, "contents": {"summary": True}}
        async with session.post(f"{EXA_BASE_URL}/search", json=payload, headers=headers) as resp:
            if resp.status != 200:
                raise BackendError(
                    f"Search request failed with status: {resp.status}: "
                    f"{maybe_truncate(await resp.text())}"
                )
            data = await resp.json()
        return [
            SearchResult(
                title=result.get("title") or "Untitled",
                url=result["url"],
                snippet=result.get("summary") or "",
            )
            for result in data.get("results", [])[:topn]
            if result.get("url")
        ]


@chz.chz(typecheck=True)
class HttpContentFetcher:
    """
    Fetches a URL over HTTP and returns its plain-text rendering.

    Status handling:
    - 404 -> BackendError("Page not found ...")
    - any other status >= 400 -> BackendError("Failed to fetch page: HTTP <status> ...")
    - network errors and timeouts -> BackendError("Network error while fetching page ...")
    """
    timeout: float = chz.field(default=30.0, doc="Total request timeout in seconds")
    user_agent: str = chz.field(default=DEFAULT_USER_AGENT, doc="User-Agent header")
    num_retries: int = chz.field(default=0, doc="Retries on transient network errors")

    async def fetch(self, url: str) -> str:
        """
        Fetch and convert a web page.

        Args:
            url: URL to fetch

        Returns:
            The page as plain text, wrapped to 80-column lines

        Raises:
            BackendError: If the fetch fails
        """
        run = with_retries(self.fetch_once, self.num_retries, MAX_RETRY_WAIT)
        try:
            async with ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            ) as session:
                return await run(url, session)
        except (ClientError, asyncio.TimeoutError) as e:
            # malformed URLs surface as aiohttp.InvalidURL, a ClientError
            logger.warning("Error fetching URL %s: %s", url, e)
            raise BackendError(
                f"Network error while fetching page: {maybe_truncate(str(e) or type(e).__name__)}"
            ) from e

    async def fetch_once(self, url: str, session: ClientSession) -> str:
        async with session.get(url, headers={"Accept": ACCEPT_HTML}) as resp:
            if resp.status == 404:
                raise BackendError(
                    f"Page not found: {url}\n\n"
                    "The URL may be incorrect or the page may no longer exist."
                )
            if resp.status >= 400:
                raise BackendError(
                    f"Failed to fetch page: HTTP {resp.status}\n\n"
                    "There may be a temporary issue with the website."
                )
            content_type = resp.headers.get("Content-Type", "").lower()
            body = await resp.text(errors="replace")

        if "html" in content_type or "xml" in content_type or not content_type:
            return process_html(body)
        return process_plaintext(body)


def build_search_provider(config: ServerConfig) -> SearchProvider:
    """
    Select the search backend named by `config.backend`.

    Raises:
        ValueError: If the backend name is not supported
    """
    if config.backend == "duckduckgo":
        return DuckDuckGoSearchProvider(
            timeout=config.fetch_timeout,
            user_agent=config.user_agent,
            num_retries=config.num_retries,
        )
    if config.backend == "exa":
        return ExaSearchProvider(
            timeout=config.fetch_timeout,
            user_agent=config.user_agent,
            num_retries=config.num_retries,
            api_key=config.exa_api_key,
        )
    raise ValueError(f"Invalid tool backend: {config.backend}")


def build_content_fetcher(config: ServerConfig) -> HttpContentFetcher:
    return HttpContentFetcher(
        timeout=config.fetch_timeout,
        user_agent=config.user_agent,
        num_retries=config.num_retries,
    )
