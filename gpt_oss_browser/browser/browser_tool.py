"""
Browser Tool Executor

This module implements the three browsing functions exposed to agents:

1. search(query, topn): Search the web and list ranked results
2. open(url, loc, num_lines): Fetch (or reuse) a page and display it with line numbers
3. find(pattern, url): Case-insensitive search for text within an opened page

State Management:
-----------------
All state lives in the injected SessionStore. For each session the executor
relies on:
- pages: Cache of plain-text pages by exact URL (avoids re-fetching)
- current_url / current_content: The page `find` uses when no URL is given

A session moves from "empty" to "open(url)" on every successful fetch or
cache hit in `open`. `find` without a URL requires an open page.

Citation Line Numbering:
------------------------
Every displayed line is prefixed with its absolute 0-based index, `L<n>: `,
so an agent can cite exact locations and page through long documents by
calling open() again with a larger `loc`.
"""

import math
from typing import Any, Awaitable, Callable, Protocol

import structlog

from ..errors import BackendError, InvalidParamsError, ToolUsageError
from ..sessions import SessionStore
from .backend import SearchResult, maybe_truncate

logger = structlog.stdlib.get_logger(component=__name__)

DEFAULT_TOPN = 10
MIN_TOPN = 1
MAX_TOPN = 50

# Lines shown before and after each find match
FIND_CONTEXT_BEFORE = 2
FIND_CONTEXT_AFTER = 2
MAX_RENDERED_MATCHES = 10


class SearchProviderLike(Protocol):
    async def search(self, query: str, topn: int) -> list[SearchResult]: ...


class ContentFetcherLike(Protocol):
    async def fetch(self, url: str) -> str: ...


def split_lines(content: str) -> list[str]:
    """
    Splits page text into citable lines.

    A trailing line break does not produce an extra empty line, and "\\r\\n"
    endings are normalized.
    """
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def join_lines(lines: list[str], offset: int = 0) -> str:
    return "\n".join(f"L{i + offset}: {line}" for i, line in enumerate(lines))


def clamp_topn(topn: int) -> int:
    return max(MIN_TOPN, min(MAX_TOPN, topn))


def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if value is None:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    if not isinstance(value, str):
        raise InvalidParamsError(f"Parameter `{key}` must be a string")
    return value


def _optional_str(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidParamsError(f"Parameter `{key}` must be a string")
    return value


def _optional_int(arguments: dict[str, Any], key: str, default: int) -> int:
    value = arguments.get(key)
    if value is None:
        return default
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParamsError(f"Parameter `{key}` must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidParamsError(f"Parameter `{key}` must be a finite number")
    return int(value)


def format_search_results(query: str, results: list[SearchResult]) -> str:
    if not results:
        return (
            f'No results found for query: "{query}"\n\n'
            "**Suggestions:**\n"
            "- Try different search terms\n"
            "- Check spelling\n"
            "- Use more general terms"
        )

    parts = [f'**Search Results for "{query}":**\n']
    for index, result in enumerate(results, start=1):
        entry = f"**{index}. {result.title}**\n"
        if result.snippet:
            entry += f"   {result.snippet}\n"
        entry += f"   URL: {result.url}\n"
        parts.append(entry)
    parts.append(
        "**Next steps:**\n"
        "- Open specific URLs to view full content\n"
        "- Use find to search within opened pages"
    )
    return "\n".join(parts)


def render_page(url: str, content: str, loc: int = 0, num_lines: int = -1) -> str:
    """
    Displays `content` from line `loc`, showing `num_lines` lines (-1 for all).

    Raises:
        ToolUsageError: If `loc` is past the last line of a non-empty page
    """
    lines = split_lines(content)
    total_lines = len(lines)

    if total_lines > 0 and loc >= total_lines:
        raise ToolUsageError(
            f"Invalid location parameter: `{loc}`. "
            f"Cannot exceed page maximum of {total_lines - 1}."
        )

    if num_lines < 0:
        end_loc = total_lines
    else:
        end_loc = min(loc + num_lines, total_lines)

    result = f"**{url}**\n\n"
    if loc > 0:
        result += f"[Starting from line {loc}]\n\n"
    if end_loc > loc:
        result += join_lines(lines[loc:end_loc], offset=loc) + "\n"

    if end_loc < total_lines:
        result += (
            f"\n[Content truncated at line {max(end_loc - 1, 0)} of {total_lines - 1}. "
            "Use the loc parameter to continue reading.]"
        )

    result += f"\n\n**URL:** {url}"
    result += f"\n**Stats:** {total_lines} lines total"
    return result


def find_in_page(pattern: str, url: str, content: str) -> str:
    """
    Lists every line of `content` containing `pattern` (case-insensitive),
    each with two lines of context on either side and the match marked.
    """
    lines = split_lines(content)
    pattern_lower = pattern.lower()

    matches: list[tuple[int, list[str]]] = []
    for line_idx, line in enumerate(lines):
        if pattern_lower not in line.lower():
            continue
        start = max(0, line_idx - FIND_CONTEXT_BEFORE)
        end = min(len(lines), line_idx + FIND_CONTEXT_AFTER + 1)
        context = [
            f"L{i}: >>> {lines[i]} <<<" if i == line_idx else f"L{i}: {lines[i]}"
            for i in range(start, end)
        ]
        matches.append((line_idx, context))

    if not matches:
        return (
            f"No matches found for pattern: '{pattern}'\n\n"
            "**Suggestions:**\n"
            "- Check spelling\n"
            "- Try a different search term\n"
            "- Use partial words or phrases"
        )

    result = f"**Found {len(matches)} match(es) for '{pattern}' in {url}:**\n\n"
    for i, (line_idx, context) in enumerate(matches[:MAX_RENDERED_MATCHES]):
        result += f"**Match {i + 1} at line {line_idx}:**\n"
        result += "\n".join(context) + "\n\n"

    if len(matches) > MAX_RENDERED_MATCHES:
        hidden = len(matches) - MAX_RENDERED_MATCHES
        result += f"... and {hidden} more matches (showing first {MAX_RENDERED_MATCHES})\n\n"

    result += "Use the line numbers to navigate to specific matches."
    return result


class BrowserToolExecutor:
    """
    Runs `search`, `open` and `find` for a session.

    Args:
        store: Session store holding per-session browsing state
        fetcher: Content fetcher used by `open` on cache misses
        search_provider: Search backend used by `search`
    """

    def __init__(
        self,
        store: SessionStore,
        fetcher: ContentFetcherLike,
        search_provider: SearchProviderLike,
    ):
        self.store = store
        self.fetcher = fetcher
        self.search_provider = search_provider
        self._functions: dict[str, Callable[[dict[str, Any], str], Awaitable[str]]] = {
            "search": self._call_search,
            "open": self._call_open,
            "find": self._call_find,
        }

    async def execute(self, name: str, arguments: Any, session_id: str) -> str:
        """
        Runs the tool `name` with JSON `arguments` on behalf of `session_id`.

        Raises:
            InvalidParamsError: Missing/ill-typed arguments
            ToolUsageError: The tool was used incorrectly
            BackendError: A fetch or search failed
            KeyError: `name` is not one of the browser tools
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Tool arguments must be an object")
        function = self._functions[name]
        return await function(arguments, session_id)

    async def _call_search(self, arguments: dict[str, Any], session_id: str) -> str:
        return await self.search(
            query=_require_str(arguments, "query"),
            topn=_optional_int(arguments, "topn", DEFAULT_TOPN),
        )

    async def _call_open(self, arguments: dict[str, Any], session_id: str) -> str:
        return await self.open(
            session_id,
            url=_require_str(arguments, "url"),
            loc=_optional_int(arguments, "loc", 0),
            num_lines=_optional_int(arguments, "num_lines", -1),
        )

    async def _call_find(self, arguments: dict[str, Any], session_id: str) -> str:
        return await self.find(
            session_id,
            pattern=_require_str(arguments, "pattern"),
            url=_optional_str(arguments, "url"),
        )

    async def search(self, query: str, topn: int = DEFAULT_TOPN) -> str:
        """
        Search the web and list the results.

        Args:
            query: The search query string (must not be blank)
            topn: Number of results, clamped to [1, 50]

        Returns:
            Numbered list of title, snippet and URL, or a "no results" message

        Raises:
            ToolUsageError: If the query is blank
            BackendError: If the search provider fails
        """
        if not query.strip():
            raise ToolUsageError(
                "Error: Search query cannot be empty.\n\nPlease provide a search term."
            )
        topn = clamp_topn(topn)
        logger.info("Searching web", query=query, topn=topn)

        try:
            results = await self.search_provider.search(query, topn)
        except Exception as e:
            msg = maybe_truncate(str(e))
            raise BackendError(f"Error during search for `{query}`: {msg}") from e

        return format_search_results(query, results[:topn])

    async def open(
        self, session_id: str, url: str, loc: int = 0, num_lines: int = -1
    ) -> str:
        """
        Open a page and display it with line numbers.

        Pages already in the session's cache are reused verbatim; otherwise the
        fetcher is called. Either way the page becomes the session's current
        page before it is displayed.

        Args:
            session_id: Session owning the browsing state
            url: URL to open (cache key, used exactly as given)
            loc: First line to show (negative values start at 0)
            num_lines: Number of lines to show, -1 for the rest of the page

        Raises:
            ToolUsageError: If the URL is blank or `loc` is past the end
            BackendError: If fetching the URL fails
        """
        if not url.strip():
            raise ToolUsageError("Error: URL is required.")
        loc = max(loc, 0)
        logger.info("Opening URL", url=url, loc=loc, num_lines=num_lines, session_id=session_id)

        content = self.store.get_page(session_id, url)
        if content is None:
            content = await self._fetch(url)
        else:
            logger.debug("Using cached page", url=url, session_id=session_id)

        self.store.record_page(session_id, url, content)
        return render_page(url, content, loc=loc, num_lines=num_lines)

    async def _fetch(self, url: str) -> str:
        try:
            return await self.fetcher.fetch(url)
        except Exception as e:
            logger.warning("Error fetching URL", url=url, exc_info=e)
            msg = maybe_truncate(str(e))
            raise BackendError(f"Error fetching URL `{maybe_truncate(url)}`: {msg}") from e

    async def find(self, session_id: str, pattern: str, url: str | None = None) -> str:
        """
        Search for text within an opened page.

        Args:
            session_id: Session owning the browsing state
            pattern: Text to look for (case-insensitive substring)
            url: A previously opened URL; defaults to the current page

        Raises:
            ToolUsageError: If the pattern is blank, `url` was never opened, or
                no page is open
        """
        if not pattern.strip():
            raise ToolUsageError("Error: Search pattern cannot be empty.")

        self.store.get_or_create(session_id)
        if url is not None:
            content = self.store.get_page(session_id, url)
            if content is None:
                raise ToolUsageError(
                    f"Page not found in session: {url}\nPlease open the page first."
                )
        else:
            current = self.store.current_page(session_id)
            if current is None:
                raise ToolUsageError(
                    "No page is currently open.\n"
                    "Please open a page first using the 'open' tool."
                )
            url, content = current

        logger.info("Finding pattern", pattern=pattern, url=url, session_id=session_id)
        return find_in_page(pattern, url, content)
