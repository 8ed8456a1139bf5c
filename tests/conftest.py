from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from gpt_oss_browser.api_server import create_api_server
from gpt_oss_browser.browser.backend import SearchResult
from gpt_oss_browser.browser.browser_tool import BrowserToolExecutor
from gpt_oss_browser.config import ServerConfig
from gpt_oss_browser.dispatcher import RequestDispatcher
from gpt_oss_browser.errors import BackendError
from gpt_oss_browser.sessions import SessionStore

SAMPLE_URL = "https://a.test"
SAMPLE_CONTENT = "line0\nline1\nFOO here\nline3"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


class FakeFetcher:
    """Serves canned pages and counts calls per URL."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: list[str] = []

    def call_count(self, url: str) -> int:
        return self.calls.count(url)

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise BackendError(f"Page not found: {url}")
        return self.pages[url]


class FakeSearchProvider:
    """Returns `num_results` synthetic hits and records each (query, topn)."""

    def __init__(self, num_results: int = 100, error: Exception | None = None) -> None:
        self.num_results = num_results
        self.error = error
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, topn: int) -> list[SearchResult]:
        self.calls.append((query, topn))
        if self.error is not None:
            raise self.error
        return [
            SearchResult(
                title=f"Result {i}",
                url=f"https://example.test/{i}",
                snippet=f"Snippet {i} about {query}",
            )
            for i in range(min(topn, self.num_results))
        ]


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher({SAMPLE_URL: SAMPLE_CONTENT})


@pytest.fixture
def search_provider() -> FakeSearchProvider:
    return FakeSearchProvider()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig()


@pytest.fixture
def executor(store, fetcher, search_provider) -> BrowserToolExecutor:
    return BrowserToolExecutor(store=store, fetcher=fetcher, search_provider=search_provider)


@pytest.fixture
def dispatcher(store, executor, config) -> RequestDispatcher:
    return RequestDispatcher(store=store, executor=executor, config=config)


@pytest.fixture
def client(config, store, fetcher, search_provider):
    app = create_api_server(
        config, store=store, fetcher=fetcher, search_provider=search_provider
    )
    with TestClient(app) as test_client:
        yield test_client


def rpc_body(method: str, params: Any = None, request_id: Any = 1) -> bytes:
    payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload).encode()


def tool_call_body(name: str, arguments: dict[str, Any] | None = None, request_id: Any = 1) -> bytes:
    params: dict[str, Any] = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return rpc_body("tools/call", params, request_id)
