import pytest
from conftest import SAMPLE_CONTENT, SAMPLE_URL, FakeSearchProvider

from gpt_oss_browser.browser.browser_tool import BrowserToolExecutor
from gpt_oss_browser.errors import BackendError, InvalidParamsError, ToolUsageError

pytestmark = pytest.mark.anyio


def numbered_page(count: int) -> str:
    return "\n".join(f"row {i}" for i in range(count))


async def test_open_renders_whole_page(executor):
    text = await executor.open("S1", SAMPLE_URL)
    assert text.startswith(f"**{SAMPLE_URL}**\n\n")
    assert "L0: line0\nL1: line1\nL2: FOO here\nL3: line3" in text
    assert "[Starting from line" not in text
    assert "truncated" not in text
    assert text.endswith(f"**URL:** {SAMPLE_URL}\n**Stats:** 4 lines total")


async def test_open_then_find_current_page(executor, store):
    await executor.open("S1", SAMPLE_URL)
    session = store.snapshot("S1")
    assert session.current_url == SAMPLE_URL
    assert session.pages == {SAMPLE_URL: SAMPLE_CONTENT}

    text = await executor.find("S1", "foo")
    assert f"**Found 1 match(es) for 'foo' in {SAMPLE_URL}:**" in text
    assert "**Match 1 at line 2:**" in text
    assert "L0: line0\nL1: line1\nL2: >>> FOO here <<<\nL3: line3" in text
    assert text.endswith("Use the line numbers to navigate to specific matches.")


async def test_reopen_uses_cache(executor, fetcher):
    await executor.open("S1", SAMPLE_URL)
    await executor.open("S1", SAMPLE_URL, loc=1)
    assert fetcher.call_count(SAMPLE_URL) == 1


async def test_reopen_returns_identical_content(executor, fetcher):
    first = await executor.open("S1", SAMPLE_URL, loc=1, num_lines=2)
    second = await executor.open("S1", SAMPLE_URL, loc=1, num_lines=2)
    assert second == first
    assert fetcher.call_count(SAMPLE_URL) == 1


async def test_open_and_find_do_not_copy_sessions(executor, store, monkeypatch):
    def no_snapshot(session_id):
        raise AssertionError("whole-session copy")

    monkeypatch.setattr(store, "snapshot", no_snapshot)
    await executor.open("S1", SAMPLE_URL)
    await executor.open("S1", SAMPLE_URL)
    assert "FOO here" in await executor.find("S1", "foo")
    assert "FOO here" in await executor.find("S1", "foo", url=SAMPLE_URL)


async def test_cache_is_per_session(executor, fetcher):
    await executor.open("S1", SAMPLE_URL)
    await executor.open("S2", SAMPLE_URL)
    assert fetcher.call_count(SAMPLE_URL) == 2


async def test_cache_hit_switches_current_page(executor, fetcher, store):
    fetcher.pages["https://b.test"] = "other page"
    await executor.open("S1", SAMPLE_URL)
    await executor.open("S1", "https://b.test")
    await executor.open("S1", SAMPLE_URL)
    assert store.snapshot("S1").current_url == SAMPLE_URL
    assert fetcher.call_count(SAMPLE_URL) == 1


async def test_open_with_loc_and_num_lines(executor, fetcher):
    fetcher.pages["https://long.test"] = numbered_page(100)
    text = await executor.open("S1", "https://long.test", loc=10, num_lines=5)
    assert "[Starting from line 10]" in text
    assert "L10: row 10" in text
    assert "L14: row 14" in text
    assert "L9: " not in text
    assert "L15: " not in text
    assert "[Content truncated at line 14 of 99. Use the loc parameter to continue reading.]" in text
    assert text.endswith("**Stats:** 100 lines total")


async def test_open_negative_loc_starts_at_zero(executor):
    text = await executor.open("S1", SAMPLE_URL, loc=-5)
    assert "L0: line0" in text
    assert "[Starting from line" not in text


async def test_open_loc_past_end_fails(executor, store):
    with pytest.raises(ToolUsageError, match="Cannot exceed page maximum of 3"):
        await executor.open("S1", SAMPLE_URL, loc=4)
    # the page is still cached and current even though rendering failed
    assert store.snapshot("S1").current_url == SAMPLE_URL


async def test_open_blank_url(executor, fetcher):
    with pytest.raises(ToolUsageError, match="URL is required"):
        await executor.open("S1", "   ")
    assert fetcher.calls == []


async def test_open_fetch_failure_leaves_session_unchanged(executor, store):
    with pytest.raises(BackendError, match="Error fetching URL `https://missing.test`"):
        await executor.open("S1", "https://missing.test")
    assert store.snapshot("S1") is None


async def test_find_without_open_page(executor, store):
    with pytest.raises(ToolUsageError, match="No page is currently open"):
        await executor.find("fresh", "anything")
    # find creates the session lazily
    assert "fresh" in store


async def test_find_unknown_url(executor):
    await executor.open("S1", SAMPLE_URL)
    with pytest.raises(ToolUsageError) as excinfo:
        await executor.find("S1", "foo", url="https://other.test")
    assert str(excinfo.value) == (
        "Page not found in session: https://other.test\nPlease open the page first."
    )


async def test_find_by_url_does_not_change_current_page(executor, fetcher, store):
    fetcher.pages["https://b.test"] = "beta\nFOO again"
    await executor.open("S1", SAMPLE_URL)
    await executor.open("S1", "https://b.test")
    text = await executor.find("S1", "foo", url=SAMPLE_URL)
    assert f"in {SAMPLE_URL}:**" in text
    assert store.snapshot("S1").current_url == "https://b.test"


async def test_find_blank_pattern(executor):
    with pytest.raises(ToolUsageError, match="Search pattern cannot be empty"):
        await executor.find("S1", "")


async def test_find_no_match(executor):
    await executor.open("S1", SAMPLE_URL)
    text = await executor.find("S1", "zebra")
    assert text.startswith("No matches found for pattern: 'zebra'")


async def test_search_formats_results(executor, search_provider):
    text = await executor.search("python", topn=2)
    assert text.startswith('**Search Results for "python":**')
    assert "**1. Result 0**\n   Snippet 0 about python\n   URL: https://example.test/0" in text
    assert "**2. Result 1**" in text
    assert "**3." not in text
    assert "**Next steps:**" in text
    assert search_provider.calls == [("python", 2)]


@pytest.mark.parametrize("requested, expected", [(0, 1), (-3, 1), (10, 10), (1000, 50)])
async def test_search_clamps_topn(executor, search_provider, requested, expected):
    await executor.search("q", topn=requested)
    assert search_provider.calls == [("q", expected)]


async def test_search_blank_query(executor, search_provider):
    with pytest.raises(ToolUsageError, match="Search query cannot be empty"):
        await executor.search("  ")
    assert search_provider.calls == []


async def test_search_no_results(store, fetcher):
    executor = BrowserToolExecutor(store, fetcher, FakeSearchProvider(num_results=0))
    text = await executor.search("nothing")
    assert text.startswith('No results found for query: "nothing"')


async def test_search_provider_failure_is_wrapped(store, fetcher):
    provider = FakeSearchProvider(error=RuntimeError("backend exploded"))
    executor = BrowserToolExecutor(store, fetcher, provider)
    with pytest.raises(BackendError) as excinfo:
        await executor.search("boom")
    assert str(excinfo.value) == "Error during search for `boom`: backend exploded"


async def test_search_does_not_touch_sessions(executor, store):
    await executor.execute("search", {"query": "q"}, "S1")
    assert len(store) == 0


async def test_execute_uses_defaults(executor, search_provider):
    await executor.execute("search", {"query": "q"}, "S1")
    assert search_provider.calls == [("q", 10)]


async def test_execute_truncates_float_numbers(executor, fetcher):
    fetcher.pages["https://long.test"] = numbered_page(20)
    text = await executor.execute(
        "open", {"url": "https://long.test", "loc": 2.9, "num_lines": 1.5}, "S1"
    )
    assert "L2: row 2" in text
    assert "L3: " not in text


async def test_execute_missing_argument(executor):
    with pytest.raises(InvalidParamsError) as excinfo:
        await executor.execute("open", {}, "S1")
    assert excinfo.value.data == "Missing required parameter: url"


@pytest.mark.parametrize(
    "name, arguments",
    [
        ("search", {"query": 5}),
        ("search", {"query": "q", "topn": "ten"}),
        ("open", {"url": "https://a.test", "loc": True}),
        ("find", {"pattern": "x", "url": 3}),
    ],
)
async def test_execute_rejects_ill_typed_arguments(executor, name, arguments):
    with pytest.raises(InvalidParamsError):
        await executor.execute(name, arguments, "S1")


async def test_execute_rejects_non_object_arguments(executor):
    with pytest.raises(InvalidParamsError):
        await executor.execute("search", ["q"], "S1")


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
async def test_execute_rejects_non_finite_numbers(executor, value):
    with pytest.raises(InvalidParamsError, match="finite"):
        await executor.execute("open", {"url": SAMPLE_URL, "loc": value}, "S1")
