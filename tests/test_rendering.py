from gpt_oss_browser.browser.browser_tool import (
    clamp_topn,
    find_in_page,
    render_page,
    split_lines,
)


def numbered_page(count: int) -> str:
    return "\n".join(f"row {i}" for i in range(count))


def test_render_page_empty_document():
    text = render_page("https://empty.test", "")
    assert text == "**https://empty.test**\n\n\n\n**URL:** https://empty.test\n**Stats:** 0 lines total"


def test_render_page_num_lines_zero():
    text = render_page("u", "a\nb\nc", loc=0, num_lines=0)
    assert "L0:" not in text
    assert "[Content truncated at line 0 of 2. Use the loc parameter to continue reading.]" in text
    assert "line -1" not in text


def test_find_caps_rendered_matches():
    content = "\n".join(f"hit {i}" for i in range(15))
    text = find_in_page("HIT", "u", content)
    assert "**Found 15 match(es) for 'HIT' in u:**" in text
    assert "**Match 10 at line 9:**" in text
    assert "**Match 11" not in text
    assert "... and 5 more matches (showing first 10)" in text


def test_find_context_window_at_edges():
    content = numbered_page(10)
    text = find_in_page("row 9", "u", content)
    assert "L7: row 7\nL8: row 8\nL9: >>> row 9 <<<\n" in text
    assert "L6:" not in text


def test_split_lines():
    assert split_lines("") == []
    assert split_lines("a\n") == ["a"]
    assert split_lines("a\r\nb") == ["a", "b"]
    assert split_lines("a\n\nb") == ["a", "", "b"]


def test_clamp_topn():
    assert clamp_topn(0) == 1
    assert clamp_topn(25) == 25
    assert clamp_topn(51) == 50
