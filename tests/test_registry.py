import pytest
from mcp.types import Tool

from gpt_oss_browser.registry import (
    TOOL_NAMES,
    TOOLS,
    _validate_registry,
    get_tool,
    list_tools,
)


def test_tool_names():
    assert TOOL_NAMES == ("search", "open", "find")


def test_get_tool():
    assert get_tool("open").inputSchema["properties"]["loc"]["default"] == 0
    assert get_tool("teleport") is None


def test_list_tools_returns_a_copy():
    tools = list_tools()
    tools.clear()
    assert len(list_tools()) == 3


def test_required_arguments():
    required = {tool.name: tool.inputSchema["required"] for tool in TOOLS}
    assert required == {"search": ["query"], "open": ["url"], "find": ["pattern"]}


def test_listed_tools_cannot_alter_the_catalogue():
    listed = list_tools()
    listed[0].inputSchema["properties"]["query"]["type"] = "number"
    listed[0].name = "renamed"
    assert get_tool("search").inputSchema["properties"]["query"]["type"] == "string"
    assert list_tools()[0].name == "search"


def test_duplicate_names_rejected():
    with pytest.raises(ValueError, match="Duplicate tool name"):
        _validate_registry(TOOLS + (TOOLS[0],))


def test_undeclared_required_property_rejected():
    broken = Tool(
        name="broken",
        description="",
        inputSchema={"type": "object", "properties": {}, "required": ["x"]},
    )
    with pytest.raises(ValueError, match="required property `x`"):
        _validate_registry((broken,))
