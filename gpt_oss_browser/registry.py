"""
Static catalogue of the browser tools.

The three mcp.types.Tool definitions are built once at import time and
validated by `_validate_registry`, so a malformed schema fails at startup
rather than on the first `tools/list`.
"""

from mcp.types import Tool

SEARCH_TOOL = Tool(
    name="search",
    description="Search for information on the web and return formatted results with citations",
    inputSchema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "topn": {
                "type": "number",
                "description": "Number of results to return (default: 10)",
                "default": 10,
            },
        },
        "required": ["query"],
    },
)

OPEN_TOOL = Tool(
    name="open",
    description="Open a web page by URL and return its content with line numbers for citation",
    inputSchema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL to open"},
            "loc": {
                "type": "number",
                "description": "Starting line number (default: 0)",
                "default": 0,
            },
            "num_lines": {
                "type": "number",
                "description": "Number of lines to show (-1 for all)",
                "default": -1,
            },
        },
        "required": ["url"],
    },
)

FIND_TOOL = Tool(
    name="find",
    description="Find specific text patterns in the currently opened page",
    inputSchema={
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Text pattern to search for"},
            "url": {
                "type": "string",
                "description": "URL of the page to search in (optional if using after open)",
            },
        },
        "required": ["pattern"],
    },
)

TOOLS: tuple[Tool, ...] = (SEARCH_TOOL, OPEN_TOOL, FIND_TOOL)


def _validate_registry(tools: tuple[Tool, ...]) -> dict[str, Tool]:
    by_name: dict[str, Tool] = {}
    for tool in tools:
        if tool.name in by_name:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        schema = tool.inputSchema
        if schema.get("type") != "object":
            raise ValueError(f"Tool {tool.name}: inputSchema must be an object schema")
        properties = schema.get("properties", {})
        for required in schema.get("required", []):
            if required not in properties:
                raise ValueError(
                    f"Tool {tool.name}: required property `{required}` is not declared"
                )
        by_name[tool.name] = tool
    return by_name


_TOOLS_BY_NAME = _validate_registry(TOOLS)

TOOL_NAMES: tuple[str, ...] = tuple(_TOOLS_BY_NAME)


def list_tools() -> list[Tool]:
    # copies, so callers cannot alter the catalogue
    return [tool.model_copy(deep=True) for tool in TOOLS]


def get_tool(name: str) -> Tool | None:
    return _TOOLS_BY_NAME.get(name)
