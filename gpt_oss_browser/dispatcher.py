"""
JSON-RPC request dispatcher.

The dispatcher turns one raw request body plus a session id into one
JsonRpcResponse. Every outcome, protocol errors included, is returned inside a
normally formed envelope; the HTTP layer always answers 200.

Validation order:
1. Empty body -> Invalid Request (-32600)
2. Body is not JSON -> Parse error (-32700)
3. Not an object, no string `method`, or `jsonrpc` != "2.0" -> Invalid Request
4. Unknown method -> Method not found (-32601)

The response `id` echoes the request `id` whenever the body parsed; it is
null when nothing could be parsed.

Supported methods:
- initialize: Capabilities and usage instructions
- tools/list: The static tool catalogue
- tools/call: Runs search/open/find through the BrowserToolExecutor
- ping: Liveness payload
- session/terminate: Drops a session's browsing state
- notifications/cancelled: Acknowledged, not wired to in-flight work
"""

import json
import time
from typing import Any, Awaitable, Callable

import pydantic
import structlog

from .browser.browser_tool import BrowserToolExecutor
from .config import ServerConfig
from .errors import BackendError, ErrorKind, McpError, ToolUsageError
from .registry import TOOL_NAMES, get_tool, list_tools
from .sessions import SessionStore
from .types import (
    JSONRPC_VERSION,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    tool_call_result,
)

logger = structlog.stdlib.get_logger(component=__name__)

INSTRUCTIONS = """\
**GPT-OSS Browser MCP Server**

Browser tools from the GPT-OSS project for web searching and content analysis.

**Available Tools:**
- **search**: Search for information on the web with citations
- **open**: Open web pages and view content with line numbers
- **find**: Find text patterns in opened pages

**Usage Tips:**
- Use search to find relevant web content
- Open URLs to view full page content; pages are cached per session
- Use find to locate specific information within opened pages
- Cite content with the line numbers shown as `L<n>:`"""

Handler = Callable[[JsonRpcRequest, str], Awaitable[Any]]


def success_response(request_id: Any, result: Any) -> JsonRpcResponse:
    return JsonRpcResponse(id=request_id, result=result)


def error_response(request_id: Any, error: McpError) -> JsonRpcResponse:
    return JsonRpcResponse(
        id=request_id,
        error=JsonRpcError(code=error.code, message=error.message, data=error.data),
    )


def _timestamp() -> int:
    return int(time.time())


class RequestDispatcher:
    """
    Parses, validates and routes JSON-RPC calls.

    Args:
        store: Session store shared with the executor
        executor: Tool executor for `tools/call`
        config: Server metadata (name, version, protocol version)
    """

    def __init__(
        self,
        store: SessionStore,
        executor: BrowserToolExecutor,
        config: ServerConfig,
    ):
        self.store = store
        self.executor = executor
        self.config = config
        self.started_at = time.monotonic()
        self._handlers: dict[str, Handler] = {
            "initialize": self.handle_initialize,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
            "ping": self.handle_ping,
            "session/terminate": self.handle_session_terminate,
            "notifications/cancelled": self.handle_notification_cancelled,
        }

    async def handle(self, payload: bytes, session_id: str) -> JsonRpcResponse:
        if not payload:
            logger.warning("Empty request body", session_id=session_id)
            return error_response(None, McpError(ErrorKind.INVALID_REQUEST, "Empty request body"))

        try:
            raw = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("JSON decode error", session_id=session_id, error=str(e))
            return error_response(None, McpError(ErrorKind.PARSE, f"Invalid JSON: {e}"))

        request_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            request = self.validate(raw)
        except McpError as e:
            logger.warning("Invalid JSON-RPC request", session_id=session_id, reason=e.data)
            return error_response(request_id, e)

        logger.info(
            "MCP request", method=request.method, id=request.id, session_id=session_id
        )
        handler = self._handlers.get(request.method)
        if handler is None:
            logger.warning("Unknown method", method=request.method)
            return error_response(
                request.id,
                McpError(ErrorKind.METHOD_NOT_FOUND, f"Unknown method: {request.method}"),
            )

        try:
            result = await handler(request, session_id)
        except McpError as e:
            return error_response(request.id, e)
        return success_response(request.id, result)

    @staticmethod
    def validate(raw: Any) -> JsonRpcRequest:
        if not isinstance(raw, dict):
            raise McpError(ErrorKind.INVALID_REQUEST, "Request must be a JSON object")
        try:
            request = JsonRpcRequest.model_validate(raw)
        except pydantic.ValidationError as e:
            fields = ", ".join(".".join(map(str, err["loc"])) for err in e.errors())
            raise McpError(
                ErrorKind.INVALID_REQUEST, f"Malformed JSON-RPC request: {fields}"
            ) from e
        if request.jsonrpc != JSONRPC_VERSION:
            raise McpError(ErrorKind.INVALID_REQUEST, "JSON-RPC version must be 2.0")
        return request

    async def handle_initialize(self, request: JsonRpcRequest, session_id: str) -> dict[str, Any]:
        return {
            "protocolVersion": self.config.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.config.name, "version": self.config.version},
            "instructions": INSTRUCTIONS,
        }

    async def handle_tools_list(self, request: JsonRpcRequest, session_id: str) -> dict[str, Any]:
        tools = [tool.model_dump(by_alias=True, exclude_none=True) for tool in list_tools()]
        logger.debug("Listing tools", count=len(tools))
        return {"tools": tools}

    async def handle_tools_call(self, request: JsonRpcRequest, session_id: str) -> dict[str, Any]:
        params = request.params
        if params is None:
            raise McpError(ErrorKind.INVALID_PARAMS, "Missing parameters")
        if not isinstance(params, dict):
            raise McpError(ErrorKind.INVALID_PARAMS, "Parameters must be an object")
        tool_name = params.get("name")
        if not isinstance(tool_name, str):
            raise McpError(ErrorKind.INVALID_PARAMS, "Missing tool name")
        if get_tool(tool_name) is None:
            logger.warning("Unknown tool", tool=tool_name)
            raise McpError(ErrorKind.METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")

        arguments = params.get("arguments")
        logger.info("Calling tool", tool=tool_name, session_id=session_id)
        try:
            text = await self.executor.execute(tool_name, arguments, session_id)
        except McpError:
            raise
        except (ToolUsageError, BackendError) as e:
            logger.error("Tool execution failed", tool=tool_name, error=str(e))
            raise McpError(ErrorKind.INTERNAL, str(e)) from e
        except Exception as e:
            logger.exception("Unexpected error in tool", tool=tool_name)
            raise McpError(ErrorKind.INTERNAL, f"Tool {tool_name} failed: {e}") from e

        return tool_call_result(text)

    async def handle_ping(self, request: JsonRpcRequest, session_id: str) -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": _timestamp(),
            "server": self.config.name,
            "version": self.config.version,
            "uptime": int(time.monotonic() - self.started_at),
            "tools_available": len(TOOL_NAMES),
            "protocol": "MCP",
            "message": "pong",
        }

    async def handle_session_terminate(
        self, request: JsonRpcRequest, session_id: str
    ) -> dict[str, Any]:
        params = request.params if isinstance(request.params, dict) else {}
        target = params.get("sessionId")
        if not isinstance(target, str):
            target = "unknown"
        self.store.remove(target)
        logger.info("Session terminated", session_id=target)
        return {
            "status": "terminated",
            "sessionId": target,
            "timestamp": _timestamp(),
            "message": "Session terminated successfully",
        }

    async def handle_notification_cancelled(
        self, request: JsonRpcRequest, session_id: str
    ) -> dict[str, Any]:
        logger.info("Cancellation notification acknowledged", params=request.params)
        return {"status": "acknowledged", "timestamp": _timestamp()}
