"""
Type definitions for the JSON-RPC envelope and the tool catalogue.

The request/response envelope (JsonRpcRequest, JsonRpcResponse, JsonRpcError)
is modelled here with Pydantic. Tool definitions and call results reuse the
MCP SDK models (mcp.types), so they serialize as MCP clients expect.
"""

from typing import Any, Literal, Optional

from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel

JSONRPC_VERSION = "2.0"


class JsonRpcRequest(BaseModel):
    """
    An inbound JSON-RPC call.

    `id` is opaque and echoed verbatim. It may be absent (notification); this
    server still answers notifications with a response object.
    """
    jsonrpc: str  # Must be exactly "2.0"; checked by the dispatcher, not here
    method: str
    id: Optional[Any] = None
    params: Optional[Any] = None


class JsonRpcError(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None  # Human-readable diagnostic text


class JsonRpcResponse(BaseModel):
    """
    An outbound JSON-RPC response. Exactly one of `result`/`error` is set.
    """
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    def to_wire(self) -> dict[str, Any]:
        """
        Serializes the envelope, always including `id` (possibly null) and
        only the one of `result`/`error` that is set.
        """
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result
        return payload


def tool_call_result(text: str) -> dict[str, Any]:
    """Wraps tool output as the `result` payload of a successful `tools/call`."""
    result = CallToolResult(content=[TextContent(type="text", text=text)])
    return result.model_dump(by_alias=True, exclude_none=True)
