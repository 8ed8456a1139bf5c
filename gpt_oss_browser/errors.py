"""
Error taxonomy for the browser tool server.

Every failure inside the server is expressed as one of a small, closed set of
error kinds. The kind decides how the failure is rendered at the boundary:

- Protocol kinds (PARSE .. INTERNAL) become the `error` object of a normally
  formed JSON-RPC response, delivered with HTTP 200.
- TRANSPORT_VALIDATION is the single kind surfaced as an HTTP status instead
  (bad session id on the deletion endpoint, which is not a JSON-RPC call).

Tool-level problems are raised as ToolUsageError (the caller used a tool
incorrectly) or BackendError (a fetch/search collaborator failed). The
dispatcher folds both into INTERNAL with the message in `data`.
"""

import enum
from typing import Any


class ErrorKind(enum.Enum):
    PARSE = (-32700, "Parse error")
    INVALID_REQUEST = (-32600, "Invalid Request")
    METHOD_NOT_FOUND = (-32601, "Method not found")
    INVALID_PARAMS = (-32602, "Invalid params")
    INTERNAL = (-32603, "Internal error")
    TRANSPORT_VALIDATION = (400, "Bad Request")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def title(self) -> str:
        return self.value[1]


class McpError(Exception):
    """
    A failure with a known error kind.

    Attributes:
        kind: The ErrorKind deciding the wire code and title
        data: Optional human-readable diagnostics (JSON-RPC `data` field)
    """

    def __init__(self, kind: ErrorKind, data: Any = None):
        super().__init__(data if data is not None else kind.title)
        self.kind = kind
        self.data = data

    @property
    def code(self) -> int:
        return self.kind.code

    @property
    def message(self) -> str:
        return self.kind.title


class InvalidParamsError(McpError):
    """A required tool argument is missing or has the wrong JSON type."""

    def __init__(self, data: str):
        super().__init__(ErrorKind.INVALID_PARAMS, data)


class ToolUsageError(Exception):
    """
    Raised when a tool is used incorrectly.

    Examples:
    - Empty search query, URL or pattern
    - `loc` beyond the end of the page
    - `find` without an open page, or on a URL that was never opened
    """
    pass


class BackendError(Exception):
    """
    Raised when a fetch or search collaborator fails.

    This includes network errors, timeouts, non-success HTTP statuses and
    missing API keys.
    """
    pass
