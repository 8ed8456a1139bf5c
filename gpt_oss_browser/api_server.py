"""
FastAPI application for the browser tool server.

Endpoints:
- POST /mcp, /mcp/, / : JSON-RPC endpoint (always HTTP 200)
- GET  /              : Server descriptor
- GET  /health        : Liveness check
- DELETE /mcp/sessions/{session_id}, /sessions/{session_id} : Drop a session
- anything else       : Diagnostic payload naming the unmatched method/path

The session id of a JSON-RPC call comes from the `Mcp-Session-Id` header
(matched case-insensitively) and defaults to "default".
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .browser.backend import build_content_fetcher, build_search_provider
from .browser.browser_tool import (
    BrowserToolExecutor,
    ContentFetcherLike,
    SearchProviderLike,
)
from .config import ServerConfig
from .dispatcher import RequestDispatcher
from .errors import ErrorKind
from .registry import TOOL_NAMES
from .sessions import SessionStore

logger = structlog.stdlib.get_logger(component=__name__)

SESSION_HEADER = "Mcp-Session-Id"
DEFAULT_SESSION_ID = "default"
MAX_SESSION_ID_LENGTH = 100


def create_api_server(
    config: ServerConfig | None = None,
    store: SessionStore | None = None,
    fetcher: ContentFetcherLike | None = None,
    search_provider: SearchProviderLike | None = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Args:
        config: Server configuration (defaults to ServerConfig.from_env())
        store: Session store; a fresh one is created when omitted
        fetcher: Content fetcher; defaults to the HTTP fetcher from `config`
        search_provider: Search backend; defaults to the one named by `config.backend`

    Returns:
        The FastAPI app. The session store is cleared at shutdown.
    """
    cfg = config or ServerConfig.from_env()
    session_store = store if store is not None else SessionStore()
    executor = BrowserToolExecutor(
        store=session_store,
        fetcher=fetcher if fetcher is not None else build_content_fetcher(cfg),
        search_provider=(
            search_provider if search_provider is not None else build_search_provider(cfg)
        ),
    )
    dispatcher = RequestDispatcher(store=session_store, executor=executor, config=cfg)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting browser tool server",
            name=cfg.name,
            version=cfg.version,
            backend=cfg.backend,
            tools=list(TOOL_NAMES),
        )
        yield
        logger.info("Shutting down, dropping sessions", sessions=len(session_store))
        session_store.clear()

    app = FastAPI(title=cfg.name, version=cfg.version, lifespan=lifespan)
    app.state.config = cfg
    app.state.session_store = session_store
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", SESSION_HEADER],
        expose_headers=[SESSION_HEADER],
    )

    async def handle_mcp_request(request: Request) -> JSONResponse:
        session_id = request.headers.get(SESSION_HEADER, DEFAULT_SESSION_ID)
        body = await request.body()
        response = await dispatcher.handle(body, session_id)
        return JSONResponse(response.to_wire(), headers={SESSION_HEADER: session_id})

    for path in ("/mcp", "/mcp/", "/"):
        app.add_api_route(path, handle_mcp_request, methods=["POST"])

    @app.get("/")
    async def handle_root() -> dict:
        return {
            "message": "GPT-OSS Browser MCP Server",
            "name": cfg.name,
            "version": cfg.version,
            "protocol": f"MCP {cfg.protocol_version}",
            "mcp_endpoint": "/mcp",
            "health_endpoint": "/health",
            "transport": "stateless streamable HTTP",
            "tools": list(TOOL_NAMES),
            "tools_count": len(TOOL_NAMES),
            "status": "ready",
        }

    @app.get("/health")
    async def handle_health() -> dict:
        return {
            "status": "healthy",
            "server": cfg.name,
            "tools_loaded": len(TOOL_NAMES),
            "version": cfg.version,
            "sessions": len(session_store),
        }

    async def handle_session_delete(session_id: str) -> dict:
        logger.info("Session delete requested", session_id=session_id)
        if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
            logger.warning("Invalid session ID format", session_id=session_id)
            raise HTTPException(
                status_code=ErrorKind.TRANSPORT_VALIDATION.code,
                detail=f"Session id must be 1-{MAX_SESSION_ID_LENGTH} characters",
            )
        session_store.remove(session_id)
        return {
            "status": "terminated",
            "sessionId": session_id,
            "timestamp": int(time.time()),
            "message": "Session terminated successfully",
        }

    async def handle_empty_session_delete() -> dict:
        return await handle_session_delete("")

    for path in ("/mcp/sessions/{session_id}", "/sessions/{session_id}"):
        app.add_api_route(path, handle_session_delete, methods=["DELETE"])
    for path in ("/mcp/sessions/", "/sessions/"):
        app.add_api_route(path, handle_empty_session_delete, methods=["DELETE"])

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
        include_in_schema=False,
    )
    async def handle_fallback(request: Request, path: str) -> dict:
        logger.warning(
            "Fallback handler called", method=request.method, path=request.url.path
        )
        return {
            "error": "Route not found",
            "method": request.method,
            "path": request.url.path,
            "message": "This endpoint is not available. Use POST /mcp for MCP requests.",
        }

    return app
