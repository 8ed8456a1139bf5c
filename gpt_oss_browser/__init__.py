"""
GPT-OSS Browser: JSON-RPC Tool Server for Web Browsing

This package exposes the gpt-oss browsing tools (search, open, find) to agents
over a JSON-RPC 2.0 envelope served by a small FastAPI application.

Key Features:
- Session-scoped browsing state (current page + per-URL page cache)
- Line-numbered page display so agents can cite exact locations
- Case-insensitive in-page search with context windows
- Pluggable search providers (DuckDuckGo HTML, Exa) and HTTP page fetching

Layout:
- types.py: Pydantic models for the JSON-RPC envelope and tool definitions
- errors.py: Closed error taxonomy rendered to the wire at the boundary
- sessions.py: Thread-safe session store
- registry.py: Static tool catalogue
- dispatcher.py: JSON-RPC parsing, validation and routing
- browser/: Tool executor plus the fetch/search collaborators
- api_server.py / serve.py: HTTP application and process entry point
"""

__version__ = "1.0.0"
