"""
Server configuration.

ServerConfig is an immutable, type-checked chz class. Values come from three
places, later ones winning:
1. Field defaults below
2. Environment variables (ServerConfig.from_env)
3. Command-line flags (serve.py, applied with chz.replace)

Environment variables:
    BROWSER_MCP_NAME, BROWSER_MCP_VERSION, BROWSER_MCP_HOST, BROWSER_MCP_PORT
    BROWSER_MCP_FETCH_TIMEOUT, BROWSER_MCP_USER_AGENT, BROWSER_MCP_NUM_RETRIES
    BROWSER_MCP_LOG_LEVEL, BROWSER_MCP_LOG_JSON
    BROWSER_BACKEND    # "duckduckgo" (default) or "exa"
    EXA_API_KEY        # only for the exa backend
"""

import os

import chz

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; GPT-OSS-Browser/1.0.0)"
VALID_BACKENDS = ("duckduckgo", "exa")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@chz.chz(typecheck=True)
class ServerConfig:
    name: str = chz.field(default="gpt-oss-browser", doc="Server name reported to clients")
    version: str = chz.field(default="1.0.0", doc="Server version reported to clients")
    protocol_version: str = chz.field(default="2024-11-05", doc="MCP protocol version")
    host: str = chz.field(default="0.0.0.0", doc="Interface to bind")
    port: int = chz.field(default=8001, doc="Port to listen on")
    backend: str = chz.field(default="duckduckgo", doc="Search backend: duckduckgo or exa")
    fetch_timeout: float = chz.field(
        default=30.0, doc="Total timeout in seconds for each fetch/search request"
    )
    user_agent: str = chz.field(default=DEFAULT_USER_AGENT, doc="User-Agent for outbound requests")
    num_retries: int = chz.field(
        default=0, doc="Retries for fetch/search collaborators (0 disables retrying)"
    )
    exa_api_key: str | None = chz.field(
        default=None, doc="Exa API key. Falls back to EXA_API_KEY when unset."
    )
    log_level: str = chz.field(default="INFO", doc="Log level name")
    log_json: bool = chz.field(default=False, doc="Render logs as JSON lines")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        env = os.environ
        backend = env.get("BROWSER_BACKEND", "duckduckgo").strip().lower()
        if backend not in VALID_BACKENDS:
            raise ValueError(f"Invalid tool backend: {backend}")
        return cls(
            name=env.get("BROWSER_MCP_NAME", "gpt-oss-browser"),
            version=env.get("BROWSER_MCP_VERSION", "1.0.0"),
            host=env.get("BROWSER_MCP_HOST", "0.0.0.0"),
            port=int(env.get("BROWSER_MCP_PORT", "8001")),
            backend=backend,
            fetch_timeout=float(env.get("BROWSER_MCP_FETCH_TIMEOUT", "30")),
            user_agent=env.get("BROWSER_MCP_USER_AGENT", DEFAULT_USER_AGENT),
            num_retries=int(env.get("BROWSER_MCP_NUM_RETRIES", "0")),
            exa_api_key=env.get("EXA_API_KEY") or None,
            log_level=env.get("BROWSER_MCP_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool(env.get("BROWSER_MCP_LOG_JSON", "false")),
        )
