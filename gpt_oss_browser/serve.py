"""
Browser tool server entry point.

This script starts the JSON-RPC browser tool server. It handles:
- Command-line argument parsing
- Logging setup (structlog on top of stdlib logging)
- FastAPI application creation
- Server startup with uvicorn

Usage:
    # Start with the DuckDuckGo search backend on the default port (8001)
    python -m gpt_oss_browser.serve

    # Use the Exa search backend
    EXA_API_KEY=... python -m gpt_oss_browser.serve --backend exa --port 8080

Available backends:
- duckduckgo: HTML scraping of DuckDuckGo results (no API key)
- exa: Exa Search API (requires EXA_API_KEY)
"""

import argparse
import logging

import chz
import structlog
import uvicorn

from .api_server import create_api_server
from .config import VALID_BACKENDS, ServerConfig


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Route structlog through stdlib logging at `level`.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        json_logs: Render JSON lines instead of the console format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(message)s")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GPT-OSS browser tool server")
    parser.add_argument(
        "--host",
        metavar="HOST",
        type=str,
        default=None,
        help="Interface to bind (default: BROWSER_MCP_HOST or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        metavar="PORT",
        type=int,
        default=None,
        help="Port to run the server on (default: BROWSER_MCP_PORT or 8001)",
    )
    parser.add_argument(
        "--backend",
        metavar="BACKEND",
        type=str,
        choices=VALID_BACKENDS,
        default=None,
        help="Search backend to use (duckduckgo, exa)",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        type=str,
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON log lines",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    overrides = {
        key: value
        for key, value in (
            ("host", args.host),
            ("port", args.port),
            ("backend", args.backend),
            ("log_level", args.log_level.upper() if args.log_level else None),
        )
        if value is not None
    }
    if args.log_json:
        overrides["log_json"] = True
    return chz.replace(config, **overrides) if overrides else config


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    config = build_config(args)
    configure_logging(config.log_level, config.log_json)

    app = create_api_server(config)

    # uvicorn handles SIGINT/SIGTERM; the app lifespan drops all sessions on exit
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
