#!/usr/bin/env python3
"""
Browser Nodes MCP Server

Exposes the browser node tools via Model Context Protocol.

Usage:
    # Run with STDIO transport (for agent integration)
    python -m browser_nodes.server --stdio

    # Run with HTTP transport
    python -m browser_nodes.server --port 4010

Environment Variables:
    BROWSER_NODES_PORT - Server port for HTTP mode (default: 4010)
    BROWSER_NODES_LOG_LEVEL - Log level (default: INFO)
    BROWSER_NODES_JSON_LOGS - Emit JSON logs (default: false)
"""

from __future__ import annotations

import argparse
import sys

# Suppress FastMCP banner in STDIO mode
if "--stdio" in sys.argv:
    import rich.console

    _original_console_init = rich.console.Console.__init__

    def _patched_console_init(self, *args, **kwargs):
        kwargs["file"] = sys.stderr
        _original_console_init(self, *args, **kwargs)

    rich.console.Console.__init__ = _patched_console_init

from fastmcp import FastMCP  # noqa: E402

from browser_nodes import register_node_tools  # noqa: E402
from browser_nodes.config import get_settings  # noqa: E402
from browser_nodes.logging_config import configure_logging, get_logger  # noqa: E402

logger = get_logger(__name__)

mcp = FastMCP("browser-nodes")


def main() -> None:
    """Entry point for the browser nodes MCP server."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Browser Nodes MCP Server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"HTTP server port (default: {settings.port})",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"HTTP server host (default: {settings.host})",
    )
    parser.add_argument(
        "--stdio",
        action="store_true",
        help="Use STDIO transport instead of HTTP",
    )
    args = parser.parse_args()

    # stdout carries the protocol in STDIO mode
    configure_logging(
        json_output=settings.json_logs,
        log_level=settings.log_level,
        stream=sys.stderr if args.stdio else sys.stdout,
    )

    tools = register_node_tools(mcp)

    if args.stdio:
        mcp.run(transport="stdio")
    else:
        logger.info("tools_registered", count=len(tools), tools=tools)
        logger.info("server_starting", host=args.host, port=args.port)
        mcp.run(transport="http", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
