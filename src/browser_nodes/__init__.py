"""
Browser Nodes - remote-browser automation operations for workflow hosts.

Each node connects to a remote browser over the Chrome DevTools Protocol,
performs one operation per input item (navigation, interaction, screenshot,
natural-language act / extract / observe) and releases the session.

Usage:
    from fastmcp import FastMCP
    from browser_nodes import register_node_tools

    mcp = FastMCP("browser-nodes")
    register_node_tools(mcp)

Or in mcp_servers.json for an agent:
    {
      "browser-nodes": {
        "transport": "stdio",
        "command": "python",
        "args": ["-m", "browser_nodes.server", "--stdio"],
        "description": "Remote browser automation nodes"
      }
    }
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .dispatcher import OperationDispatcher
from .errors import NodeError
from .models import ModelCredential, OperationRequest, OperationResult
from .runner import BatchRunner

if TYPE_CHECKING:
    from fastmcp import FastMCP


def register_node_tools(
    mcp: FastMCP,
    dispatcher: OperationDispatcher | None = None,
) -> list[str]:
    """
    Register the browser node tools with a FastMCP server.

    Args:
        mcp: FastMCP server instance
        dispatcher: Dispatcher to run requests with (default: CDP sessions)

    Returns:
        List of registered tool names
    """
    from .tools import register_tools

    return register_tools(mcp, dispatcher)


__all__ = [
    "BatchRunner",
    "ModelCredential",
    "NodeError",
    "OperationDispatcher",
    "OperationRequest",
    "OperationResult",
    "register_node_tools",
]
