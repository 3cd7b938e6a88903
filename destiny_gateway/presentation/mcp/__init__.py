"""
MCP Presentation Layer

JSON-RPC session, tool dispatch and the stdio and WebSocket transports.
"""

from .catalog import ToolBinding, ToolCatalog, build_default_catalog
from .dispatcher import ToolDispatcher, ToolInvocation
from .session import MCPSession, parse_frame
from .connection import Connection, FrameTransport
from .stdio import StdioTransport
from .websocket import WebSocketTransport, create_app
from .server import run_stdio_server, run_websocket_server

__all__ = [
    # Tools
    "ToolBinding",
    "ToolCatalog",
    "build_default_catalog",
    "ToolDispatcher",
    "ToolInvocation",

    # Protocol
    "MCPSession",
    "parse_frame",
    "Connection",
    "FrameTransport",

    # Transports
    "StdioTransport",
    "WebSocketTransport",
    "create_app",
    "run_stdio_server",
    "run_websocket_server",
]
