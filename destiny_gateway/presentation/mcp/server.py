"""
MCP Server runners

Entry points that wire a container's dispatcher to a transport and serve
until the peer (stdio) or the process (WebSocket) stops.
"""

import logging
from typing import Optional

import uvicorn

from .connection import Connection
from .session import MCPSession
from .stdio import StdioTransport, open_stdio_streams
from .websocket import create_app

logger = logging.getLogger(__name__)


async def run_stdio_server(container) -> None:
    """
    Serve one MCP session over stdin/stdout.

    Args:
        container: Dependency injection container
    """
    settings = container.settings()
    dispatcher = container.dispatcher()

    reader, writer = await open_stdio_streams()
    session = MCPSession(
        dispatcher,
        server_name=settings.app_name,
        server_version=settings.app_version
    )
    connection = Connection(StdioTransport(reader, writer), session, connection_id="stdio")

    logger.info("Bungie API MCP Server running on stdio")
    await connection.run()


async def run_websocket_server(
    container,
    host: Optional[str] = None,
    port: Optional[int] = None
) -> None:
    """
    Serve MCP over WebSocket until the process is stopped.

    Args:
        container: Dependency injection container
        host: Bind address (defaults to HOST)
        port: Listen port (defaults to PORT)
    """
    settings = container.settings()
    host = host or settings.server.host
    port = port or settings.server.port

    app = create_app(
        container.dispatcher(),
        server_name=settings.app_name,
        server_version=settings.app_version
    )

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=settings.server.log_level.lower(),
        log_config=None  # keep the gateway's logging setup
    )
    server = uvicorn.Server(config)

    logger.info(f"Bungie API MCP Server running on WebSocket port {port}")
    await server.serve()
