"""
WebSocket transport

FastAPI application exposing the MCP endpoint over WebSocket. Every accepted
socket gets its own session and connection; all of them share one dispatcher
and therefore one rate limiter.
"""

from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ...core.exceptions import ConnectionClosedError
from ...utils.datetime_utils import utc_now_iso
from ...utils.logging_utils import get_logger
from .connection import Connection, FrameTransport
from .dispatcher import ToolDispatcher
from .session import MCPSession

logger = get_logger(__name__)

MCP_PATHS = ("/", "/mcp")


class WebSocketTransport(FrameTransport):
    """Text frames over an accepted Starlette WebSocket"""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def read_frame(self) -> Optional[str]:
        try:
            message = await self.websocket.receive()
        except WebSocketDisconnect:
            return None

        if message["type"] == "websocket.disconnect":
            return None

        text = message.get("text")
        if text is None and message.get("bytes") is not None:
            text = message["bytes"].decode("utf-8", errors="replace")
        return text or ""

    async def write_frame(self, frame: str) -> None:
        try:
            await self.websocket.send_text(frame)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionClosedError(
                f"WebSocket closed during send: {e}",
                original_exception=e
            ) from e

    def is_ready(self) -> bool:
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    async def close(self) -> None:
        if not self.is_ready():
            return
        try:
            await self.websocket.close()
        except RuntimeError as e:
            logger.debug(f"WebSocket already closed: {e}")


def create_app(
    dispatcher: ToolDispatcher,
    server_name: str = "bungie-destiny-server",
    server_version: str = "1.0.0"
) -> FastAPI:
    """
    Create the WebSocket MCP application.

    Args:
        dispatcher: Shared tool dispatcher
        server_name: Name reported in initialize and /health
        server_version: Version reported in initialize and /health

    Returns:
        FastAPI application
    """
    app = FastAPI(title=server_name, version=server_version)
    connections: Set[Connection] = set()
    app.state.connections = connections

    async def mcp_endpoint(websocket: WebSocket):
        await websocket.accept()

        session = MCPSession(dispatcher, server_name=server_name, server_version=server_version)
        connection = Connection(WebSocketTransport(websocket), session)
        connections.add(connection)
        logger.info(f"WebSocket client connected: {connection.connection_id} ({len(connections)} active)")

        try:
            await connection.run()
        finally:
            connections.discard(connection)
            logger.info(f"WebSocket client disconnected: {connection.connection_id}")

    for path in MCP_PATHS:
        app.add_api_websocket_route(path, mcp_endpoint)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        """Liveness probe."""
        return {
            "status": "ok",
            "server": server_name,
            "version": server_version,
            "connections": len(connections),
            "tools": len(dispatcher.list_tools()),
            "timestamp": utc_now_iso()
        }

    return app
