"""
MCP protocol session

Builds the MCP server that answers one peer. The mcp SDK's low-level Server
owns the protocol: initialize, ping, tools/list, tools/call and the JSON-RPC
error responses. This module plugs the tool dispatcher into it and parses
inbound frames. Sessions share only the dispatcher.
"""

import uuid
from typing import List, Optional, Set, Union

import anyio
import anyio.lowlevel
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.models import InitializationOptions
from pydantic import ValidationError

from ...core.exceptions import ConnectionClosedError, MalformedFrameError
from ...utils.logging_utils import get_logger
from ...utils.response_utils import ToolEnvelope, error_envelope
from .dispatcher import ToolDispatcher, ToolInvocation

logger = get_logger(__name__)


def parse_frame(frame: Union[str, bytes]) -> types.JSONRPCMessage:
    """
    Parse one inbound frame into a JSON-RPC message.

    Raises:
        MalformedFrameError: If the frame is not a JSON-RPC 2.0 message
    """
    try:
        return types.JSONRPCMessage.model_validate_json(frame)
    except ValidationError as e:
        raise MalformedFrameError(
            f"Failed to parse message: {e.errors()[0]['msg']}",
            original_exception=e
        ) from e


class MCPSession:
    """MCP server and tool-call bookkeeping for one peer"""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        server_name: str = "bungie-destiny-server",
        server_version: str = "1.0.0",
        session_id: Optional[str] = None
    ):
        self.dispatcher = dispatcher
        self.session_id = session_id or uuid.uuid4().hex
        self.server = Server(server_name, version=server_version)

        self._calls: Set[anyio.CancelScope] = set()
        self._abandoned = False

        self._register_handlers()

    @property
    def abandoned(self) -> bool:
        """Whether the peer left and pending calls were given up."""
        return self._abandoned

    def initialization_options(self) -> InitializationOptions:
        """Server name, version and capabilities sent in the initialize result."""
        return self.server.create_initialization_options()

    def _register_handlers(self) -> None:
        server = self.server

        @server.list_tools()
        async def list_tools() -> List[types.Tool]:
            return self.dispatcher.list_tools()

        async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
            envelope = await self.call_tool(request.params.name, request.params.arguments)
            return types.ServerResult(envelope.to_result())

        # Registered directly: the call_tool() decorator turns missing
        # arguments into {} and renders failures in its own format
        server.request_handlers[types.CallToolRequest] = call_tool

    async def call_tool(self, name: str, arguments: Optional[dict]) -> ToolEnvelope:
        """
        Run one tool call through the dispatcher.

        A call that is still waiting for rate-limit admission when the peer
        leaves is cancelled. Admitted calls always run to completion.

        Args:
            name: Tool name as received
            arguments: Tool arguments as received, None when absent

        Returns:
            Exactly one envelope
        """
        if not self._abandoned:
            with anyio.CancelScope() as scope:
                self._calls.add(scope)
                try:
                    envelope = await self.dispatcher.invoke(ToolInvocation(name=name, arguments=arguments))
                    # Raise here a cancellation held back while the call was admitted
                    await anyio.lowlevel.checkpoint()
                    return envelope
                finally:
                    self._calls.discard(scope)

        logger.info(f"[{self.session_id}] Tool call {name} abandoned: peer disconnected")
        return error_envelope(ConnectionClosedError(
            f"Tool call {name} abandoned because the peer disconnected",
            details={"session_id": self.session_id}
        ))

    def abandon(self) -> None:
        """Give up tool calls that have not been admitted yet."""
        if self._abandoned:
            return
        self._abandoned = True

        if self._calls:
            logger.info(f"[{self.session_id}] Cancelling {len(self._calls)} pending tool calls")
        for scope in list(self._calls):
            scope.cancel()
