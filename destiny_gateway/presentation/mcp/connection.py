"""
Connection handling

A Connection pairs one frame transport with one MCP session. A reader task
parses inbound frames and feeds them to the session's server through an
in-memory stream; the server handles each request in its own task, so a slow
tool call never blocks the rest of the connection. A writer task sends the
server's responses back over the transport.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional, Set

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.shared.message import SessionMessage

from ...core.exceptions import ConnectionClosedError, MalformedFrameError
from ...utils.logging_utils import get_logger
from .session import MCPSession, parse_frame

logger = get_logger(__name__)


class FrameTransport(ABC):
    """Moves whole text frames to and from one peer"""

    @abstractmethod
    async def read_frame(self) -> Optional[str]:
        """Next inbound frame, or None once the peer is gone."""
        pass

    @abstractmethod
    async def write_frame(self, frame: str) -> None:
        """Write one outbound frame."""
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the transport can still carry outbound frames."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the transport."""
        pass


class Connection:
    """One peer: transport, session and the requests it has in flight"""

    def __init__(
        self,
        transport: FrameTransport,
        session: MCPSession,
        connection_id: Optional[str] = None
    ):
        self.transport = transport
        self.session = session
        self.connection_id = connection_id or uuid.uuid4().hex[:12]
        self.closed = False

        self._send_lock = anyio.Lock()
        self._pending: Set[types.RequestId] = set()
        self._end_of_input = False
        self._drained = anyio.Event()

    @property
    def in_flight(self) -> int:
        """Requests forwarded to the session and not answered yet."""
        return len(self._pending)

    async def run(self) -> None:
        """
        Serve the connection until the peer goes away.

        At end of input the session stays open until every forwarded request
        has been answered. If the peer can no longer receive, calls still
        waiting for admission are abandoned and responses are discarded.
        """
        logger.info(f"[{self.connection_id}] Connection opened")

        inbound_writer, inbound = anyio.create_memory_object_stream(0)
        outbound, outbound_reader = anyio.create_memory_object_stream(0)

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._read_loop, inbound_writer)
                tg.start_soon(self._write_loop, outbound_reader)

                await self.session.server.run(
                    inbound,
                    outbound,
                    self.session.initialization_options()
                )
                tg.cancel_scope.cancel()
        finally:
            await self.close()

    async def send(self, message: types.JSONRPCMessage) -> None:
        """
        Write one message to the peer.

        Raises:
            ConnectionClosedError: If the connection is closed or the transport is not ready
        """
        frame = message.model_dump_json(by_alias=True, exclude_none=True)

        async with self._send_lock:
            if self.closed or not self.transport.is_ready():
                raise ConnectionClosedError(
                    f"Connection {self.connection_id} is not open",
                    details={"connection_id": self.connection_id}
                )
            try:
                await self.transport.write_frame(frame)
            except ConnectionClosedError:
                raise
            except (ConnectionError, OSError) as e:
                raise ConnectionClosedError(
                    f"Connection {self.connection_id} lost during send: {e}",
                    details={"connection_id": self.connection_id},
                    original_exception=e
                ) from e

    async def close(self) -> None:
        """Close the connection and its transport. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        await self.transport.close()
        logger.info(f"[{self.connection_id}] Connection closed")

    async def _read_loop(self, inbound: MemoryObjectSendStream) -> None:
        async with inbound:
            try:
                while True:
                    frame = await self.transport.read_frame()
                    if frame is None:
                        break

                    try:
                        message = parse_frame(frame)
                    except MalformedFrameError as e:
                        logger.warning(f"[{self.connection_id}] Dropping malformed frame: {e.message}")
                        continue

                    if isinstance(message.root, types.JSONRPCRequest):
                        self._pending.add(message.root.id)
                    await inbound.send(SessionMessage(message))
            except (ConnectionError, OSError) as e:
                logger.warning(f"[{self.connection_id}] Read failed: {e}")

            await self._finish_input()

    async def _finish_input(self) -> None:
        """Hold the session open until forwarded requests are answered."""
        self._end_of_input = True

        if not self.transport.is_ready():
            self.session.abandon()

        if self._pending:
            logger.debug(f"[{self.connection_id}] Waiting for {len(self._pending)} in-flight requests")
            await self._drained.wait()

    async def _write_loop(self, outbound: MemoryObjectReceiveStream) -> None:
        async with outbound:
            async for session_message in outbound:
                message = session_message.message

                try:
                    await self.send(message)
                except ConnectionClosedError as e:
                    logger.info(f"[{self.connection_id}] Discarding {_describe(message)}: {e.message}")

                if isinstance(message.root, (types.JSONRPCResponse, types.JSONRPCError)):
                    self._pending.discard(message.root.id)
                if self._end_of_input and not self._pending:
                    self._drained.set()


def _describe(message: types.JSONRPCMessage) -> str:
    root = message.root
    if isinstance(root, (types.JSONRPCResponse, types.JSONRPCError)):
        return f"response {root.id}"
    return type(root).__name__
