"""
Stdio transport

Newline-delimited JSON over the process stdin/stdout. Stdout carries only
protocol frames; all logging goes to stderr.
"""

import asyncio
import sys
from typing import Any, Optional, Tuple

from ...utils.logging_utils import get_logger
from .connection import FrameTransport

logger = get_logger(__name__)

# Tool results such as manifest definitions can be large
STREAM_LIMIT = 16 * 1024 * 1024


async def open_stdio_streams(
    stdin: Any = None,
    stdout: Any = None
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Wrap the process stdin/stdout in asyncio streams.

    Args:
        stdin: Readable pipe (defaults to sys.stdin)
        stdout: Writable pipe (defaults to sys.stdout)

    Returns:
        Tuple of (reader, writer)
    """
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader(limit=STREAM_LIMIT)
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader),
        stdin or sys.stdin
    )

    write_transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin,
        stdout or sys.stdout
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)

    return reader, writer


class StdioTransport(FrameTransport):
    """One frame per line over a reader/writer stream pair"""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._closed = False

    async def read_frame(self) -> Optional[str]:
        while True:
            try:
                line = await self.reader.readline()
            except ValueError as e:
                # Line exceeded the stream limit and was discarded
                logger.warning(f"Dropping oversized stdin line: {e}")
                continue

            if not line:
                return None

            frame = line.decode("utf-8", errors="replace").strip()
            if frame:
                return frame

    async def write_frame(self, frame: str) -> None:
        self.writer.write(frame.encode("utf-8") + b"\n")
        await self.writer.drain()

    def is_ready(self) -> bool:
        return not self._closed and not self.writer.is_closing()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.writer.close()
