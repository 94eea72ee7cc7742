"""Line-delimited transport for communication with the peer process.

The framer accumulates raw bytes from the peer's stdout and yields one
parsed message per complete newline-terminated line. The transport writes
outgoing messages to the peer's stdin as single JSON lines.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from acp_secure_host.protocol.jsonrpc import encode_message

logger = logging.getLogger(__name__)


class LineFramer:
    """Splits a byte stream into JSON messages.

    Lines that are not JSON objects (startup banners, diagnostics, terminal
    noise) are discarded and counted. The trailing fragment without a
    terminator is kept until a later feed completes it.
    """

    def __init__(self) -> None:
        """Initialize the framer with an empty buffer."""
        self._buffer = b""
        self.discarded = 0

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a newline."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        """Append a chunk and return messages from every completed line.

        Args:
            chunk: Raw bytes read from the peer.

        Returns:
            Parsed messages in arrival order.
        """
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")

        messages = []
        for raw in lines:
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:  # Skip empty lines
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                self._discard(line)
                continue
            if not isinstance(data, dict):
                self._discard(line)
                continue
            messages.append(data)
        return messages

    def reset(self) -> None:
        """Drop any buffered partial line."""
        self._buffer = b""

    def _discard(self, line: str) -> None:
        self.discarded += 1
        logger.debug("Discarding non-message line from peer: %s", line[:200])


class Writer(Protocol):
    """Minimal writable stream interface (satisfied by asyncio.StreamWriter)."""

    def write(self, data: bytes) -> None: ...

    def is_closing(self) -> bool: ...


class StreamTransport:
    """Writes JSON-RPC messages to the peer's stdin.

    Writes are fire-and-forget: there is no back-pressure handling, and a
    write while no writable stream is attached is dropped and counted.
    """

    def __init__(self, writer: Writer | None = None) -> None:
        """Initialize the transport.

        Args:
            writer: Stream to write to, attached later if not given.
        """
        self._writer = writer
        self.dropped = 0

    @property
    def writable(self) -> bool:
        """Check if a stream is attached and open."""
        return self._writer is not None and not self._writer.is_closing()

    def attach(self, writer: Writer | None) -> None:
        """Attach (or detach, with None) the outgoing stream."""
        self._writer = writer

    def write_message(self, message: dict[str, Any]) -> bool:
        """Write a message as one line.

        Args:
            message: Message dictionary to serialize.

        Returns:
            True if the message was handed to the stream, False if dropped.
        """
        if not self.writable:
            self.dropped += 1
            logger.debug("Dropping message, peer stdin not writable: %s", message.get("method"))
            return False

        try:
            self._writer.write(encode_message(message))
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
            self.dropped += 1
            logger.debug("Dropping message, write failed: %s", e)
            return False
        return True
