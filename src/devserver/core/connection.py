"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reads, sends, and the
close sequence.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever the kernel has, not one request. A request for a
range of a big file can arrive as

    recv() → b"GET /video.mp4 HTT"
    recv() → b"P/1.1\r\nRange: bytes=0-65535\r\n\r\n"

and an upload body arrives in as many chunks as the client likes. So the
connection keeps a buffer and reads:

    1. until the buffer holds \r\n\r\n         (end of headers)
    2. then until it holds Content-Length more  (the body)

Whatever follows belongs to the next request (pipelining) and stays in
the buffer.

=============================================================================
LIFECYCLE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                          │                     │
     │         │                          └──► UPGRADED         │
     │         │                                  │  (WebSocket)│
     ▼         ▼                                  ▼             │
    CLOSING ◄─────────────────────────────────────┴─────────────┘
       │
       ▼
    CLOSED

After a 101 the socket stops carrying HTTP. The protocol handler reads it
with read_exact(), which drains any bytes already buffered first, so a
frame the client sent right behind its handshake is not lost.

=============================================================================
"""

import socket
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    UPGRADED = "upgraded"      # handed to a non-HTTP protocol handler
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short random id used to tag log lines.
        state: Current ConnectionState.
        requests_handled: HTTP requests read so far.
        buffer_size: recv() chunk size.
        timeout: Read timeout for the first request, seconds.
        keep_alive_timeout: Read timeout while waiting for the next request.
        max_request_size: Largest request (headers plus body) accepted.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 32 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request (headers and Content-Length body).

        Returns:
            The request bytes, or None when the client closed the connection
            or went quiet on a kept-alive connection.

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request grew past max_request_size.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None

                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(
                    f"Request too large: {body_start + content_length} bytes"
                )

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # short body; the parser reports it
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def read_exact(self, size: int) -> bytes:
        """
        Read exactly ``size`` bytes, buffered bytes first.

        Used once the connection has been upgraded. Blocks according to the
        current socket timeout (None after an upgrade).

        Raises:
            ConnectionError: The peer closed before ``size`` bytes arrived.
        """
        while len(self._buffer) < size:
            chunk = self._recv()
            if not chunk:
                raise ConnectionError(
                    f"Connection closed after {len(self._buffer)} of {size} bytes"
                )
            self._buffer += chunk

        data = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return data

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 when absent or invalid.

        Needed before the request can be parsed, so it is a plain scan.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        sendall() the bytes.

        Returns:
            True on success, False if the client has gone away.
        """
        if self.state != ConnectionState.UPGRADED:
            self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # STATE
    # =========================================================================

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def upgrade(self):
        """
        Switch to raw protocol mode: no read timeout, no HTTP framing.
        """
        self.state = ConnectionState.UPGRADED
        self.timeout = None
        self.socket.settimeout(None)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: shutdown(SHUT_WR) so the client sees FIN, drain
        what it still sends, then release the descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
