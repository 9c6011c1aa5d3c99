"""
=============================================================================
WEBSOCKET ECHO
=============================================================================

``/ws`` upgrades the connection to WebSocket (RFC 6455) and echoes every
message back with an ``Echo: `` prefix. Handy for checking that a page's
socket code connects, sends and receives before a real backend exists.

=============================================================================
HANDSHAKE
=============================================================================

    GET /ws HTTP/1.1                          ← browser
    Upgrade: websocket
    Connection: Upgrade
    Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==
    Sec-WebSocket-Version: 13

    HTTP/1.1 101 Switching Protocols          ← WebSocketHandler
    Upgrade: websocket
    Connection: Upgrade
    Sec-WebSocket-Accept: s3pPLMBiTxaQ9kYGzzhZRbK+xOo=
    Access-Control-Allow-Origin: *

    Sec-WebSocket-Accept = base64(sha1(key + "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"))

After the 101 is written the server calls the response's upgrade hook with
the Connection, and EchoSession owns the socket until either side closes.

    not an upgrade request / bad key   → 400
    Sec-WebSocket-Version other than 13 → 426, Sec-WebSocket-Version: 13

=============================================================================
FRAMES
=============================================================================

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +-+-+-+-+-------+-+-------------+-------------------------------+
    |F|R|R|R| opcode|M| Payload len |    Extended payload length    |
    |I|S|S|S|  (4)  |A|     (7)     |             (16/64)           |
    |N|V|V|V|       |S|             |   (if payload len==126/127)   |
    | |1|2|3|       |K|             |                               |
    +-+-+-+-+-------+-+-------------+ - - - - - - - - - - - - - - - +
    |     Masking-key (0 or 4 bytes, clients always send one)       |
    +---------------------------------------------------------------+
    |                     Payload Data                              |
    +---------------------------------------------------------------+

Client frames must be masked, server frames never are. Control frames
(close, ping, pong) carry at most 125 bytes and are never fragmented; they
may arrive between the fragments of a data message.

=============================================================================
SESSION
=============================================================================

    text "hi"               → text "Echo: hi"
    binary b"\\x68\\x69"      → text "Echo: hi"     (UTF-8, bad bytes replaced)
    ping b"x"               → pong b"x"
    close 1000              → close 1000, session ends
    unmasked frame          → close 1002
    message > max size      → close 1009
    invalid UTF-8 in text   → close 1007

=============================================================================
"""

import base64
import binascii
import hashlib
import logging
import os
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

from ..core.connection import Connection
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, bad_request
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


WS_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
WS_VERSION = "13"
ECHO_PREFIX = "Echo: "

MAX_CONTROL_PAYLOAD = 125


class Opcode(IntEnum):
    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA

    @property
    def is_control(self) -> bool:
        return self >= 0x8


class CloseCode(IntEnum):
    NORMAL = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    INVALID_PAYLOAD = 1007
    MESSAGE_TOO_BIG = 1009
    INTERNAL_ERROR = 1011


class WebSocketError(Exception):
    """
    Protocol violation by the peer. The session answers with a close frame
    carrying ``close_code`` and ends.
    """

    def __init__(self, message: str, close_code: int = CloseCode.PROTOCOL_ERROR):
        super().__init__(message)
        self.close_code = close_code


# =============================================================================
# FRAME CODEC
# =============================================================================

@dataclass
class Frame:
    opcode: Opcode
    payload: bytes = b""
    fin: bool = True
    masked: bool = False


def compute_accept_key(key: str) -> str:
    """Sec-WebSocket-Accept value for a Sec-WebSocket-Key."""
    digest = hashlib.sha1((key + WS_GUID).encode("ascii")).digest()
    return base64.b64encode(digest).decode("ascii")


def apply_mask(payload: bytes, mask: bytes) -> bytes:
    """XOR with the 4-byte mask; masking and unmasking are the same thing."""
    if not payload:
        return payload
    repeated = (mask * (len(payload) // 4 + 1))[:len(payload)]
    value = int.from_bytes(payload, "big") ^ int.from_bytes(repeated, "big")
    return value.to_bytes(len(payload), "big")


def encode_frame(
    opcode: Opcode,
    payload: bytes = b"",
    fin: bool = True,
    mask: Optional[bytes] = None,
) -> bytes:
    """
    Serialize one frame.

    Args:
        opcode: Frame type.
        payload: Frame data.
        fin: Last frame of the message.
        mask: 4-byte masking key; the server sends None, clients (and tests
            playing the client) pass one.
    """
    first = (0x80 if fin else 0) | int(opcode)
    mask_bit = 0x80 if mask is not None else 0
    length = len(payload)

    if length < 126:
        header = struct.pack("!BB", first, mask_bit | length)
    elif length < (1 << 16):
        header = struct.pack("!BBH", first, mask_bit | 126, length)
    else:
        header = struct.pack("!BBQ", first, mask_bit | 127, length)

    if mask is not None:
        return header + mask + apply_mask(payload, mask)
    return header + payload


def encode_close_payload(code: Optional[int], reason: str = "") -> bytes:
    """Close frame body; the reason is cut so the whole fits in 125 bytes."""
    if code is None:
        return b""
    encoded = reason.encode("utf-8")[:MAX_CONTROL_PAYLOAD - 2]
    return struct.pack("!H", code) + encoded.decode("utf-8", errors="ignore").encode("utf-8")


def read_frame(
    read_exact: Callable[[int], bytes],
    max_payload: Optional[int] = None,
    require_mask: bool = True,
) -> Frame:
    """
    Read and validate one frame.

    Args:
        read_exact: Returns exactly n bytes or raises (``Connection.read_exact``).
        max_payload: Largest payload accepted.
        require_mask: Reject unmasked frames, as a server must.

    Raises:
        WebSocketError: The frame breaks the protocol or is too large.
        ConnectionError: The peer went away mid-frame.
    """
    first, second = struct.unpack("!BB", read_exact(2))

    fin = bool(first & 0x80)
    if first & 0x70:
        raise WebSocketError("Reserved bits set without a negotiated extension")

    try:
        opcode = Opcode(first & 0x0F)
    except ValueError:
        raise WebSocketError(f"Unknown opcode: {first & 0x0F:#x}")

    masked = bool(second & 0x80)
    length = second & 0x7F

    if length == 126:
        (length,) = struct.unpack("!H", read_exact(2))
    elif length == 127:
        (length,) = struct.unpack("!Q", read_exact(8))
        if length >> 63:
            raise WebSocketError("Payload length has the high bit set")

    if opcode.is_control:
        if not fin:
            raise WebSocketError("Fragmented control frame")
        if length > MAX_CONTROL_PAYLOAD:
            raise WebSocketError(f"Control frame payload too large: {length}")

    if require_mask and not masked:
        raise WebSocketError("Client frame is not masked")

    if max_payload is not None and length > max_payload:
        raise WebSocketError(
            f"Frame too large: {length} > {max_payload} bytes",
            close_code=CloseCode.MESSAGE_TOO_BIG,
        )

    mask = read_exact(4) if masked else None
    payload = read_exact(length) if length else b""
    if mask is not None:
        payload = apply_mask(payload, mask)

    return Frame(opcode=opcode, payload=payload, fin=fin, masked=masked)


# =============================================================================
# ECHO SESSION
# =============================================================================

class EchoSession:
    """
    Runs on an upgraded connection until either side closes.

        session = EchoSession(conn, max_message_size=config.ws_max_message_size)
        session.run()
    """

    def __init__(
        self,
        conn: Connection,
        max_message_size: int = 32 * 1024 * 1024,
        prefix: str = ECHO_PREFIX,
    ):
        self.conn = conn
        self.max_message_size = max_message_size
        self.prefix = prefix
        self.closed = False
        self.messages_echoed = 0

    def run(self):
        logger.info(f"[{self.conn.id}] WebSocket connection established")

        try:
            while not self.closed:
                message = self.receive()
                if message is None:
                    break

                logger.debug(f"[{self.conn.id}] Received WebSocket message: {message}")

                if not self.send_text(self.prefix + message):
                    logger.warning(f"[{self.conn.id}] Error sending WebSocket message")
                    break
                self.messages_echoed += 1

        except WebSocketError as e:
            logger.warning(f"[{self.conn.id}] WebSocket protocol error: {e}")
            self.send_close(e.close_code, str(e))
        except OSError as e:
            logger.info(f"[{self.conn.id}] Error receiving WebSocket message: {e}")

        logger.info(
            f"[{self.conn.id}] WebSocket connection closed "
            f"after {self.messages_echoed} messages"
        )

    def receive(self) -> Optional[str]:
        """
        Next complete data message as text, answering control frames on the
        way. None once the peer has sent a close frame.
        """
        fragments = []
        message_opcode = None
        size = 0

        while True:
            frame = read_frame(self.conn.read_exact, self.max_message_size)

            if frame.opcode == Opcode.PING:
                self.conn.send(encode_frame(Opcode.PONG, frame.payload))
                continue
            if frame.opcode == Opcode.PONG:
                continue
            if frame.opcode == Opcode.CLOSE:
                self._handle_close(frame.payload)
                return None

            if frame.opcode == Opcode.CONTINUATION:
                if message_opcode is None:
                    raise WebSocketError("Continuation frame without a message")
            else:
                if message_opcode is not None:
                    raise WebSocketError("New message before the previous one finished")
                message_opcode = frame.opcode

            size += len(frame.payload)
            if size > self.max_message_size:
                raise WebSocketError(
                    f"Message too large: more than {self.max_message_size} bytes",
                    close_code=CloseCode.MESSAGE_TOO_BIG,
                )
            fragments.append(frame.payload)

            if frame.fin:
                return self._decode(message_opcode, b"".join(fragments))

    def _decode(self, opcode: Opcode, data: bytes) -> str:
        if opcode == Opcode.BINARY:
            return data.decode("utf-8", errors="replace")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise WebSocketError(
                "Text message is not valid UTF-8",
                close_code=CloseCode.INVALID_PAYLOAD,
            )

    def _handle_close(self, payload: bytes):
        if len(payload) == 1:
            raise WebSocketError("Close frame with a 1-byte payload")

        code = struct.unpack("!H", payload[:2])[0] if payload else None
        logger.debug(f"[{self.conn.id}] Peer closed with code {code}")
        self.send_close(code)

    def send_text(self, text: str) -> bool:
        return self.conn.send(encode_frame(Opcode.TEXT, text.encode("utf-8")))

    def send_close(self, code: Optional[int], reason: str = ""):
        if self.closed:
            return
        self.closed = True
        self.conn.send(encode_frame(Opcode.CLOSE, encode_close_payload(code, reason)))


# =============================================================================
# HANDSHAKE HANDLER
# =============================================================================

class WebSocketHandler:
    """
    Route handler for the WebSocket endpoint.

        router.add_route(config.ws_path, WebSocketHandler(config.ws_max_message_size), "GET")
    """

    def __init__(self, max_message_size: int = 32 * 1024 * 1024):
        self.max_message_size = max_message_size

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        if not request.is_websocket_upgrade:
            return bad_request("Invalid WebSocket handshake: not an upgrade request")

        version = request.headers.get("sec-websocket-version", "")
        if version != WS_VERSION:
            return (ResponseBuilder()
                .status(HTTPStatus.UPGRADE_REQUIRED)
                .header("Sec-WebSocket-Version", WS_VERSION)
                .json({"error": f"Unsupported WebSocket version: {version or 'none'}"})
                .build())

        key = request.headers.get("sec-websocket-key", "").strip()
        if not is_valid_key(key):
            return bad_request("Invalid WebSocket handshake: bad Sec-WebSocket-Key")

        return (ResponseBuilder()
            .upgrade("websocket", self.start_session)
            .header("Sec-WebSocket-Accept", compute_accept_key(key))
            .header("Access-Control-Allow-Origin", "*")
            .build())

    def start_session(self, conn: Connection):
        EchoSession(conn, max_message_size=self.max_message_size).run()


def is_valid_key(key: str) -> bool:
    """A Sec-WebSocket-Key is 16 random bytes, base64 encoded."""
    try:
        return len(base64.b64decode(key, validate=True)) == 16
    except (binascii.Error, ValueError):
        return False


def generate_key() -> str:
    """Fresh Sec-WebSocket-Key, for clients and tests."""
    return base64.b64encode(os.urandom(16)).decode("ascii")
