"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

HTTPResponse holds what a handler wants to send; to_bytes() turns it into
the bytes that go out on the socket.

=============================================================================
A FILE RESPONSE ON THE WIRE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                  GET /app.js  (gzip, range 0-1024)                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 OK                          status line              │
    │   Access-Control-Allow-Origin: http://127.0.0.1:5500                │
    │   Last-Modified: Sat, 17 Oct 2026 09:12:44 GMT                      │
    │   ETag: 5d41402abc4b2a76b9719d911017c592   md5 of the whole file    │
    │   Content-Type: text/javascript; charset=utf-8                      │
    │   Content-Encoding: gzip                                            │
    │   Vary: Accept-Encoding                                             │
    │   Content-Length: 391                      ← added by to_bytes()    │
    │   Date: Sun, 18 Oct 2026 10:00:00 GMT      ← added by to_bytes()    │
    │   Server: devserver/1.0                    ← added by to_bytes()    │
    │                                                                      │
    │   <gzip stream of bytes 0..1023>                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

1xx and 204 responses never get a Content-Length. The 101 answer to a
WebSocket handshake carries an ``upgrade`` callback; once the server has
written the 101 it hands the raw connection to that callback and stops
treating the socket as HTTP.

=============================================================================
BUILDER
=============================================================================

    response = (ResponseBuilder()
        .status(HTTPStatus.BAD_REQUEST)
        .json({"error": "Unable to parse form"})
        .build())

Every builder method returns self except build() and to_bytes().

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union, Callable
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "devserver/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    =========================================================================
    FIELDS
    =========================================================================

        status      HTTPStatus member
        headers     name → value, written in insertion order
        body        raw bytes
        version     "HTTP/1.1"
        upgrade     called with the Connection after the response is
                    sent; only set on 101 Switching Protocols

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"
    upgrade: Optional[Callable[[Any], None]] = field(default=None, repr=False)

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 304 Not Modified``"""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, returns self so calls chain."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Replace the body; strings are UTF-8 encoded."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize status line, headers and body.

        Adds Content-Length, Date and Server when the handler did not set
        them. The handler's own headers dict is left untouched.

        Args:
            server_name: Value for the Server header.

        Returns:
            Bytes ready for ``Connection.send()``.
        """
        response_headers = dict(self.headers)

        # RFC 7230 3.3.2: no Content-Length on 1xx, 204 or 304
        bodyless = self.status < 200 or self.status in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
        if not bodyless and "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        ResponseBuilder().status(HTTPStatus.OK).text("POST method received").build()

        ResponseBuilder().status(HTTPStatus.NOT_FOUND).text("404 Not Found").build()
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._upgrade: Optional[Callable[[Any], None]] = None
        self._server_name = server_name

    # =========================================================================
    # STATUS / HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body, no Content-Type implied."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        JSON body with ``application/json``.

        ensure_ascii=False keeps non-ASCII upload names readable in the
        ``{"message": "File uploaded successfully: ..."}`` body.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json"
        return self

    # =========================================================================
    # PROTOCOL SWITCH
    # =========================================================================

    def upgrade(self, protocol: str, handler: Callable[[Any], None]) -> "ResponseBuilder":
        """
        Turn this into a 101 that hands the connection to ``handler``.

        Args:
            protocol: Value for the Upgrade header (``websocket``).
            handler: Called with the Connection once the 101 is on the wire.
        """
        self._status = HTTPStatus.SWITCHING_PROTOCOLS
        self._headers["Upgrade"] = protocol
        self._headers["Connection"] = "Upgrade"
        self._upgrade = handler
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            upgrade=self._upgrade,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date: ``Sun, 18 Oct 2026 10:00:00 GMT``.

    Aware datetimes are converted to UTC first; naive ones are taken to be
    UTC already. Used for Date and Last-Modified.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def format_http_timestamp(timestamp: float) -> str:
    """HTTP-date for a POSIX timestamp such as ``os.stat().st_mtime``."""
    return format_http_date(datetime.fromtimestamp(timestamp, tz=timezone.utc))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok("POST method received")
#     return not_found()
#     return json_error(HTTPStatus.BAD_REQUEST, "Unable to parse form")
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK; dict/list become JSON, str becomes text/plain, bytes are sent raw.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def no_content() -> HTTPResponse:
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def not_modified(headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    """304 with no body, carrying whatever validator headers are passed in."""
    return ResponseBuilder().status(HTTPStatus.NOT_MODIFIED).headers(headers or {}).build()


def json_error(status: HTTPStatus, message: str) -> HTTPResponse:
    """``{"error": message}`` with the given status."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return json_error(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "404 Not Found") -> HTTPResponse:
    """Plain-text 404, the answer for any file that can't be served."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text(message).build()


def method_not_allowed(allowed_methods: Optional[list[str]] = None) -> HTTPResponse:
    """
    Plain-text 405. The Allow header is only sent when the allowed
    methods are known (the router knows, the catch-all dispatcher doesn't).
    """
    builder = (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .text("405 Method Not Allowed"))
    if allowed_methods:
        builder.header("Allow", ", ".join(allowed_methods))
    return builder.build()


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, message)
