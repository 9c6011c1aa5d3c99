"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this dev server actually emits, plus the handful a local
front-end developer is likely to see from it while poking at endpoints.

=============================================================================
WHICH CODES COME FROM WHERE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     STATUS CODE ORIGINS                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   101 Switching Protocols   /ws handshake accepted                  │
    │   200 OK                    files, uploads, method stubs            │
    │   204 No Content            CORS preflight (OPTIONS)                │
    │   304 Not Modified          If-None-Match equals the file ETag      │
    │   400 Bad Request           bad request line, bad multipart form    │
    │   404 Not Found             missing file, path outside the root     │
    │   405 Method Not Allowed    method the dispatcher doesn't know      │
    │   408 Request Timeout       client stalled while sending            │
    │   413 Payload Too Large     request above max_request_size          │
    │   426 Upgrade Required      WebSocket version other than 13         │
    │   500 Internal Server Error handler raised, upload write failed     │
    │   503 Service Unavailable   worker queue full                       │
    │   505 HTTP Version ...      anything but HTTP/1.0 or HTTP/1.1       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Byte ranges are answered with 200, not 206: the body is the requested
slice but no Content-Range header is produced.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    IntEnum, so a member compares equal to its integer:

        >>> HTTPStatus.NOT_MODIFIED == 304
        True
        >>> HTTPStatus.NOT_MODIFIED.phrase
        'Not Modified'
    """

    # 1xx
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101       # WebSocket upgrade

    # 2xx
    OK = 200
    CREATED = 201
    NO_CONTENT = 204                # preflight answer
    PARTIAL_CONTENT = 206

    # 3xx
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304              # conditional GET hit

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    RANGE_NOT_SATISFIABLE = 416
    UPGRADE_REQUIRED = 426          # Sec-WebSocket-Version mismatch

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line (``HTTP/1.1 404 Not Found``)."""
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.UPGRADE_REQUIRED: "Upgrade Required",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
