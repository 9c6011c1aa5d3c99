"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read off a client socket into an HTTPRequest.

=============================================================================
WHAT THE DEV SERVER READS FROM A REQUEST
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                  REQUEST → WHO CARES ABOUT IT                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /assets/app.js?v=3 HTTP/1.1        router, file responder     │
    │   Host: 127.0.0.1:4221                                              │
    │   Accept-Encoding: gzip, deflate, br     file responder (gzip?)     │
    │   Range: bytes=0-1023                    file responder (slice)     │
    │   If-None-Match: 9e107d9d372bb6826b...   file responder (304?)      │
    │   Origin: http://127.0.0.1:5500          CORS middleware            │
    │   Upgrade: websocket                     /ws handshake              │
    │   Sec-WebSocket-Key: dGhlIHNhbXBsZQ==    /ws handshake              │
    │   Content-Type: multipart/form-data;     /upload                    │
    │       boundary=----abc                                              │
    │   Content-Length: 5123                   connection reader, parser  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Header names are folded to lower case at parse time, so every consumer
looks them up as ``request.headers["if-none-match"]`` and friends.

=============================================================================
PARSING STEPS
=============================================================================

    1. size check                    → 413 when over the limit
    2. split at the first CRLF CRLF  → header block / body
    3. request line                  → 400 malformed, 405 unknown method,
                                       505 unsupported version
    4. header lines                  → dict, duplicates comma-joined
    5. body                          → exactly Content-Length bytes

A path with a ``..`` segment is rejected with 400 before it ever reaches
a handler. The file responder checks root containment again on its own.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs, urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when request bytes can't be turned into an HTTPRequest.

    Carries the status code the server loop answers with:

        400  malformed request line, bad path, short body
        405  method not in VALID_METHODS
        413  request larger than the configured limit
        505  HTTP version other than 1.0 / 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method          "GET", "POST", ...
        path            URL-decoded path without the query string
        version         "HTTP/1.1" or "HTTP/1.0"
        headers         lower-cased name → value
        query_params    "?a=1&a=2" → {"a": ["1", "2"]}
        body            raw body bytes (Content-Length of them)
        path_params     filled in by the router from :name / *name segments
        client_address  (ip, port) of the peer
        raw             the unparsed request bytes

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    # =========================================================================
    # HEADER-DERIVED PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters: ``multipart/form-data``."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as int, 0 when missing or garbage."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def accepts_gzip(self) -> bool:
        """
        Whether the response may be gzip-encoded.

        Plain substring test on Accept-Encoding; q-values are not
        interpreted, so ``gzip;q=0`` still counts as accepting gzip.
        """
        return "gzip" in self.headers.get("accept-encoding", "")

    @property
    def if_none_match(self) -> str:
        """Raw If-None-Match value, empty when the header is absent."""
        return self.headers.get("if-none-match", "")

    @property
    def is_websocket_upgrade(self) -> bool:
        """
        True when the client is asking to switch this connection to
        WebSocket (``Upgrade: websocket`` plus an ``upgrade`` token in
        Connection).
        """
        upgrade = self.headers.get("upgrade", "").lower()
        connection = self.headers.get("connection", "").lower()
        tokens = {token.strip() for token in connection.split(",")}
        return upgrade == "websocket" and "upgrade" in tokens

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection stays open after the response.

        HTTP/1.1 keeps it unless ``Connection: close``; HTTP/1.0 closes it
        unless ``Connection: keep-alive``.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    One parser is shared by every worker thread; it holds no per-request
    state, only the size limit.

        parser = RequestParser(max_request_size=config.max_request_size)
        request = parser.parse(raw_bytes, conn.address)
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    # METHOD SP REQUEST-TARGET SP HTTP-VERSION
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    # field-name ":" OWS field-value
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 32 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes, headers and full body.
            client_address: Peer (ip, port), kept for the access log.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: The request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        # anything past Content-Length belongs to the next pipelined request
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split ``GET /path?query HTTP/1.1`` into its parts.

        Returns:
            (method, decoded path, query params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # "/a/../../etc/passwd" never reaches the file responder; a name
        # that merely contains two dots ("v1..2.txt") is fine.
        if ".." in path.replace("\\", "/").split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a lower-cased dict.

        Obsolete line folding (a line starting with whitespace) is appended
        to the previous value. Repeated headers are comma-joined, so two
        ``Accept-Encoding`` lines read as one list.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip junk lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 32 * 1024 * 1024
) -> HTTPRequest:
    """One-shot helper around RequestParser, mostly for tests."""
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
