"""
Unit tests for HTTP request parsing.
"""

import json

import pytest

from devserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a file GET."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/assets/app.js"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed and lower-cased."""
        request = parse_request(sample_get_request)

        assert request.host == "127.0.0.1:4221"
        assert request.user_agent == "pytest"
        assert request.headers["range"] == "bytes=0-1023"
        assert request.is_keep_alive is True

    def test_file_hints(self, sample_get_request: bytes):
        """Test the properties the file responder reads."""
        request = parse_request(sample_get_request)

        assert request.accepts_gzip is True
        assert request.if_none_match == "9e107d9d372bb6826bd81d3542a419d6"

    def test_gzip_is_a_substring_test(self):
        """Test that q-values are not interpreted."""
        raw = b"GET / HTTP/1.1\r\nAccept-Encoding: br, x-gzip;q=0\r\n\r\n"
        assert parse_request(raw).accepts_gzip is True

        raw = b"GET / HTTP/1.1\r\nAccept-Encoding: br, deflate\r\n\r\n"
        assert parse_request(raw).accepts_gzip is False

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.query_params == {"v": ["3"]}

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with a body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/api/files"
        assert request.content_type == "application/json"
        assert request.content_length == len(request.body)
        assert json.loads(request.body) == {"name": "notes.txt", "size": 12}

    def test_parse_percent_encoded_path(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /my%20notes.txt?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/my notes.txt"
        assert request.query_params["q"] == ["hello world"]

    def test_parse_invalid_method(self):
        """Test that unknown methods are rejected with 405."""
        raw = b"BREW /pot HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_unsupported_version(self):
        raw = b"GET / HTTP/2.0\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_missing_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    @pytest.mark.parametrize("target", [
        b"/../../../etc/passwd",
        b"/static/../../secret",
        b"/%2e%2e/secret",
        b"/a/..%5c..%5csecret",
    ])
    def test_parse_path_traversal_blocked(self, target: bytes):
        """Test that .. segments are rejected however they are spelled."""
        raw = b"GET " + target + b" HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400
        assert "path" in str(exc_info.value).lower()

    def test_double_dot_inside_a_name_is_allowed(self):
        request = parse_request(b"GET /v1..2.txt HTTP/1.1\r\n\r\n")
        assert request.path == "/v1..2.txt"

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 keep-alive defaults."""
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

        request_close = parse_request(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert request_close.is_keep_alive is False

    def test_content_length_handling(self):
        """Test that the body is cut at Content-Length."""
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
            b"test bodyGET /next HTTP/1.1\r\n\r\n"
        )

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == b"test body"

    def test_short_body_rejected(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 50\r\n\r\nshort"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value: bytes):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.content_type == "text/html"
        assert request.headers["content-type"] == "text/html"

    def test_repeated_headers_joined(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept-Encoding: br\r\n"
            b"Accept-Encoding: gzip\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.headers["accept-encoding"] == "br, gzip"
        assert request.accepts_gzip is True


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_websocket_upgrade_detection(self):
        request = HTTPRequest(
            method="GET",
            path="/ws",
            headers={"upgrade": "WebSocket", "connection": "keep-alive, Upgrade"},
        )
        assert request.is_websocket_upgrade is True

        plain = HTTPRequest(method="GET", path="/ws", headers={"connection": "keep-alive"})
        assert plain.is_websocket_upgrade is False

    def test_multipart_content_type_without_params(self):
        request = HTTPRequest(
            method="POST",
            path="/upload",
            headers={"content-type": "multipart/form-data; boundary=xyz"},
        )
        assert request.content_type == "multipart/form-data"
