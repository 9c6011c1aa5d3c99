"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone, timedelta

import pytest

from devserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    HTTPStatus,
    ok,
    no_content,
    not_modified,
    json_error,
    not_found,
    bad_request,
    method_not_allowed,
    internal_error,
    format_http_date,
    format_http_timestamp,
)
from devserver.http.mime_types import get_mime_type, get_content_type, is_text_type


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        response = HTTPResponse(status=HTTPStatus.OK)
        assert response.status_line == "HTTP/1.1 200 OK"

        response = HTTPResponse(status=HTTPStatus.NOT_MODIFIED)
        assert response.status_line == "HTTP/1.1 304 Not Modified"

    def test_to_bytes_includes_headers(self):
        """Test that to_bytes includes all headers."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"ETag": "abc"},
            body=b"test",
        )

        result = response.to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"ETag: abc\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Server: devserver/1.0\r\n" in result
        assert b"Date: " in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_to_bytes_leaves_headers_alone(self):
        response = HTTPResponse(body=b"hello world")
        result = response.to_bytes(server_name="custom/2")

        assert b"Content-Length: 11\r\n" in result
        assert b"Server: custom/2\r\n" in result
        assert "Content-Length" not in response.headers

    def test_no_content_length_on_204_304_and_101(self):
        assert b"Content-Length" not in no_content().to_bytes()

        result = not_modified({"ETag": "abc"}).to_bytes()
        assert b"Content-Length" not in result
        assert result.endswith(b"\r\n\r\n")

        switching = ResponseBuilder().upgrade("websocket", lambda conn: None).build()
        result = switching.to_bytes()
        assert b"Content-Length" not in result
        assert result.startswith(b"HTTP/1.1 101 Switching Protocols\r\n")

    def test_set_header_chaining(self):
        """Test method chaining for headers."""
        response = (HTTPResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers == {"X-One": "1", "X-Two": "2"}

    def test_set_body_encodes_text(self):
        response = HTTPResponse().set_body("héllo")
        assert response.body == "héllo".encode("utf-8")


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_status(self):
        response = ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()
        assert response.status == HTTPStatus.NOT_FOUND

    def test_json_body(self):
        response = ResponseBuilder().json({"message": "File uploaded successfully: ü.txt"}).build()

        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == {"message": "File uploaded successfully: ü.txt"}
        assert "ü".encode("utf-8") in response.body

    def test_text_body(self):
        response = ResponseBuilder().text("POST method received").build()

        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert response.body == b"POST method received"

    def test_upgrade(self):
        def session(conn):
            pass

        response = ResponseBuilder().upgrade("websocket", session).build()

        assert response.status == HTTPStatus.SWITCHING_PROTOCOLS
        assert response.headers["Upgrade"] == "websocket"
        assert response.headers["Connection"] == "Upgrade"
        assert response.upgrade is session

    def test_method_chaining(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("ETag", "abc")
            .headers({"Vary": "Accept-Encoding"})
            .content_type("text/css; charset=utf-8")
            .body(b"body{}")
            .build())

        assert response.headers == {
            "ETag": "abc",
            "Vary": "Accept-Encoding",
            "Content-Type": "text/css; charset=utf-8",
        }
        assert response.body == b"body{}"
        assert response.upgrade is None


class TestConvenienceFunctions:
    """Tests for convenience response functions."""

    def test_ok(self):
        response = ok("Hello")
        assert response.status == HTTPStatus.OK
        assert response.body == b"Hello"

        response = ok({"msg": "hello"})
        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == {"msg": "hello"}

        response = ok(b"\x00\x01", content_type="application/octet-stream")
        assert response.body == b"\x00\x01"
        assert response.headers["Content-Type"] == "application/octet-stream"

    def test_not_modified(self):
        response = not_modified({"ETag": "abc"})
        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.headers["ETag"] == "abc"
        assert response.body == b""

    def test_json_error(self):
        response = json_error(HTTPStatus.BAD_REQUEST, "Unable to parse form")
        assert response.status == HTTPStatus.BAD_REQUEST
        assert json.loads(response.body) == {"error": "Unable to parse form"}

    def test_not_found(self):
        response = not_found()
        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"404 Not Found"
        assert response.headers["Content-Type"].startswith("text/plain")

    def test_method_not_allowed(self):
        response = method_not_allowed()
        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.body == b"405 Method Not Allowed"
        assert "Allow" not in response.headers

        response = method_not_allowed(["GET", "HEAD"])
        assert response.headers["Allow"] == "GET, HEAD"

    def test_bad_request(self):
        response = bad_request("Invalid input")
        assert response.status == HTTPStatus.BAD_REQUEST
        assert b"Invalid input" in response.body

    def test_internal_error(self):
        response = internal_error()
        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NOT_MODIFIED.phrase == "Not Modified"
        assert HTTPStatus.UPGRADE_REQUIRED.phrase == "Upgrade Required"


class TestFormatHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"

    def test_aware_datetime_converted_to_utc(self):
        dt = datetime(2026, 1, 15, 14, 30, 45, tzinfo=timezone(timedelta(hours=2)))
        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"

    def test_timestamp(self):
        assert format_http_timestamp(0) == "Thu, 01 Jan 1970 00:00:00 GMT"


class TestMimeTypes:

    @pytest.mark.parametrize("path,expected", [
        ("index.html", "text/html"),
        ("bundle.MJS", "text/javascript"),
        ("module.wasm", "application/wasm"),
        ("font.woff2", "font/woff2"),
        ("blob.unknown", "application/octet-stream"),
    ])
    def test_get_mime_type(self, path, expected):
        assert get_mime_type(path) == expected

    def test_charset_only_for_text(self):
        assert get_content_type("site.css") == "text/css; charset=utf-8"
        assert get_content_type("data.json") == "application/json; charset=utf-8"
        assert get_content_type("logo.png") == "image/png"

    @pytest.mark.parametrize("mime_type,expected", [
        ("text/css", True),
        ("application/javascript", True),
        ("application/json", True),
        ("image/svg+xml", True),
        ("image/png", False),
        ("application/wasm", False),
    ])
    def test_is_text_type(self, mime_type, expected):
        assert is_text_type(mime_type) is expected
