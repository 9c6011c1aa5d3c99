"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and handler calls.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest (RequestParser)                │
    │ response.py      HTTPResponse / ResponseBuilder → bytes             │
    │ router.py        (method, path) → handler                           │
    │ multipart.py     multipart/form-data body → MultipartForm           │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    │ mime_types.py    file extension → Content-Type                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    format_http_timestamp,
    ok,                  # 200
    no_content,          # 204
    not_modified,        # 304
    json_error,          # {"error": ...}
    bad_request,         # 400
    not_found,           # 404, plain text
    method_not_allowed,  # 405, plain text
    internal_error,      # 500
)
from .router import Router, Route
from .multipart import MultipartForm, FormPart, MultipartError, parse_multipart
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "format_http_timestamp",

    "ok",
    "no_content",
    "not_modified",
    "json_error",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "Router",
    "Route",

    "MultipartForm",
    "FormPart",
    "MultipartError",
    "parse_multipart",

    "HTTPStatus",

    "get_mime_type",
    "get_content_type",
]
