"""
=============================================================================
HANDLERS MODULE
=============================================================================

The three routes the dev server registers, in match order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Route         │ Handler            │ Does                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │ GET /ws       │ WebSocketHandler   │ upgrade, then echo messages    │
    │ ANY /upload   │ UploadHandler      │ store a multipart "file" part  │
    │ ANY /*path    │ RequestDispatcher  │ GET → FileResponder, stubs for │
    │               │                    │ POST / PUT / DELETE / HEAD     │
    └─────────────────────────────────────────────────────────────────────┘

Handlers are callables taking an HTTPRequest and returning an HTTPResponse,
so each one can be tested without a socket:

    responder = FileResponder(root_dir=tmp_path, cors_origin="http://x")
    response = RequestDispatcher(responder)(parse_request(raw))

=============================================================================
"""

from .static import (
    FileResponder,
    RangeSpec,
    ValidationMetadata,
    ETagCache,
    compute_etag,
    parse_range,
)
from .dispatch import RequestDispatcher, RequestHints
from .upload import UploadHandler, safe_filename
from .websocket import (
    WebSocketHandler,
    WebSocketError,
    EchoSession,
    Frame,
    Opcode,
    CloseCode,
    compute_accept_key,
    encode_frame,
    read_frame,
)

__all__ = [
    "FileResponder",
    "RangeSpec",
    "ValidationMetadata",
    "ETagCache",
    "compute_etag",
    "parse_range",

    "RequestDispatcher",
    "RequestHints",

    "UploadHandler",
    "safe_filename",

    "WebSocketHandler",
    "WebSocketError",
    "EchoSession",
    "Frame",
    "Opcode",
    "CloseCode",
    "compute_accept_key",
    "encode_frame",
    "read_frame",
]
