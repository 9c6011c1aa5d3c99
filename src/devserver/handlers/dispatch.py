"""
=============================================================================
REQUEST DISPATCHER
=============================================================================

Catch-all route: everything that isn't /ws or /upload lands here and is
dispatched on the method.

    ┌─────────┬──────────────────────────────────────────────────────────┐
    │ GET     │ FileResponder, with the request's hints                  │
    │ POST    │ 200  POST method received                                │
    │ PUT     │ 200  PUT method received, resource replaced              │
    │ DELETE  │ 200  DELETE method received, resource deleted            │
    │ HEAD    │ 200  empty body, Content-Type: text/html                 │
    │ other   │ 405  405 Method Not Allowed                              │
    └─────────┴──────────────────────────────────────────────────────────┘

POST, PUT and DELETE are stubs: a front-end can exercise its request code
against them, nothing is stored or removed.

=============================================================================
HINTS
=============================================================================

    Accept-Encoding: gzip, br   → accepts_gzip=True  ("gzip" substring)
    Range: bytes=0-1023         → RangeSpec(0, 1023)
    If-None-Match: 5d41402a...  → compared against the file's ETag

=============================================================================
"""

from dataclasses import dataclass

from .static import FileResponder, RangeSpec, parse_range
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, method_not_allowed, ok
from ..http.status_codes import HTTPStatus


@dataclass(frozen=True)
class RequestHints:
    """What a GET asks of the file responder beyond the path."""

    accepts_gzip: bool = False
    range_spec: RangeSpec = RangeSpec()
    if_none_match: str = ""

    @classmethod
    def from_request(cls, request: HTTPRequest) -> "RequestHints":
        return cls(
            accepts_gzip=request.accepts_gzip,
            range_spec=parse_range(request.headers.get("range")),
            if_none_match=request.if_none_match,
        )


class RequestDispatcher:
    """
    Method switch for the catch-all route.

        dispatcher = RequestDispatcher(FileResponder(root_dir=config.root_dir))
        router.add_route("/*path", dispatcher)
    """

    def __init__(self, responder: FileResponder):
        self.responder = responder
        self._methods = {
            "GET": self.get,
            "POST": self.post,
            "PUT": self.put,
            "DELETE": self.delete,
            "HEAD": self.head,
        }

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        handler = self._methods.get(request.method)
        if handler is None:
            return method_not_allowed()
        return handler(request)

    def get(self, request: HTTPRequest) -> HTTPResponse:
        hints = RequestHints.from_request(request)
        return self.responder.respond(
            request.path,
            accepts_gzip=hints.accepts_gzip,
            range_spec=hints.range_spec,
            if_none_match=hints.if_none_match,
        )

    def post(self, request: HTTPRequest) -> HTTPResponse:
        return ok("POST method received")

    def put(self, request: HTTPRequest) -> HTTPResponse:
        return ok("PUT method received, resource replaced")

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        return ok("DELETE method received, resource deleted")

    def head(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().status(HTTPStatus.OK).content_type("text/html").build()
