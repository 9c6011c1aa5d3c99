"""
=============================================================================
CORS (Cross-Origin Resource Sharing) MIDDLEWARE
=============================================================================

The front-end under development is normally served from somewhere else
(a Live Server on :5500, a bundler on :3000) and calls this server with
fetch(). The browser only lets that page read the responses if they carry
the right Access-Control-* headers.

=============================================================================
ONE FIXED ORIGIN
=============================================================================

    ┌───────────────────────────────────────────────────────────────────┐
    │   Page from:   http://127.0.0.1:5500        (cors_origin)         │
    │                                                                    │
    │   fetch("http://127.0.0.1:4221/app.json")                          │
    │                                                                    │
    │   ◄── Access-Control-Allow-Origin: http://127.0.0.1:5500           │
    │       Access-Control-Allow-Methods: POST, GET, OPTIONS, PUT, DELETE│
    │       Access-Control-Allow-Headers: Content-Type                   │
    └───────────────────────────────────────────────────────────────────┘

The configured origin is sent on every response whatever the request's
Origin header says. It is not an allow-list and nothing is echoed back.
Pages from any other origin simply can't read the responses.

Handlers that want a different policy set the header themselves; the
WebSocket handshake sends ``*``. This middleware only fills in headers the
handler left unset.

=============================================================================
PREFLIGHT
=============================================================================

    OPTIONS /upload                       ← browser, before a PUT/DELETE or
    Origin: http://127.0.0.1:5500           a JSON POST
    Access-Control-Request-Method: PUT

    204 No Content                        ← answered here, never routed
    Access-Control-Allow-Origin: http://127.0.0.1:5500
    Access-Control-Allow-Methods: POST, GET, OPTIONS, PUT, DELETE
    Access-Control-Allow-Headers: Content-Type

=============================================================================
"""

from typing import Optional, List
from dataclasses import dataclass, field

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


@dataclass
class CORSConfig:
    """
    Attributes:
        origin: Value of Access-Control-Allow-Origin.
        allow_methods: Methods listed to the browser.
        allow_headers: Request headers the browser may send.
        max_age: Seconds a preflight answer may be cached; None omits the
            header and the browser uses its own short default.
    """

    origin: str = "http://127.0.0.1:5500"
    allow_methods: List[str] = field(
        default_factory=lambda: ["POST", "GET", "OPTIONS", "PUT", "DELETE"]
    )
    allow_headers: List[str] = field(default_factory=lambda: ["Content-Type"])
    max_age: Optional[int] = None


class CORSMiddleware(Middleware):
    """
    Answers preflights and adds the fixed CORS headers to every response.

        pipeline.add(LoggingMiddleware())
        pipeline.add(CORSMiddleware(CORSConfig(origin=config.cors_origin)))
    """

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method == "OPTIONS":
            return self._handle_preflight(request)

        response = next(request)
        self._add_cors_headers(response)
        return response

    def _handle_preflight(self, request: HTTPRequest) -> HTTPResponse:
        response = ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()
        self._add_cors_headers(response)

        if self.config.max_age is not None:
            response.headers["Access-Control-Max-Age"] = str(self.config.max_age)

        return response

    def _add_cors_headers(self, response: HTTPResponse):
        """Fill in the Access-Control-* headers the handler did not set."""
        headers = response.headers
        headers.setdefault("Access-Control-Allow-Origin", self.config.origin)
        headers.setdefault(
            "Access-Control-Allow-Methods", ", ".join(self.config.allow_methods)
        )
        headers.setdefault(
            "Access-Control-Allow-Headers", ", ".join(self.config.allow_headers)
        )
