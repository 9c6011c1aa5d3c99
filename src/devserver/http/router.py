"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler.

=============================================================================
THE DEV SERVER'S ROUTE TABLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        REGISTRATION ORDER                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET  /ws        → websocket_handler   (upgrade to echo socket)    │
    │   ANY  /upload    → upload_handler      (multipart form)            │
    │   ANY  /*path     → request_dispatcher  (files + method stubs)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

First match wins, so the catch-all goes last. A request for /ws that is
not a GET falls through to the dispatcher like any other path.

=============================================================================
PATTERNS
=============================================================================

    /upload             exact match
    /files/:name        one segment        /files/a.txt → {"name": "a.txt"}
    /*path              rest of the path   /css/site.css → {"path": "css/site.css"}

Patterns compile to anchored regexes with named groups:

    /files/:name/*rest  →  ^/files/(?P<name>[^/]+)/(?P<rest>.*)$

A wildcard has to be the last segment; anything after it is ignored.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


Handler = Callable[[HTTPRequest], HTTPResponse]

ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]


@dataclass
class Route:
    """A registered pattern, its method filter (None = any) and handler."""

    path: str
    method: Optional[str]
    handler: Handler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered list of routes, matched first to last.

        router = Router()
        router.add_route("/ws", websocket, "GET")
        router.add_route("/*path", dispatcher)     # any method
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None
    ) -> Route:
        """
        Register a handler for a path pattern.

        Args:
            path: Pattern, e.g. ``/upload`` or ``/*path``.
            handler: Callable taking an HTTPRequest, returning an HTTPResponse.
            method: Method filter; None accepts every method.

        Returns:
            The new Route.
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern into an anchored regex.

            "/files/:name"  →  ^/files/(?P<name>[^/]+)$
            "/*path"        →  ^/(?P<path>.*)$

        Returns:
            (compiled regex, parameter names in order)
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")

            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break  # wildcard eats the rest

            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # root pattern "/"

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        # "/a/b/" and "a/b" both match "/a/b"
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        First route whose method filter and pattern both accept the request.

        Returns:
            RouteMatch with the captured parameters, or None.
        """
        path = self._normalize(path)
        method = method.upper()

        for route in self._routes:
            if route.method and route.method != method:
                continue

            if route._pattern:
                match = route._pattern.match(path)
                if match:
                    return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods some route would accept for this path (for the Allow header)."""
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern and route._pattern.match(path):
                if route.method is None:
                    return list(ALL_METHODS)
                methods.add(route.method)

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request.

        Sets ``request.path_params`` and calls the matched handler. Without
        a match the answer is 405 when another method would have matched,
        404 otherwise.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found()

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """Registered routes in match order."""
        return list(self._routes)

    def describe(self) -> List[str]:
        """``["GET      /ws", "ANY      /upload", ...]`` for the startup log."""
        return [f"{route.method or 'ANY':8} {route.path}" for route in self._routes]
