"""
Unit tests for URL router.
"""

import pytest

from devserver.http.router import Router, Route, RouteMatch
from devserver.http.request import HTTPRequest
from devserver.http.response import HTTPResponse, ResponseBuilder, HTTPStatus


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ResponseBuilder().json({"path": request.path}).build()


def named_handler(name: str):
    def handler(request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().text(name).build()
    return handler


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        router = Router()
        route = router.add_route("/upload", dummy_handler, method="post")

        assert isinstance(route, Route)
        assert router.routes() == [route]
        assert route.path == "/upload"
        assert route.method == "POST"

    def test_any_method_route(self):
        router = Router()
        router.add_route("/upload", dummy_handler)

        for method in ("GET", "POST", "PUT", "OPTIONS"):
            assert router.match(method, "/upload") is not None

    def test_match_static_path(self):
        router = Router()
        router.add_route("/ws", dummy_handler, method="GET")
        router.add_route("/upload", dummy_handler)

        match = router.match("GET", "/ws")
        assert isinstance(match, RouteMatch)
        assert match.route.path == "/ws"

        match = router.match("POST", "/upload")
        assert match is not None
        assert match.route.path == "/upload"

    def test_match_dynamic_params(self):
        router = Router()
        router.add_route("/files/:name", dummy_handler, method="GET")

        match = router.match("GET", "/files/notes.txt")
        assert match is not None
        assert match.params == {"name": "notes.txt"}

        assert router.match("GET", "/files/a/b") is None

    def test_match_wildcard(self):
        router = Router()
        router.add_route("/*path", dummy_handler)

        match = router.match("GET", "/css/site.css")
        assert match is not None
        assert match.params == {"path": "css/site.css"}

    def test_wildcard_matches_root(self):
        router = Router()
        router.add_route("/*path", dummy_handler)

        match = router.match("GET", "/")
        assert match is not None
        assert match.params == {"path": ""}

    def test_root_pattern(self):
        router = Router()
        router.add_route("/", dummy_handler, method="GET")

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/index.html") is None

    def test_trailing_slash_normalized(self):
        router = Router()
        router.add_route("/upload", dummy_handler)

        assert router.match("POST", "/upload/") is not None

    def test_first_match_wins(self):
        """The dev-server table: specific routes before the catch-all."""
        router = Router()
        router.add_route("/ws", named_handler("ws"), method="GET")
        router.add_route("/upload", named_handler("upload"))
        router.add_route("/*path", named_handler("dispatch"))

        assert router.handle(make_request("GET", "/ws")).body == b"ws"
        assert router.handle(make_request("POST", "/upload")).body == b"upload"
        assert router.handle(make_request("GET", "/app.js")).body == b"dispatch"
        # /ws only takes GET, so a POST falls through
        assert router.handle(make_request("POST", "/ws")).body == b"dispatch"

    def test_no_match(self):
        router = Router()
        router.add_route("/ws", dummy_handler, method="GET")

        assert router.match("GET", "/posts") is None
        assert router.match("POST", "/ws") is None

    def test_get_allowed_methods(self):
        router = Router()
        router.add_route("/items", dummy_handler, method="GET")
        router.add_route("/items", dummy_handler, method="POST")
        router.add_route("/items", dummy_handler, method="DELETE")

        assert set(router.get_allowed_methods("/items")) == {"DELETE", "GET", "POST"}

    def test_handle_not_found(self):
        router = Router()
        router.add_route("/ws", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/posts"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"404 Not Found"

    def test_handle_method_not_allowed(self):
        router = Router()
        router.add_route("/ws", dummy_handler, method="GET")

        response = router.handle(make_request("POST", "/ws"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET"

    def test_path_params_in_request(self):
        router = Router()
        captured_params = {}

        def get_file(request):
            captured_params.update(request.path_params)
            return ResponseBuilder().json(request.path_params).build()

        router.add_route("/files/:name", get_file, "GET")

        router.handle(make_request("GET", "/files/a.txt"))

        assert captured_params == {"name": "a.txt"}


class TestRouterIntrospection:

    def test_routes_in_match_order(self):
        router = Router()
        router.add_route("/upload", dummy_handler, "POST")
        router.add_route("/*path", dummy_handler)

        assert [(r.path, r.method) for r in router.routes()] == [("/upload", "POST"), ("/*path", None)]

    def test_describe(self):
        router = Router()
        router.add_route("/ws", dummy_handler, method="GET")
        router.add_route("/*path", dummy_handler)

        lines = router.describe()
        assert lines[0].split() == ["GET", "/ws"]
        assert lines[1].split() == ["ANY", "/*path"]
