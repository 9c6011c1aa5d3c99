"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devserver import HTTPServer, ServerConfig, create_app
from devserver.handlers import FileResponder


@pytest.fixture
def sample_get_request() -> bytes:
    """GET for a file with every hint the file responder reads."""
    return (
        b"GET /assets/app.js?v=3 HTTP/1.1\r\n"
        b"Host: 127.0.0.1:4221\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip, deflate, br\r\n"
        b"Range: bytes=0-1023\r\n"
        b"If-None-Match: 9e107d9d372bb6826bd81d3542a419d6\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST with a JSON body."""
    body = b'{"name": "notes.txt", "size": 12}'
    head = (
        b"POST /api/files HTTP/1.1\r\n"
        b"Host: 127.0.0.1:4221\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body)
    return head + body


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """A small site: index.html, a script, a text file and a subdirectory."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text("<h1>hello</h1>\n")
    (root / "app.js").write_text("console.log('hi');\n" * 50)
    (root / "hello.txt").write_bytes(b"0123456789abcdef")
    (root / "docs").mkdir()
    (root / "docs" / "guide.md").write_text("# Guide\n")
    return root


@pytest.fixture
def responder(site_root: Path) -> FileResponder:
    return FileResponder(root_dir=str(site_root), cors_origin="http://127.0.0.1:5500")


@pytest.fixture
def config(site_root: Path, tmp_path: Path) -> ServerConfig:
    """Test server configuration on a free port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        root_dir=str(site_root),
        uploads_dir=str(tmp_path / "uploads"),
        log_level="WARNING",
    )


class TestServer:
    """Runs an HTTPServer in a background thread."""

    __test__ = False  # not a test class

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"setup_logging": False},
            daemon=True
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def connect(self, timeout: float = 5.0) -> socket.socket:
        return socket.create_connection(("127.0.0.1", self.port), timeout=timeout)

    def stop(self):
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """The full dev-server app on a free port."""
    test_srv = TestServer(create_app(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()
