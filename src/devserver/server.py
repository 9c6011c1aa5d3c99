"""
=============================================================================
DEV SERVER
=============================================================================

HTTPServer ties the pieces together: SocketServer accepts, ThreadPool
runs one connection per worker, RequestParser turns bytes into requests,
the middleware pipeline wraps the router, and the response goes back out.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept ──► ThreadPool.submit ──► worker: _process_connection       │
    │                 │ queue full                  │                      │
    │                 ▼                             ▼                      │
    │               503                     read_request()                 │
    │                                        │ too large → 413             │
    │                                        │ timeout   → 408             │
    │                                        ▼                             │
    │                                     parse ──► HTTPParseError         │
    │                                        │      → 400/405/413/505      │
    │                                        ▼                             │
    │              Logging ─► CORS ─► router: /ws  /upload  /*path         │
    │                                        │ handler raised → 500        │
    │                                        ▼                             │
    │                                     send                             │
    │                                        │                             │
    │                 101 with upgrade hook? ├──► hook(conn), then close   │
    │                 keep-alive?            ├──► next request             │
    │                 otherwise              └──► close                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A WebSocket session keeps its worker until the socket closes, so the pool
size caps the number of open /ws connections plus in-flight requests.

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router,
)
from .middleware import (
    MiddlewarePipeline, Middleware,
    LoggingMiddleware, CORSMiddleware, CORSConfig,
)
from .handlers import (
    FileResponder, ETagCache,
    RequestDispatcher, UploadHandler, WebSocketHandler,
)


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


class HTTPServer:
    """
    Threaded HTTP/1.1 server with a middleware pipeline and a router.

        server = HTTPServer(ServerConfig(port=4221))
        server.use(LoggingMiddleware())

        def echo(request):
            return ok(request.body)

        server.router.add_route("/echo", echo, "POST")

        server.run()

    create_app() returns one with the dev-server middleware and routes
    already registered.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration; validated here, so a bad value
                fails before anything is bound.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._router = Router()
        self._middleware = MiddlewarePipeline()

        # middleware.wrap(router.handle), built in run()
        self._handler: Optional[Handler] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self):
        """(host, port) actually bound; useful with port 0."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, setup_logging: bool = True):
        """
        Serve until shutdown() or SIGINT/SIGTERM. Blocks.

        Args:
            setup_logging: Configure the root logger from the config. Tests
                pass False and leave logging to pytest.

        Raises:
            OSError: The address could not be bound.
        """
        if setup_logging:
            self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True
        self._thread_pool.start()

        for line in self._router.describe():
            logger.debug(f"Route: {line}")
        logger.info(
            f"Serving {self.config.root_dir} on {self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting; run() returns once in-flight work has drained."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("devserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        # open WebSocket sessions never drain; don't wait on them for long
        self._thread_pool.shutdown(wait=True, timeout=5.0)

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool; 503 if the queue is full."""
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=True,
                queue_timeout=self.config.timeout,
                label=conn.id,
            )
        except RuntimeError as e:
            logger.warning(f"[{conn.id}] Rejecting connection: {e}")
            submitted = False

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request too large")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                response = self._dispatch(conn, request)

                keep_alive = (
                    request.is_keep_alive
                    and self.config.keep_alive
                    and response.headers.get("Connection", "").lower() != "close"
                )
                if response.upgrade is None:
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                if not conn.send(response.to_bytes(self.config.server_name)):
                    break

                if response.upgrade is not None:
                    conn.upgrade()
                    response.upgrade(conn)
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return (ResponseBuilder()
                .status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .json({"error": "Internal Server Error"})
                .header("Connection", "close")
                .build())

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Error raised before a handler ran; the connection closes after it."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .header("Connection", "close")
            .build())
        conn.send(response.to_bytes(self.config.server_name))


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    HTTPServer with the dev-server middleware and routes:

        LoggingMiddleware, CORSMiddleware(cors_origin)
        GET /ws        WebSocket echo
        ANY /upload    multipart upload into uploads_dir
        ANY /*path     files from root_dir, method stubs

        app = create_app(ServerConfig(root_dir="site", port=4221))
        app.run()
    """
    server = HTTPServer(config)
    config = server.config

    server.use(LoggingMiddleware(log_format=config.log_format))
    server.use(CORSMiddleware(CORSConfig(origin=config.cors_origin)))

    responder = FileResponder(
        root_dir=config.root_dir,
        index_file=config.index_file,
        cors_origin=config.cors_origin,
        etag_cache=ETagCache() if config.etag_cache else None,
    )

    server.router.add_route(
        config.ws_path,
        WebSocketHandler(max_message_size=config.ws_max_message_size),
        "GET",
    )
    server.router.add_route(
        "/upload",
        UploadHandler(uploads_dir=config.uploads_dir, max_upload_size=config.max_upload_size),
    )
    server.router.add_route("/*path", RequestDispatcher(responder))

    return server
