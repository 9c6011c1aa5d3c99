"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every process-wide setting lives in one ServerConfig that is built once at
startup and passed to whatever needs it: the socket server, the file
responder, the upload handler, the CORS middleware.

=============================================================================
WHERE VALUES COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   highest                                                           │
    │     1. command line        devserver --port 8000 --root ./dist      │
    │     2. environment         DEVSERVER_PORT=8000 devserver            │
    │     3. dataclass defaults  port 4221, root ".", uploads "uploads"   │
    │   lowest                                                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    DEVSERVER_HOST          host                 127.0.0.1
    DEVSERVER_PORT          port                 4221
    DEVSERVER_ROOT          root_dir             .
    DEVSERVER_UPLOADS       uploads_dir          uploads
    DEVSERVER_CORS_ORIGIN   cors_origin          http://127.0.0.1:5500
    DEVSERVER_WORKERS       min_workers, max 2x  4 / 16
    DEVSERVER_TIMEOUT       timeout (seconds)    30
    DEVSERVER_ETAG_CACHE    etag_cache           off  (1/true/yes/on)
    DEVSERVER_LOG_LEVEL     log_level            INFO
    DEVSERVER_LOG_FORMAT    log_format           text

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional, Mapping


MiB = 1024 * 1024

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class ServerConfig:
    """
    Configuration for the dev server.

    =========================================================================
    GROUPS
    =========================================================================

        network     host, port, backlog, buffer_size, timeout
        http        keep_alive, keep_alive_timeout, max_request_size
        threading   min_workers, max_workers
        files       root_dir, index_file, etag_cache
        uploads     uploads_dir, max_upload_size
        cors        cors_origin
        websocket   ws_path, ws_max_message_size
        logging     log_level, log_format
        identity    server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 4221
    """0 lets the OS pick a free port (tests use this)."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Read timeout for a request, in seconds. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0

    max_request_size: int = 32 * MiB
    """Hard cap on headers plus body; larger requests get 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    """Each open WebSocket holds a worker for its whole lifetime."""

    # ─────────────────────────────────────────────────────────────────────
    # FILE SERVING
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "."
    """Directory files are served from. Nothing outside it is served."""

    index_file: str = "index.html"
    """Default document for ``/``."""

    etag_cache: bool = False
    """
    Reuse ETags keyed by (path, mtime_ns, size) instead of hashing the file
    on every request.
    """

    # ─────────────────────────────────────────────────────────────────────
    # UPLOADS
    # ─────────────────────────────────────────────────────────────────────

    uploads_dir: str = "uploads"
    max_upload_size: int = 10 * MiB
    """Multipart bodies above this fail with "Unable to parse form"."""

    # ─────────────────────────────────────────────────────────────────────
    # CORS
    # ─────────────────────────────────────────────────────────────────────

    cors_origin: str = "http://127.0.0.1:5500"
    """
    The one origin allowed to read responses. The default is the address
    of the VS Code Live Server extension, the usual front-end next to this.
    """

    # ─────────────────────────────────────────────────────────────────────
    # WEBSOCKET
    # ─────────────────────────────────────────────────────────────────────

    ws_path: str = "/ws"
    ws_max_message_size: int = 32 * MiB

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """``text`` (Apache-like access lines) or ``json``."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "devserver/1.0"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a config from ``DEVSERVER_*`` variables; unset ones keep the
        dataclass default.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ValueError: A numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        workers = env.get("DEVSERVER_WORKERS")

        return cls(
            host=env.get("DEVSERVER_HOST", defaults.host),
            port=int(env.get("DEVSERVER_PORT", defaults.port)),
            root_dir=env.get("DEVSERVER_ROOT", defaults.root_dir),
            uploads_dir=env.get("DEVSERVER_UPLOADS", defaults.uploads_dir),
            cors_origin=env.get("DEVSERVER_CORS_ORIGIN", defaults.cors_origin),
            min_workers=int(workers) if workers else defaults.min_workers,
            max_workers=int(workers) * 2 if workers else defaults.max_workers,
            timeout=float(env.get("DEVSERVER_TIMEOUT", defaults.timeout)),
            etag_cache=env.get("DEVSERVER_ETAG_CACHE", "").strip().lower() in _TRUE_VALUES,
            log_level=env.get("DEVSERVER_LOG_LEVEL", defaults.log_level),
            log_format=env.get("DEVSERVER_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """
        Fail fast on values the server can't run with.

        Raises:
            ValueError: Describing the first bad value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_upload_size <= 0:
            raise ValueError("max_upload_size must be > 0")

        if self.max_request_size < self.max_upload_size:
            raise ValueError("max_request_size must be >= max_upload_size")

        if not self.index_file or "/" in self.index_file:
            raise ValueError(f"index_file must be a plain file name, got {self.index_file!r}")

        if not self.ws_path.startswith("/"):
            raise ValueError(f"ws_path must start with '/', got {self.ws_path!r}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

        if not os.path.isdir(self.root_dir):
            raise ValueError(f"root_dir is not a directory: {self.root_dir}")
