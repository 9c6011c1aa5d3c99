"""
=============================================================================
DEVSERVER CLI ENTRY POINT
=============================================================================

    # Serve the current directory on http://127.0.0.1:4221
    python -m devserver

    # A build output directory, different port
    devserver --root ./dist --port 8000

    # Front-end served by a bundler on :3000
    devserver --cors-origin http://localhost:3000

    # Skip re-hashing unchanged files for ETags
    devserver --etag-cache

Flags win over DEVSERVER_* environment variables, which win over the
built-in defaults (see devserver.config).

=============================================================================
"""

import argparse
import sys
from dataclasses import replace
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig
from .server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devserver",
        description="Local development HTTP server: files, uploads and a WebSocket echo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  devserver                                  # serve . on 127.0.0.1:4221
  devserver --root ./public --port 8000      # another directory and port
  devserver --cors-origin http://localhost:3000
  devserver --log-format json --log-level DEBUG
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 4221)")

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--root", "-r", help="Directory to serve files from (default: .)")
    parser.add_argument("--uploads", "-u", help="Directory uploads are written to (default: uploads)")
    parser.add_argument(
        "--cors-origin",
        help="Origin sent in Access-Control-Allow-Origin (default: http://127.0.0.1:5500)"
    )
    parser.add_argument(
        "--etag-cache",
        action="store_true",
        default=None,
        help="Cache ETags by file mtime and size instead of hashing on every request"
    )

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Worker threads to start with; the pool grows to twice this (default: 4)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"devserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Overlay the flags that were given on ``base`` (the environment by default)."""
    config = base or ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "root_dir": args.root,
        "uploads_dir": args.uploads,
        "cors_origin": args.cors_origin,
        "etag_cache": args.etag_cache,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2

    return replace(config, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        app = create_app(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"Starting server on port {config.port}...url is http://{config.host}:{config.port}")

    try:
        app.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
