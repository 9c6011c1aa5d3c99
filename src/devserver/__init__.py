"""
=============================================================================
DEVSERVER - Local Development HTTP Server
=============================================================================

A small threaded HTTP/1.1 server on raw sockets for front-end work: it
serves a directory with cache validators, byte ranges and gzip, accepts
file uploads, and echoes WebSocket messages.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    devserver/
    ├── __init__.py          # package exports
    ├── __main__.py          # CLI (python -m devserver)
    ├── server.py            # HTTPServer, create_app()
    ├── config.py            # ServerConfig
    ├── core/                # sockets, connections, thread pool
    ├── http/                # request, response, router, multipart
    ├── middleware/          # access logging, CORS
    └── handlers/
        ├── static.py        # FileResponder: ETag, ranges, gzip
        ├── dispatch.py      # catch-all method switch
        ├── upload.py        # /upload
        └── websocket.py     # /ws echo

=============================================================================
QUICK START
=============================================================================

    from devserver import ServerConfig, create_app

    app = create_app(ServerConfig(root_dir="public", port=4221))
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
