"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SOCKET SERVER                                                       │
    │   listening socket, accept loop, SIGINT/SIGTERM → shutdown          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ one Connection per accepted socket
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ THREAD POOL                                                         │
    │   bounded queue, workers scale from min_workers to max_workers      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ a worker runs the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION                                                          │
    │   buffered request reads, keep-alive timeouts, send, close,         │
    │   raw read_exact() once upgraded to WebSocket                       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
