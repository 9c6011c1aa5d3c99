"""
=============================================================================
MIDDLEWARE
=============================================================================

Request/response wrappers run around the router, in the order added:

    LoggingMiddleware   access log line, X-Request-ID
    CORSMiddleware      fixed-origin Access-Control-* headers, 204 preflights

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware
from .cors import CORSMiddleware, CORSConfig

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "CORSMiddleware",
    "CORSConfig",
]
