"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

One access-log line per request on the ``devserver.access`` logger, with
timing and a short request id that is also returned as X-Request-ID.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, Apache-like):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "GET /app.js" 200 391    │
    │     gzip 1.84ms                                                     │
    │ ───────────────────────────────────────────────────────────────────│
    │ IP          Timestamp          Method/Path  Status Size Enc Duration│
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/app.js",      │
    │  "query": "", "client_ip": "127.0.0.1", "user_agent": "...",        │
    │  "status_code": 200, "content_length": 391,                         │
    │  "content_encoding": "gzip", "duration_ms": 1.84,                   │
    │  "timestamp": "18/Oct/2026:10:55:36 +0000"}                         │
    └─────────────────────────────────────────────────────────────────────┘

Size is the number of body bytes sent, so a gzip or range response logs
its compressed or sliced size. 5xx lines go out at ERROR, everything else
at the configured level. Turn the access log down without touching the
rest of the logging with:

    logging.getLogger("devserver.access").setLevel(logging.WARNING)

=============================================================================
"""

import time
import json
import uuid
import logging
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("devserver.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    content_encoding: str
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.content_encoding or "-"} '
            f'{self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging; add it first so it times and logs everything,
    preflights answered by the CORS middleware included.

        pipeline.add(LoggingMiddleware(log_format=config.log_format))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to responses.
            log_level: Level for non-5xx lines.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        query = "&".join(
            f"{name}={value}"
            for name, values in request.query_params.items()
            for value in values
        )

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=query,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            content_encoding=response.headers.get("Content-Encoding", ""),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.ERROR if response.status >= 500 else self.log_level
        if self.log_format == "json":
            logger.log(level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(level, log_entry.to_text())

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        return response
