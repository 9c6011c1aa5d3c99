"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

A middleware sees every request on its way to the router and every
response on its way back out. The pipeline nests them like an onion, first
added outermost:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Request ──────────────────────────────────────────────►           │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────────────────────┐      │
    │   │ Logging  │───►│   CORS   │───►│ router.handle            │      │
    │   └────┬─────┘    └────┬─────┘    │   /ws, /upload, /*path   │      │
    │        │               │          └────────────┬─────────────┘      │
    │   [before]        [before]                     │                    │
    │   start timer,    OPTIONS? answer              │                    │
    │   request id      204 right here               │                    │
    │                                                │                    │
    │   [after]         [after]                      │                    │
    │   access log      add Access-Control-*         │                    │
    │   line            unless already set    ◄──────┘                    │
    │                                                                      │
    │   ◄────────────────────────────────────────────────── Response      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                started = time.perf_counter()
                response = next(request)
                response.set_header("X-Elapsed", f"{time.perf_counter() - started:.3f}")
                return response

    Returning without calling ``next`` short-circuits the chain.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Args:
            request: The incoming request.
            next: The rest of the chain.

        Returns:
            The response, from ``next`` or produced here.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware list that wraps a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware()).add(CORSMiddleware(CORSConfig(origin=...)))
        handler = pipeline.wrap(router.handle)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware; the first one added runs outermost."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around ``handler``.

        [A, B, C] wraps to A(B(C(handler))), hence the reversed walk.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
