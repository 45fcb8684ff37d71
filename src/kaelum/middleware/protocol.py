"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> Response: ...

No base class required. The router checks the shape, not the lineage.

``next`` may be called without arguments to continue with the same
request, or with a different ``Request`` to pass that one on.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

from kaelum.http.request import Request
from kaelum.http.response import Response

# The rest of the pipeline after this middleware
Next: TypeAlias = Callable[..., Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for kaelum middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = await next(request)
            elapsed = time.monotonic() - start
            return response.with_header("X-Time", f"{elapsed:.3f}")

        # Class middleware
        class RateLimiter:
            async def __call__(self, request: Request, next: Next) -> Response:
                ...
    """

    async def __call__(self, request: Request, next: Next) -> Response: ...
