"""Pipeline layers.

The router keeps an ordered tuple of ``Layer`` objects. A layer never
wraps or copies the handler it was given: ``layer.handle`` is the exact
reference passed to ``Router.use()`` (or the last element of the chain
passed to ``Router.route()``), so callers can find and remove their own
layers by identity.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kaelum.routing.handlers import BoundHandler
from kaelum.routing.pattern import PathPattern

# Method token that matches every HTTP method.
ANY_METHOD = "ALL"


class LayerKind(Enum):
    MIDDLEWARE = "middleware"
    ROUTE = "route"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Layer:
    """One entry in the router's pipeline.

    Attributes:
        handle: The handler reference this layer was created with.
        kind: Middleware (runs for every request under ``path``), route
            (runs for an exact path and method set), or error handler.
        path: Mount path for middleware, route path for routes, ``None``
            for global middleware and error handlers.
        methods: Upper-case method tokens for routes; empty otherwise.
        chain: Every handler of a route in call order (``handle`` is the
            last one). For middleware, ``(handle,)``.
        pattern: Compiled ``path``; ``None`` matches every path.
        bound: Route chain elements with their call plans resolved.
    """

    handle: Callable[..., Any]
    kind: LayerKind
    path: str | None = None
    methods: frozenset[str] = frozenset()
    chain: tuple[Callable[..., Any], ...] = ()
    pattern: PathPattern | None = None
    bound: tuple[BoundHandler, ...] = field(default=(), repr=False, compare=False)

    @property
    def is_route(self) -> bool:
        return self.kind is LayerKind.ROUTE

    def match_path(self, path: str) -> dict[str, str] | None:
        """Params for *path*, or ``None`` if this layer does not apply."""
        if self.pattern is None:
            return {}
        return self.pattern.match(path)

    def accepts_method(self, method: str) -> bool:
        if ANY_METHOD in self.methods or method in self.methods:
            return True
        return method == "HEAD" and "GET" in self.methods
