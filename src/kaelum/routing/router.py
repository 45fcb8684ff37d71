"""Layered request router.

The router is an ordered tuple of layers: middleware mounted globally or
at a path prefix, routes bound to an exact path and method set, and
error-channel handlers. A request walks the layers in install order;
each middleware and each route chain element decides whether to hand
off through ``next``.

Removal assigns a new tuple, so a dispatch in progress keeps walking the
snapshot it started with.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from kaelum._internal.invoke import invoke
from kaelum.errors import ConfigurationError, MethodNotAllowed, NotFound
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.routing.handlers import BoundHandler, describe, normalize_chain
from kaelum.routing.layer import ANY_METHOD, Layer, LayerKind
from kaelum.routing.pattern import PathPattern
from kaelum.server.errors import call_error_handler
from kaelum.server.negotiation import negotiate
from kaelum.templating.integration import check_engine, create_environment, render_template
from kaelum.templating.returns import Template

if TYPE_CHECKING:
    from kida import Environment

logger = logging.getLogger("kaelum.server")

# Settings that invalidate the cached view environment.
_VIEW_SETTINGS = frozenset({"view engine", "views"})


class Router:
    """Ordered request pipeline.

    Usage::

        router = Router()
        router.use(timing)
        router.use(auth, "/admin")
        router.route("GET", "/users/{id:int}", show_user)
        router.use_error(render_error)
        response = await router.dispatch(request)
    """

    __slots__ = ("_layers", "_settings", "_template_env")

    def __init__(self) -> None:
        self._layers: tuple[Layer, ...] = ()
        self._settings: dict[str, Any] = {}
        self._template_env: Environment | None = None

    # -- Layer list --

    @property
    def layers(self) -> tuple[Layer, ...]:
        """Snapshot of the pipeline in install order."""
        return self._layers

    def replace_layers(self, layers: Iterable[Layer]) -> None:
        self._layers = tuple(layers)

    def attach(self, layers: Iterable[Layer]) -> None:
        """Append prepared layers to the end of the pipeline."""
        self._layers = (*self._layers, *layers)

    def remove_layers(self, layers: Iterable[Layer]) -> int:
        """Drop these exact layer objects. Returns how many were removed."""
        doomed = {id(layer) for layer in layers}
        kept = tuple(layer for layer in self._layers if id(layer) not in doomed)
        removed = len(self._layers) - len(kept)
        if removed:
            self._layers = kept
        return removed

    def find_routes(self, path: str, method: str | None = None) -> tuple[Layer, ...]:
        """Route layers registered for exactly *path* (and *method*)."""
        wanted = method.upper() if method else None
        return tuple(
            layer
            for layer in self._layers
            if layer.is_route
            and layer.path == path
            and (wanted is None or wanted in layer.methods)
        )

    # -- Registration --

    def prepare_use(self, handler: Callable[..., Any], path: str | None = None) -> Layer:
        """Build a middleware layer without attaching it."""
        if not callable(handler):
            msg = f"Middleware must be callable, got {type(handler).__name__}."
            raise ConfigurationError(msg)
        pattern = None
        if path is not None and path != "/":
            pattern = PathPattern.compile(path, prefix=True)
        return Layer(
            handle=handler,
            kind=LayerKind.MIDDLEWARE,
            path=path,
            chain=(handler,),
            pattern=pattern,
        )

    def prepare_route(self, method: str, path: str, handlers: object) -> Layer:
        """Validate and compile a route layer without attaching it."""
        if not isinstance(method, str) or not method:
            msg = f"Route method must be a non-empty string, got {method!r}."
            raise ConfigurationError(msg)
        token = method.upper()
        where = f"{token} {path}"
        if not isinstance(path, str):
            msg = f"Route path for {token} must be a string, got {type(path).__name__}."
            raise ConfigurationError(msg)
        chain = normalize_chain(handlers, where)
        pattern = PathPattern.compile(path)
        bound = tuple(
            BoundHandler(fn, where, pattern.param_names, pattern.param_types) for fn in chain
        )
        return Layer(
            handle=chain[-1],
            kind=LayerKind.ROUTE,
            path=path,
            methods=frozenset({token}),
            chain=chain,
            pattern=pattern,
            bound=bound,
        )

    def prepare_error(self, handler: Callable[..., Any]) -> Layer:
        if not callable(handler):
            msg = f"Error handler must be callable, got {type(handler).__name__}."
            raise ConfigurationError(msg)
        return Layer(handle=handler, kind=LayerKind.ERROR, chain=(handler,))

    def use(self, handler: Callable[..., Any], path: str | None = None) -> Layer:
        """Attach middleware globally, or under the mount *path*."""
        layer = self.prepare_use(handler, path)
        self.attach((layer,))
        return layer

    def use_error(self, handler: Callable[..., Any]) -> Layer:
        """Attach an error-channel handler: ``handler(request, exc)``."""
        layer = self.prepare_error(handler)
        self.attach((layer,))
        return layer

    def route(self, method: str, path: str, handlers: object) -> Layer:
        """Register a handler or handler chain for *method* at *path*."""
        layer = self.prepare_route(method, path, handlers)
        self.attach((layer,))
        return layer

    def get(self, path: str, handlers: object) -> Layer:
        return self.route("GET", path, handlers)

    def post(self, path: str, handlers: object) -> Layer:
        return self.route("POST", path, handlers)

    def put(self, path: str, handlers: object) -> Layer:
        return self.route("PUT", path, handlers)

    def delete(self, path: str, handlers: object) -> Layer:
        return self.route("DELETE", path, handlers)

    def patch(self, path: str, handlers: object) -> Layer:
        return self.route("PATCH", path, handlers)

    def all(self, path: str, handlers: object) -> Layer:
        return self.route(ANY_METHOD, path, handlers)

    # -- Settings --

    @property
    def settings(self) -> Mapping[str, Any]:
        return MappingProxyType(self._settings)

    def set(self, name: str, value: Any) -> None:
        self._settings[name] = value
        if name in _VIEW_SETTINGS:
            self._template_env = None

    def setting(self, name: str, default: Any = None) -> Any:
        return self._settings.get(name, default)

    # -- Responses --

    def render_template(self, tpl: Template) -> str:
        """Render *tpl* with the configured view engine."""
        check_engine(self.setting("view engine"))
        if self._template_env is None:
            views = self.setting("views")
            if views is None:
                msg = "Template rendering requires the 'views' setting."
                raise ConfigurationError(msg)
            self._template_env = create_environment(
                views, auto_reload=bool(self.setting("debug"))
            )
        return render_template(self._template_env, tpl)

    def negotiate(self, value: Any) -> Response:
        return negotiate(value, render=self.render_template)

    # -- Dispatch --

    async def dispatch(self, request: Request) -> Response:
        """Walk the pipeline for *request* and return its response.

        Raises whatever the error channel leaves unhandled, including
        ``NotFound`` and ``MethodNotAllowed``.
        """
        return await _Dispatch(self, self._layers).start(request)

    async def handle_error(self, request: Request, exc: BaseException) -> Response | None:
        """Offer *exc* to the error layers in install order.

        A handler returning ``None`` passes the error on. A handler that
        raises replaces the error for the remaining handlers. Returns
        ``None`` when nobody handled the original error; raises the
        replacement when nobody handled that.
        """
        current = exc
        for layer in self._layers:
            if layer.kind is not LayerKind.ERROR:
                continue
            try:
                result = await call_error_handler(layer.handle, request, current)
            except Exception as raised:
                logger.debug("Error handler %s raised %r", describe(layer.handle), raised)
                current = raised
                continue
            if result is not None:
                return self.negotiate(result)
        if current is not exc:
            raise current
        return None


class _Dispatch:
    """State for one request's walk over a layer snapshot."""

    __slots__ = ("_allowed", "_layers", "_routed", "_router")

    def __init__(self, router: Router, layers: tuple[Layer, ...]) -> None:
        self._router = router
        self._layers = layers
        self._allowed: set[str] = set()
        # Exceptions already offered to the error channel, by id.
        self._routed: set[int] = set()

    async def start(self, request: Request) -> Response:
        try:
            return await self._walk(0, request)
        except Exception as exc:
            if id(exc) in self._routed:
                raise
            return await self._fail(request, exc)

    async def _walk(self, index: int, request: Request) -> Response:
        layers = self._layers
        while index < len(layers):
            layer = layers[index]
            index += 1
            if layer.kind is LayerKind.ERROR:
                continue
            params = layer.match_path(request.path)
            if params is None:
                continue
            if layer.is_route:
                if not layer.accepts_method(request.method):
                    self._allowed.update(layer.methods)
                    continue
                return await self._call_chain(layer, 0, request.with_path_params(params), index)
            return await self._call_middleware(layer, request, index)

        if self._allowed:
            raise MethodNotAllowed(frozenset(self._allowed))
        raise NotFound(f"No route matches {request.method} {request.path!r}")

    async def _call_middleware(self, layer: Layer, request: Request, resume: int) -> Response:
        async def next(req: Request | None = None) -> Response:
            return await self._walk(resume, req or request)

        try:
            result = await invoke(layer.handle, request, next)
        except Exception as exc:
            if id(exc) in self._routed:
                raise
            return await self._fail(request, exc)
        return self._router.negotiate(result)

    async def _call_chain(
        self,
        layer: Layer,
        position: int,
        request: Request,
        resume: int,
    ) -> Response:
        async def next(req: Request | None = None) -> Response:
            req = req or request
            if position + 1 < len(layer.bound):
                return await self._call_chain(layer, position + 1, req, resume)
            return await self._walk(resume, req)

        try:
            result = await layer.bound[position](request, next)
        except Exception as exc:
            if id(exc) in self._routed:
                raise
            return await self._fail(request, exc)
        return self._router.negotiate(result)

    async def _fail(self, request: Request, exc: Exception) -> Response:
        self._routed.add(id(exc))
        try:
            response = await self._router.handle_error(request, exc)
        except Exception as replacement:
            self._routed.add(id(replacement))
            raise
        if response is None:
            raise exc
        return response
