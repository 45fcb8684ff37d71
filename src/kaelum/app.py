"""Kaelum App: the ASGI application and its configuration surface.

An ``App`` owns one ``Router`` (the live request pipeline) and one
``MiddlewareRegistry`` (what was installed for which feature). Every
method here mutates the pipeline in place, synchronously, and may be
called again at any time to replace or remove what an earlier call set
up.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from kaelum._internal.asgi import Receive, Scope, Send
from kaelum._internal.types import Handler
from kaelum.config import AppConfig, coerce_port
from kaelum.configure import BODY_PARSER, ERROR_HANDLER, STATIC, apply_config
from kaelum.endpoints.health import HealthEndpoint, register_health
from kaelum.endpoints.redirect import register_redirects
from kaelum.errors import ConfigurationError
from kaelum.registry import MiddlewareRegistry, RegistryEntry
from kaelum.routing.compose import compose
from kaelum.routing.layer import Layer
from kaelum.routing.resource import compose_resource
from kaelum.routing.router import Router
from kaelum.server.handler import handle_request

logger = logging.getLogger("kaelum.server")

# Registry key prefix for middleware installed through set_middleware()
USER_MIDDLEWARE = "middleware:"


class App:
    """The kaelum application.

    Usage::

        app = create_app()

        app.add_route("/users", {
            "get": list_users,
            "post": create_user,
            "/{id}": {"get": show_user},
        })
        app.api_route("posts", {"crud": True})
        app.set_config(cors=True, logs="tiny", port=8080)
        app.start()

    Thread safety:
        Configuration calls are synchronous and unlocked; serialize them
        if they are made after traffic starts. A request already in
        flight keeps the pipeline snapshot it started with.
    """

    __slots__ = ("_middleware_seq", "_options", "config", "registry", "router")

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        if self.config.load_dotenv:
            load_dotenv(Path.cwd() / ".env", override=False)
        self.router: Router = Router()
        self.registry: MiddlewareRegistry = MiddlewareRegistry()
        self._options: dict[str, Any] = {}
        self._middleware_seq = 0
        self.router.set("debug", self.config.debug)

    # -- Routes --

    def add_route(self, path: str, spec: object) -> list[Layer]:
        """Register a handler, chain, or nested route mapping at *path*."""
        return compose(self.router, path, spec)

    def api_route(self, resource: str, spec: object = True) -> list[Layer]:
        """Register conventional resource routes (see ``compose_resource``)."""
        return compose_resource(self.router, resource, spec)

    def route(
        self,
        path: str,
        *,
        methods: Iterable[str] | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern. Use ``{param}`` or ``:param`` for path
                parameters.
            methods: HTTP methods. Defaults to ``["GET"]``.
        """

        def decorator(func: Handler) -> Handler:
            for method in methods or ("GET",):
                self.router.route(method, path, func)
            return func

        return decorator

    # -- Middleware --

    def set_middleware(
        self,
        middleware: Callable[..., Any] | Iterable[Callable[..., Any]],
        path: str | None = None,
    ) -> list[RegistryEntry]:
        """Install user middleware globally or mounted at *path*.

        Each middleware gets its own registry entry, so
        ``remove_middleware()`` can take it out again later.
        """
        if path is not None and not isinstance(path, str):
            msg = f"Middleware mount path must be a string, got {type(path).__name__}."
            raise ConfigurationError(msg)
        if callable(middleware):
            group: tuple[Callable[..., Any], ...] = (middleware,)
        elif isinstance(middleware, (list, tuple)):
            group = tuple(middleware)
        else:
            msg = "Middleware must be a callable or a list of callables."
            raise ConfigurationError(msg)
        if not group:
            msg = "No middleware given."
            raise ConfigurationError(msg)
        for handler in group:
            if not callable(handler):
                msg = f"All middleware must be callable, got {type(handler).__name__}."
                raise ConfigurationError(msg)
        # Validates the mount path before anything is installed.
        self.router.prepare_use(group[0], path)

        entries = []
        for handler in group:
            self._middleware_seq += 1
            key = f"{USER_MIDDLEWARE}{self._middleware_seq}"
            entries.append(self.registry.install(self.router, key, handler, path))
        return entries

    def remove_middleware(self, path: str | None = None) -> list[str]:
        """Remove middleware installed by ``set_middleware``.

        With *path*, only the middleware mounted there. Returns the
        removed registry keys.
        """
        keys = [
            key
            for key in self.registry.keys_with_prefix(USER_MIDDLEWARE)
            if path is None or self.registry.get(key).mount_path == path
        ]
        for key in keys:
            self.registry.remove(self.router, key)
        return keys

    def use_error_handler(self, **options: Any) -> dict[str, Any]:
        """Install the JSON/HTML error handler (see ``error_handler``)."""
        return self.set_config({ERROR_HANDLER: options or True})

    # -- Configuration --

    def set_config(self, options: Mapping[str, Any] | None = None, **kwargs: Any) -> dict[str, Any]:
        """Merge options into the config snapshot and apply them.

        Returns a copy of the merged snapshot::

            app.set_config({"bodyParser": False}, cors=True)
        """
        if options is not None and not isinstance(options, Mapping):
            msg = f"Options must be a mapping, got {type(options).__name__}."
            raise ConfigurationError(msg)
        merged: dict[str, Any] = dict(options or {})
        merged.update(kwargs)
        return apply_config(self, merged)

    def get_config(self) -> dict[str, Any]:
        """Copy of the current config snapshot."""
        return dict(self._options)

    def static(self, directory: str | Path | None = None) -> Any:
        """Serve static files from *directory*; without it, return the
        directory currently configured (or ``None``).
        """
        if directory is None:
            return self._options.get(STATIC) or None
        return self.set_config({STATIC: directory})

    def remove_static(self) -> dict[str, Any]:
        return self.set_config({STATIC: False})

    # -- Generated endpoints --

    def health_check(
        self,
        options: Mapping[str, Any] | str | None = None,
        **kwargs: Any,
    ) -> HealthEndpoint | None:
        """Register a health endpoint (default ``GET /health``)."""
        if kwargs:
            base = {"path": options} if isinstance(options, str) else dict(options or {})
            options = {**base, **kwargs}
        return register_health(self.router, self.registry, options)

    def redirect(
        self,
        source: object,
        target: object = None,
        status: object = None,
    ) -> list[RegistryEntry]:
        """Register one or more redirects (see ``register_redirects``)."""
        return register_redirects(self.router, self.registry, source, target, status)

    # -- Serving --

    def start(self, port: int | str | None = None, host: str | None = None) -> None:
        """Serve the app with pounce.

        The port is resolved from the argument, then the ``port`` option,
        then ``AppConfig.port``.
        """
        from kaelum.server.dev import run_server

        resolved = coerce_port(port)
        if resolved is None:
            resolved = self._options.get("port")
        if resolved is None:
            resolved = self.config.port
        bind = host or self.config.host
        logger.info("Kaelum server running on http://%s:%d", bind, resolved)
        run_server(self, bind, resolved, reload=self.config.debug)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return
        await handle_request(
            scope,
            receive,
            send,
            router=self.router,
            debug=self.config.debug or self.config.expose_errors,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return


def create_app(config: AppConfig | None = None) -> App:
    """Create an App with the default pipeline.

    - static files from ``AppConfig.static_dir`` (``./public``)
    - JSON and form body parsing
    - the ``"view engine"`` and ``"views"`` settings
    """
    app = App(config)
    cfg = app.config
    app.router.set("view engine", cfg.view_engine)
    app.router.set("views", str(Path(cfg.views_dir).resolve()))

    defaults: dict[str, Any] = {}
    if cfg.static_dir:
        defaults[STATIC] = cfg.static_dir
    defaults[BODY_PARSER] = True
    app.set_config(defaults)
    return app
