"""Configuration merger.

``apply_config(app, options)`` merges *options* into the app's option
snapshot and, for each recognized option that was explicitly passed,
installs, replaces or removes the matching pipeline feature through the
app's registry::

    app.set_config(cors=True, logs="tiny", static="assets", port="8080")
    app.set_config(logs=False)          # logger removed, everything else kept

Every recognized option is validated and its provider built before any
layer changes, so a rejected call leaves the pipeline untouched. A
provider whose optional dependency is missing raises
``ProviderUnavailable``; that option is skipped with a warning and the
rest still apply.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

from kaelum.config import coerce_port
from kaelum.errors import ConfigurationError, ProviderUnavailable
from kaelum.middleware.body import FormBodyParser, JSONBodyParser
from kaelum.middleware.cors import CORSConfig, CORSMiddleware
from kaelum.middleware.error_handler import error_handler
from kaelum.middleware.request_log import RequestLogger
from kaelum.middleware.security_headers import SecurityHeadersConfig, SecurityHeadersMiddleware
from kaelum.middleware.static import StaticFiles
from kaelum.templating.integration import KIDA_ENGINE, require_kida

if TYPE_CHECKING:
    from kaelum.app import App

logger = logging.getLogger("kaelum.config")

# Registry keys (also the option names)
CORS = "cors"
HELMET = "helmet"
STATIC = "static"
BODY_PARSER = "bodyParser"
LOGS = "logs"
LOGGER_KEY = "logger"
VIEWS = "views"
PORT = "port"
ERROR_HANDLER = "errorHandler"

Action: TypeAlias = Callable[[], None]


def _options_mapping(option: str, value: Any) -> Mapping[str, Any]:
    """``True`` means default options; otherwise *value* must be a mapping."""
    if value is True:
        return {}
    if isinstance(value, Mapping):
        return value
    msg = f"Option {option!r} must be True, False, or a mapping, got {value!r}."
    raise ConfigurationError(msg)


# -- Providers: option value -> handler(s). Tests may swap these out. --


def build_cors(value: Any) -> CORSMiddleware:
    return CORSMiddleware(CORSConfig.from_options(_options_mapping(CORS, value)))


def build_helmet(value: Any) -> SecurityHeadersMiddleware:
    return SecurityHeadersMiddleware(
        SecurityHeadersConfig.from_options(_options_mapping(HELMET, value))
    )


def build_static(directory: str) -> StaticFiles:
    return StaticFiles(directory, prefix="/")


def build_body_parsers(value: Any) -> tuple[JSONBodyParser, FormBodyParser]:
    return (JSONBodyParser(), FormBodyParser())


def build_logger(value: Any) -> RequestLogger:
    if isinstance(value, str):
        return RequestLogger(value)
    if isinstance(value, Mapping):
        return RequestLogger(value.get("format") or "dev")
    return RequestLogger("dev")


def build_error_handler(value: Any) -> Callable[..., Any]:
    return error_handler(**_options_mapping(ERROR_HANDLER, value))


PROVIDERS: dict[str, Callable[[Any], Any]] = {
    CORS: build_cors,
    HELMET: build_helmet,
    STATIC: build_static,
    BODY_PARSER: build_body_parsers,
    LOGS: build_logger,
    ERROR_HANDLER: build_error_handler,
}


# -- Coercion --


def coerce_static(value: object) -> str | None | bool:
    """Resolve a ``static`` option to an absolute directory path."""
    if value is None or value is False:
        return value
    if isinstance(value, (str, Path)) and str(value).strip():
        return str(Path(value).resolve())
    msg = f"Option 'static' must be a directory path or False, got {value!r}."
    raise ConfigurationError(msg)


def coerce_options(options: Mapping[str, Any]) -> dict[str, Any]:
    coerced: dict[str, Any] = {}
    for key, value in options.items():
        if not isinstance(key, str):
            msg = f"Option names must be strings, got {key!r}."
            raise ConfigurationError(msg)
        if key == PORT:
            value = coerce_port(value)
        elif key == STATIC:
            value = coerce_static(value)
        coerced[key] = value
    return coerced


# -- Planning: validate and build, return the side effect to run --


def _plan_toggle(
    app: App,
    option: str,
    key: str,
    value: Any,
    *,
    error_channel: bool = False,
) -> Action:
    registry, router = app.registry, app.router
    if not value:

        def disable() -> None:
            if registry.remove(router, key):
                logger.info("%s disabled", option)

        return disable

    handler = PROVIDERS[option](value)

    def enable() -> None:
        if error_channel:
            registry.install_error_handler(router, key, handler)
        else:
            registry.install(router, key, handler)
        logger.info("%s enabled", option)

    return enable


def _plan_body_parser(app: App, value: Any) -> Action | None:
    registry, router = app.registry, app.router
    if value is False:

        def disable() -> None:
            if registry.remove(router, BODY_PARSER):
                logger.info("bodyParser disabled")

        return disable

    if BODY_PARSER in registry:
        return None
    parsers = PROVIDERS[BODY_PARSER](value)

    def enable() -> None:
        registry.install_many(router, BODY_PARSER, parsers)
        logger.info("bodyParser enabled")

    return enable


def _plan_views(app: App, value: Any) -> Action | None:
    if value is None or value is False:
        return None
    if not isinstance(value, Mapping):
        msg = f"Option 'views' must be a mapping with 'engine' and 'path', got {value!r}."
        raise ConfigurationError(msg)
    router = app.router
    engine = value.get("engine")
    path = value.get("path")
    views = str(Path(path).resolve()) if path else None
    if engine == KIDA_ENGINE:
        require_kida()

    def configure_views() -> None:
        if engine:
            router.set("view engine", engine)
        if views:
            router.set("views", views)

    return configure_views


_PLANNERS: dict[str, Callable[[App, Any], Action | None]] = {
    CORS: lambda app, value: _plan_toggle(app, CORS, CORS, value),
    HELMET: lambda app, value: _plan_toggle(app, HELMET, HELMET, value),
    LOGS: lambda app, value: _plan_toggle(app, LOGS, LOGGER_KEY, value),
    STATIC: lambda app, value: _plan_toggle(app, STATIC, STATIC, value),
    BODY_PARSER: _plan_body_parser,
    VIEWS: _plan_views,
    ERROR_HANDLER: lambda app, value: _plan_toggle(
        app, ERROR_HANDLER, ERROR_HANDLER, value, error_channel=True
    ),
}


def apply_config(app: App, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Merge *options* into the app's snapshot and apply their side effects.

    Returns a copy of the merged snapshot. Options that were not passed
    keep their previous values and cause no side effects. Unknown options
    are stored as given.
    """
    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        msg = f"Options must be a mapping, got {type(options).__name__}."
        raise ConfigurationError(msg)

    coerced = coerce_options(options)

    actions: list[Action] = []
    for key, value in coerced.items():
        planner = _PLANNERS.get(key)
        if planner is None:
            continue
        try:
            action = planner(app, value)
        except ProviderUnavailable as exc:
            logger.warning("Option %r skipped: %s", key, exc)
            continue
        if action is not None:
            actions.append(action)

    for action in actions:
        action()

    merged = {**app._options, **coerced}
    app._options = merged
    return dict(merged)
