"""Health endpoint registrar.

Registers a liveness/readiness route answering::

    200 {"status": "OK", "uptime": 12.3, "pid": 4242, "env": "development", "timestamp": ...}

An optional readiness check (sync or async) may return a bool or
``{"ok": bool, "details": ...}``. A failing or raising check answers
503 with ``"status": "FAIL"``.
"""

import inspect
import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from kaelum.errors import ConfigurationError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.registry import MiddlewareRegistry
from kaelum.routing.compose import ROUTE_METHODS
from kaelum.routing.pattern import PathPattern
from kaelum.routing.router import Router

logger = logging.getLogger("kaelum.server")

DEFAULT_PATH = "/health"
INCLUDE_FIELDS = ("uptime", "pid", "env", "timestamp")

# Accepted spellings of option names
_ALIASES = {"readinessCheck": "readiness", "readiness_check": "readiness"}

_STARTED = time.monotonic()

ReadinessCheck: TypeAlias = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class HealthOptions:
    path: str = DEFAULT_PATH
    method: str = "GET"
    replace: bool = False
    readiness: ReadinessCheck | None = None
    include: frozenset[str] = field(default_factory=lambda: frozenset(INCLUDE_FIELDS))

    @property
    def key(self) -> str:
        return f"health:{self.method} {self.path}"

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | str | None) -> "HealthOptions":
        if options is None:
            return cls()
        if isinstance(options, str):
            options = {"path": options}
        options = {_ALIASES.get(key, key): value for key, value in options.items()}
        known = {"path", "method", "replace", "readiness", "include"}
        unknown = sorted(set(options) - known)
        if unknown:
            msg = f"Unknown health option(s): {', '.join(map(repr, unknown))}."
            raise ConfigurationError(msg)

        path = options.get("path") or DEFAULT_PATH
        if not isinstance(path, str):
            msg = f"Health path must be a string, got {type(path).__name__}."
            raise ConfigurationError(msg)
        if not path.startswith("/"):
            path = "/" + path
        PathPattern.compile(path)

        method = str(options.get("method") or "GET").upper()
        if method not in ROUTE_METHODS:
            msg = f"Unsupported health method {method!r}."
            raise ConfigurationError(msg)

        readiness = options.get("readiness")
        if readiness is not None and not callable(readiness):
            msg = "Health readiness check must be callable."
            raise ConfigurationError(msg)

        return cls(
            path=path,
            method=method,
            replace=bool(options.get("replace", False)),
            readiness=readiness,
            include=_include_set(options.get("include")),
        )


def _include_set(include: object) -> frozenset[str]:
    if include is None:
        return frozenset(INCLUDE_FIELDS)
    if isinstance(include, Mapping):
        return frozenset(name for name, wanted in include.items() if wanted)
    if isinstance(include, (list, tuple, set, frozenset)):
        return frozenset(include)
    msg = "Health 'include' must be a mapping of flags or a list of field names."
    raise ConfigurationError(msg)


class HealthEndpoint:
    """The route handler behind a health check."""

    __slots__ = ("options",)

    def __init__(self, options: HealthOptions) -> None:
        self.options = options

    def _payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": "OK"}
        include = self.options.include
        if "uptime" in include:
            payload["uptime"] = round(time.monotonic() - _STARTED, 3)
        if "pid" in include:
            payload["pid"] = os.getpid()
        if "env" in include:
            payload["env"] = os.environ.get("KAELUM_ENV", "development")
        if "timestamp" in include:
            payload["timestamp"] = int(time.time() * 1000)
        return payload

    async def __call__(self, request: Request) -> Response:
        payload = self._payload()
        check = self.options.readiness
        if check is None:
            return Response.json(payload)

        try:
            result = check(request) if _takes_argument(check) else check()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.warning("Readiness check failed: %s", exc)
            payload["status"] = "FAIL"
            payload["details"] = {"message": str(exc) or "readiness check error"}
            return Response.json(payload, status=503)

        ok, details = _readiness(result)
        if ok:
            return Response.json(payload)
        payload["status"] = "FAIL"
        if details is not None:
            payload["details"] = details
        return Response.json(payload, status=503)


def _takes_argument(check: ReadinessCheck) -> bool:
    try:
        return len(inspect.signature(check).parameters) > 0
    except (TypeError, ValueError):
        return False


def _readiness(result: object) -> tuple[bool, Any]:
    if isinstance(result, bool):
        return result, None
    if isinstance(result, Mapping):
        return bool(result.get("ok")), result.get("details")
    # Unrecognized results count as ready.
    return True, None


def register_health(
    router: Router,
    registry: MiddlewareRegistry,
    options: Mapping[str, Any] | str | None = None,
) -> HealthEndpoint | None:
    """Register a health endpoint.

    Returns the handler, or ``None`` when a route already answers at the
    same path and method and ``replace`` is false.
    """
    opts = HealthOptions.from_options(options)
    existing = router.find_routes(opts.path, opts.method)
    if existing and not opts.replace:
        logger.debug("Health route %s %s exists; skipping", opts.method, opts.path)
        return None

    handler = HealthEndpoint(opts)
    if opts.replace:
        router.remove_layers(existing)
    registry.install_route(router, opts.key, opts.method, opts.path, handler)
    return handler
