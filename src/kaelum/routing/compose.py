"""Route composition from nested specs.

A route spec is a handler, a handler chain, or a mapping whose keys are
method tokens or sub-paths::

    compose(router, "/users", {
        "get": list_users,
        "post": [require_json, create_user],
        "/{id}": {
            "get": show_user,
            "/posts": list_posts,          # GET /users/{id}/posts
        },
    })

The whole spec is planned and validated before anything is registered,
so a bad leaf leaves the router untouched.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from kaelum.errors import ConfigurationError
from kaelum.routing.handlers import Chain, Node, Single, classify, normalize_chain
from kaelum.routing.layer import ANY_METHOD, Layer
from kaelum.routing.paths import join_path

ROUTE_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", ANY_METHOD})


@dataclass(frozen=True, slots=True)
class PlannedRoute:
    """One (method, path, chain) registration produced by planning."""

    method: str
    path: str
    chain: tuple[Callable[..., Any], ...]


def plan_routes(base_path: str, spec: object) -> list[PlannedRoute]:
    """Flatten *spec* under *base_path* into planned registrations.

    Raises ``ConfigurationError`` for unknown keys and invalid handlers.
    Has no side effects.
    """
    planned: list[PlannedRoute] = []
    _plan(base_path, spec, planned)
    return planned


def _plan(path: str, spec: object, out: list[PlannedRoute]) -> None:
    match classify(spec, f"GET {path}"):
        case Single(handler):
            out.append(PlannedRoute("GET", path, (handler,)))
        case Chain(handlers):
            out.append(PlannedRoute("GET", path, handlers))
        case Node(routes):
            for key, value in routes.items():
                if not isinstance(key, str):
                    msg = f"Route key {key!r} under {path!r} must be a string."
                    raise ConfigurationError(msg)
                if key.startswith("/"):
                    _plan(join_path(path, key), value, out)
                    continue
                method = key.upper()
                if method not in ROUTE_METHODS:
                    msg = (
                        f"Unknown route key {key!r} at {path!r}. Use an HTTP method "
                        f"({', '.join(sorted(ROUTE_METHODS))}) or a sub-path starting with '/'."
                    )
                    raise ConfigurationError(msg)
                out.append(PlannedRoute(method, path, normalize_chain(value, f"{method} {path}")))


def check_router(router: object) -> None:
    """Reject objects that cannot take route registrations."""
    for name in ("prepare_route", "attach"):
        if not callable(getattr(router, name, None)):
            msg = (
                f"Invalid router instance: {type(router).__name__} has no "
                f"{name}() method."
            )
            raise ConfigurationError(msg)


def register_plan(router: Any, plan: Sequence[PlannedRoute]) -> list[Layer]:
    """Compile every planned route, then attach them all at once."""
    layers = [router.prepare_route(item.method, item.path, item.chain) for item in plan]
    router.attach(layers)
    return layers


def compose(router: Any, base_path: object, spec: object) -> list[Layer]:
    """Register every leaf of *spec* under *base_path*.

    Returns the attached route layers in registration order.
    """
    check_router(router)
    if not isinstance(base_path, str):
        msg = f"Base path must be a string, got {type(base_path).__name__}."
        raise ConfigurationError(msg)
    return register_plan(router, plan_routes(base_path, spec))
