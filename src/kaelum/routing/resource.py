"""Resource routes: conventional collection and member endpoints.

``compose_resource(router, "users", {"crud": True})`` registers::

    GET    /users        list
    POST   /users        create
    GET    /users/{id}   show
    PUT    /users/{id}   update
    DELETE /users/{id}   remove

Actions that were not supplied answer 501 with a JSON body naming the
action and the resource.
"""

from collections.abc import Mapping
from typing import Any

from kaelum.errors import ConfigurationError
from kaelum.http.response import Response
from kaelum.routing.compose import PlannedRoute, check_router, plan_routes, register_plan
from kaelum.routing.layer import Layer
from kaelum.routing.paths import join_path, normalize_resource
from kaelum.routing.pattern import parse_path

MEMBER_PATH = "/{id}"

# action -> (method, on the member path)
CRUD_ACTIONS: dict[str, tuple[str, bool]] = {
    "list": ("GET", False),
    "create": ("POST", False),
    "show": ("GET", True),
    "update": ("PUT", True),
    "remove": ("DELETE", True),
}


class NotImplementedAction:
    """Placeholder for a CRUD action with no handler."""

    __slots__ = ("action", "resource")

    def __init__(self, action: str, resource: str) -> None:
        self.action = action
        self.resource = resource

    def __call__(self, request: Any) -> Response:
        return Response.json(
            {
                "error": "Not Implemented",
                "action": self.action,
                "resource": self.resource,
            },
            status=501,
        )

    def __repr__(self) -> str:
        return f"NotImplementedAction({self.action!r}, {self.resource!r})"


def compose_resource(router: Any, resource: object, spec: object) -> list[Layer]:
    """Register the routes for *resource* described by *spec*.

    *spec* may be a handler or chain (GET on the collection), ``True`` or
    a mapping with a ``"crud"`` key (conventional actions, merged with any
    other keys of the mapping), or a plain route mapping.
    """
    check_router(router)
    path = normalize_resource(resource)
    if spec is True:
        spec = {"crud": True}
    if isinstance(spec, Mapping) and "crud" in spec:
        plan = _plan_crud(path, spec)
    else:
        plan = plan_routes(path, spec)
    return register_plan(router, plan)


def _plan_crud(path: str, spec: Mapping[str, Any]) -> list[PlannedRoute]:
    crud = spec["crud"]
    extra = {key: value for key, value in spec.items() if key != "crud"}
    if crud is False or crud is None:
        return plan_routes(path, extra)

    if crud is True:
        actions: Mapping[str, Any] = {}
    elif isinstance(crud, Mapping):
        actions = crud
    else:
        msg = f"'crud' for {path!r} must be True or a mapping of actions, got {crud!r}."
        raise ConfigurationError(msg)

    unknown = sorted(set(actions) - set(CRUD_ACTIONS))
    if unknown:
        msg = (
            f"Unknown CRUD action(s) {', '.join(map(repr, unknown))} for {path!r}. "
            f"Known actions: {', '.join(CRUD_ACTIONS)}."
        )
        raise ConfigurationError(msg)

    plan: list[PlannedRoute] = []
    member = join_path(path, MEMBER_PATH)
    for action, (method, on_member) in CRUD_ACTIONS.items():
        handler = actions.get(action) or NotImplementedAction(action, path)
        target = member if on_member else path
        plan.extend(plan_routes(target, {method: handler}))

    taken = {_route_key(item) for item in plan}
    for item in plan_routes(path, extra):
        if _route_key(item) in taken:
            msg = (
                f"{item.method} {item.path} is already a CRUD action for {path!r}. "
                "Supply it through 'crud' instead."
            )
            raise ConfigurationError(msg)
        plan.append(item)
    return plan


def _route_key(item: PlannedRoute) -> tuple[str, tuple[str, ...]]:
    # "/users/{id}" and "/users/:id" are the same route
    shape = tuple("*" if seg.is_param else seg.value for seg in parse_path(item.path))
    return item.method, shape

