"""Redirect registrar.

Accepts one redirect, a mapping of old path to new path, or a list of
either::

    register_redirects(router, registry, "/old", "/new")
    register_redirects(router, registry, {"/a": "/b", "/c": "/d"}, status=301)
    register_redirects(router, registry, [
        ("/old", "/new", 308),
        {"from": "/legacy", "to": "https://example.com"},
    ])

Each redirect is a GET route tracked by the registry under
``redirect:<path>``, so registering a path again replaces its previous
redirect.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from kaelum.errors import ConfigurationError
from kaelum.http.response import Redirect
from kaelum.registry import MiddlewareRegistry, RegistryEntry
from kaelum.routing.pattern import PathPattern
from kaelum.routing.router import Router

DEFAULT_STATUS = 302
MIN_STATUS = 300
MAX_STATUS = 399


def clamp_status(status: object) -> int:
    """Coerce *status* into a 3xx code.

    Anything that is not an integer gives the default; integers outside
    300-399 are clamped to the nearest bound.
    """
    if isinstance(status, bool) or not isinstance(status, int):
        return DEFAULT_STATUS
    return min(max(status, MIN_STATUS), MAX_STATUS)


@dataclass(frozen=True, slots=True)
class RedirectRule:
    source: str
    target: str
    status: int = DEFAULT_STATUS

    @property
    def key(self) -> str:
        return f"redirect:{self.source}"


class RedirectHandler:
    """Route handler answering with a fixed redirect."""

    __slots__ = ("status", "target")

    def __init__(self, target: str, status: int) -> None:
        self.target = target
        self.status = status

    def __call__(self) -> Redirect:
        return Redirect(self.target, status=self.status)

    def __repr__(self) -> str:
        return f"RedirectHandler({self.target!r}, {self.status})"


def _rule(source: object, target: object, status: object) -> RedirectRule:
    if not isinstance(source, str) or not isinstance(target, str):
        msg = (
            "Redirect source and target must be strings, got "
            f"{type(source).__name__} and {type(target).__name__}."
        )
        raise ConfigurationError(msg)
    if not source.startswith("/"):
        source = "/" + source
    PathPattern.compile(source)
    return RedirectRule(source, target, clamp_status(status))


def plan_redirects(
    source: object,
    target: object = None,
    status: object = None,
) -> list[RedirectRule]:
    """Validate every redirect described by the arguments."""
    if isinstance(source, str):
        return [_rule(source, target, status)]
    if isinstance(source, Mapping):
        if "from" in source:
            return [_rule(source["from"], source.get("to"), source.get("status", status))]
        return [_rule(key, value, status) for key, value in source.items()]
    if isinstance(source, (list, tuple)):
        rules: list[RedirectRule] = []
        for item in source:
            if isinstance(item, Mapping):
                rules.extend(plan_redirects(item, status=status))
            elif isinstance(item, (list, tuple)) and len(item) in (2, 3):
                rules.append(_rule(item[0], item[1], item[2] if len(item) == 3 else status))
            else:
                msg = f"Invalid redirect entry {item!r}: expected (from, to[, status]) or a mapping."
                raise ConfigurationError(msg)
        return rules
    msg = f"Invalid redirect spec of type {type(source).__name__}."
    raise ConfigurationError(msg)


def register_redirects(
    router: Router,
    registry: MiddlewareRegistry,
    source: object,
    target: object = None,
    status: object = None,
) -> list[RegistryEntry]:
    """Install the redirects, replacing earlier ones for the same paths."""
    rules = plan_redirects(source, target, status)
    return [
        registry.install_route(
            router, rule.key, "GET", rule.source, RedirectHandler(rule.target, rule.status)
        )
        for rule in rules
    ]
