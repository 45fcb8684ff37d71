"""Handler shapes and signature binding.

Every value a caller can hang off a route is classified once into a
tagged variant:

- ``Single``: one callable
- ``Chain``: an ordered, non-empty sequence of callables
- ``Node``: a mapping of method tokens and sub-paths (route composition)

Route chain elements are then bound to the request by signature, the way
a page handler asks only for what it needs::

    def show(id: int): ...
    async def audit(request, next): ...
"""

import inspect
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from kaelum._internal.invoke import invoke
from kaelum.errors import ConfigurationError
from kaelum.http.request import Request
from kaelum.routing.params import convert_param


@dataclass(frozen=True, slots=True)
class Single:
    handler: Callable[..., Any]


@dataclass(frozen=True, slots=True)
class Chain:
    handlers: tuple[Callable[..., Any], ...]


@dataclass(frozen=True, slots=True)
class Node:
    routes: Mapping[Any, Any]


HandlerShape: TypeAlias = Single | Chain | Node


def describe(handler: object) -> str:
    """Human-readable name for error messages."""
    name = getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None)
    if name is None:
        name = type(handler).__qualname__
    return name


def classify(value: object, where: str) -> HandlerShape:
    """Resolve *value* into exactly one handler shape.

    Raises ``ConfigurationError`` naming *where* (``"GET /users"``) for
    anything that is not a callable, a non-empty sequence of callables,
    or a mapping.
    """
    if isinstance(value, Mapping):
        return Node(value)
    if callable(value):
        return Single(value)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        if not value:
            msg = f"Empty handler chain for {where}."
            raise ConfigurationError(msg)
        for index, element in enumerate(value):
            if not callable(element):
                msg = (
                    f"Handler #{index} for {where} is not callable "
                    f"(got {type(element).__name__})."
                )
                raise ConfigurationError(msg)
        return Chain(tuple(value))
    msg = (
        f"Invalid handler for {where}: expected a callable or a list of "
        f"callables, got {type(value).__name__}."
    )
    raise ConfigurationError(msg)


def normalize_chain(value: object, where: str) -> tuple[Callable[..., Any], ...]:
    """Return *value* as an ordered handler chain.

    A route node is not a handler, so it is rejected here.
    """
    match classify(value, where):
        case Single(handler):
            return (handler,)
        case Chain(handlers):
            return handlers
        case Node():
            msg = f"Invalid handler for {where}: a route mapping is not a handler."
            raise ConfigurationError(msg)


# Binding kinds
_REQUEST = "request"
_NEXT = "next"
_PARAM = "param"


class BoundHandler:
    """A route chain element with its call plan resolved at registration.

    The plan is computed from the handler's signature once:

    - ``request`` (by name or ``Request`` annotation) gets the request
    - ``next`` gets the continuation
    - names matching path parameters get the captured value, converted
      through the annotation when it is a plain type, else through the
      route converter (``{id:int}``)
    - ``**kwargs`` receives any path parameters not claimed by name

    A required parameter that none of these can satisfy is a
    ``ConfigurationError`` at registration time.
    """

    __slots__ = ("_plan", "_types", "_var_keyword", "handler", "where")

    def __init__(
        self,
        handler: Callable[..., Any],
        where: str,
        param_names: tuple[str, ...] = (),
        param_types: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.handler = handler
        self.where = where
        self._types = dict(param_types)
        self._var_keyword = False
        self._plan: list[tuple[str, str, inspect.Parameter]] = []

        try:
            sig = _signature(handler)
        except (TypeError, ValueError):
            # Builtins without introspectable signatures receive the request.
            self._plan.append(("request", _REQUEST, _positional("request")))
            return

        for name, param in sig.parameters.items():
            if param.kind is inspect.Parameter.VAR_KEYWORD:
                self._var_keyword = True
                continue
            if param.kind is inspect.Parameter.VAR_POSITIONAL:
                continue
            if name == "request" or param.annotation in (Request, "Request"):
                self._plan.append((name, _REQUEST, param))
            elif name == "next":
                self._plan.append((name, _NEXT, param))
            elif name in param_names:
                self._plan.append((name, _PARAM, param))
            elif param.default is inspect.Parameter.empty:
                msg = (
                    f"Handler {describe(handler)} for {where} has a required "
                    f"parameter {name!r}. Handlers may ask for 'request', 'next', "
                    f"or a path parameter ({', '.join(param_names) or 'none'})."
                )
                raise ConfigurationError(msg)

    async def __call__(self, request: Request, next: Callable[..., Any]) -> Any:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        claimed: set[str] = set()

        for name, kind, param in self._plan:
            if kind == _REQUEST:
                value: Any = request
            elif kind == _NEXT:
                value = next
            else:
                claimed.add(name)
                value = _convert(request.path_params[name], param, self._types.get(name, "str"))
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[name] = value

        if self._var_keyword:
            for name, value in request.path_params.items():
                if name not in claimed and name not in kwargs:
                    kwargs[name] = value

        return await invoke(self.handler, *args, **kwargs)

    def __repr__(self) -> str:
        return f"BoundHandler({describe(self.handler)}, {self.where!r})"


def _signature(handler: Callable[..., Any]) -> inspect.Signature:
    try:
        return inspect.signature(handler, eval_str=True)
    except NameError:
        # Annotations naming TYPE_CHECKING-only imports stay strings.
        return inspect.signature(handler)


def _positional(name: str) -> inspect.Parameter:
    return inspect.Parameter(name, inspect.Parameter.POSITIONAL_ONLY)


def _convert(value: str, param: inspect.Parameter, type_name: str) -> Any:
    annotation = param.annotation
    try:
        if isinstance(annotation, type) and annotation is not inspect.Parameter.empty:
            return annotation(value)
        return convert_param(value, type_name)
    except (ValueError, TypeError):
        return value
