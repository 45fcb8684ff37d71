"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the current ``Request`` for this task.
- ``g``: a mutable namespace scoped to the current request.

Both are set by the ASGI handler and reset after each request, so a
flag set by one element of a handler chain is visible to the next
element and gone by the time the next request starts.
"""

from contextvars import ContextVar
from typing import Any

from kaelum.http.request import Request

request_var: ContextVar[Request] = ContextVar("kaelum_request")


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


class _RequestGlobals:
    """A mutable namespace scoped to the current request.

    Usage::

        from kaelum.context import g

        # In middleware
        g.user = current_user

        # In handler
        name = g.user.name
    """

    __slots__ = ("_store",)

    def __init__(self) -> None:
        object.__setattr__(self, "_store", ContextVar("kaelum_g", default=None))

    def _get_dict(self) -> dict[str, Any]:
        store: ContextVar[dict[str, Any] | None] = object.__getattribute__(self, "_store")
        d = store.get()
        if d is None:
            d = {}
            store.set(d)
        return d

    def _reset(self) -> None:
        """Drop the current request's namespace."""
        store: ContextVar[dict[str, Any] | None] = object.__getattribute__(self, "_store")
        store.set(None)

    def __getattr__(self, name: str) -> Any:
        d = self._get_dict()
        try:
            return d[name]
        except KeyError:
            msg = f"'g' has no attribute {name!r} in the current request scope"
            raise AttributeError(msg) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._get_dict()[name] = value

    def __delattr__(self, name: str) -> None:
        d = self._get_dict()
        try:
            del d[name]
        except KeyError:
            msg = f"'g' has no attribute {name!r} in the current request scope"
            raise AttributeError(msg) from None

    def __contains__(self, name: str) -> bool:
        return name in self._get_dict()

    def get(self, name: str, default: Any = None) -> Any:
        return self._get_dict().get(name, default)

    def __repr__(self) -> str:
        return f"<g {self._get_dict()!r}>"


g = _RequestGlobals()
"""Request-scoped namespace. Stores arbitrary per-request data."""
