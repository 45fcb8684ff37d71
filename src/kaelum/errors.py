"""Kaelum exception hierarchy.

Shared across the router, composer, registry, and middleware so every
module raises and catches the same types.
"""

from dataclasses import dataclass


class KaelumError(Exception):
    """Base for all kaelum-specific errors."""


class ConfigurationError(KaelumError):
    """Raised when a route spec, middleware, or option is invalid.

    Always raised synchronously at registration time, never while a
    request is being served.
    """


class ProviderUnavailable(ConfigurationError):  # noqa: N818
    """A middleware provider cannot be built because an optional
    dependency is missing.

    The configuration merger downgrades this to a warning and skips
    the option instead of aborting the whole call.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(KaelumError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The error channel
    turns it into a response with the same status.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no layer produced a response for the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: a route exists for the path but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
