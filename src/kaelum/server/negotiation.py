"""Content negotiation: maps return values to Response objects.

Inspects the value returned by a handler (or an error handler) and
produces the appropriate Response. isinstance-based dispatch, no magic,
fully predictable.
"""

import json as json_module
from collections.abc import Callable
from typing import Any, TypeAlias

from kaelum.errors import ConfigurationError
from kaelum.http.response import Redirect, Response
from kaelum.templating.returns import Template

TemplateRenderer: TypeAlias = Callable[[Template], str]


def negotiate(value: Any, *, render: TemplateRenderer | None = None) -> Response:
    """Convert a handler's return value to a Response.

    Dispatch order:

    1. ``Response``            -> pass through
    2. ``Redirect``            -> 3xx with Location header
    3. ``Template``            -> render through *render* -> text/html
    4. ``None``                -> 204, empty body
    5. ``str``                 -> 200, text/html
    6. ``bytes``               -> 200, application/octet-stream
    7. ``dict`` / ``list``     -> 200, application/json
    8. ``(value, int)``        -> negotiate value, override status
    9. ``(value, int, dict)``  -> negotiate value, override status + headers
    """
    match value:
        case Response():
            return value
        case Redirect():
            return (
                Response(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(dict(value.headers))
            )
        case Template():
            if render is None:
                msg = "Template return type requires a view renderer."
                raise ConfigurationError(msg)
            return Response(body=render(value), content_type="text/html; charset=utf-8")
        case None:
            return Response(body="", status=204)
        case str():
            return Response(body=value, content_type="text/html; charset=utf-8")
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return Response(
                body=json_module.dumps(value, default=str),
                content_type="application/json; charset=utf-8",
            )
        case (inner, int() as status):
            return negotiate(inner, render=render).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner, render=render).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                f"Return str, dict, list, bytes, Template, Response, or Redirect."
            )
            raise TypeError(msg)
