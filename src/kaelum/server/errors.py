"""Error handling pipeline for kaelum requests.

Error-channel handlers are called with introspected arguments. Whatever
the channel leaves unhandled is mapped to a default Response here.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from kaelum.errors import HTTPError
from kaelum.http.request import Request
from kaelum.http.response import Response

logger = logging.getLogger("kaelum.server")


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: BaseException,
) -> Any:
    """Invoke an error-channel handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc)
    args. Supports both sync and async error handlers. The raw return
    value is handed back; ``None`` means "not handled".
    """
    try:
        arity = len(inspect.signature(handler).parameters)
    except (TypeError, ValueError):
        arity = 2

    if arity >= 2:
        result = handler(request, exc)
    elif arity == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result
    return result


def handle_http_error(exc: HTTPError, request: Request) -> Response:
    """Default response for an HTTPError nobody handled."""
    logger.debug("%d %s %s - %s", exc.status, request.method, request.path, exc.detail)
    detail = exc.detail or f"Error {exc.status}"
    resp = Response(body=detail, content_type="text/plain; charset=utf-8").with_status(exc.status)
    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


def handle_internal_error(exc: Exception, request: Request, *, debug: bool = False) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path, exc_info=exc)
    if debug:
        import traceback

        body = "".join(traceback.format_exception(exc))
        return Response(body=body, status=500, content_type="text/plain; charset=utf-8")
    return Response(
        body="Internal Server Error",
        status=500,
        content_type="text/plain; charset=utf-8",
    )
