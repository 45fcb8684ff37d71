"""Error-channel handler factory (the ``errorHandler`` option).

``error_handler()`` builds a handler for ``Router.use_error`` that turns
any exception into a JSON error payload::

    {"error": {"message": "...", "code": "...", "stack": "..."}}

or a small HTML page when the client prefers HTML over JSON. The status
comes from the exception's ``status`` or ``status_code`` attribute,
else 500.
"""

import html
import logging
import traceback
from collections.abc import Callable
from typing import Any, TypeAlias

from kaelum.errors import HTTPError
from kaelum.http.request import Request
from kaelum.http.response import Response

logger = logging.getLogger("kaelum.server")

ErrorLogger: TypeAlias = Callable[[BaseException, Request, dict[str, Any]], Any]
ErrorHook: TypeAlias = Callable[[BaseException, Request], Any]


def error_status(exc: BaseException) -> int:
    """HTTP status carried by *exc*, or 500."""
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return 500


def _message(exc: BaseException) -> str:
    if isinstance(exc, HTTPError):
        return exc.detail or f"Error {exc.status}"
    return str(exc) or "Internal Server Error"


def _default_log(exc: BaseException, request: Request, info: dict[str, Any]) -> None:
    status = info["status"]
    if status >= 500:
        logger.error("%d %s %s", status, request.method, request.path, exc_info=exc)
    else:
        logger.warning("%d %s %s: %s", status, request.method, request.path, _message(exc))


def _html_page(status: int, message: str, stack: str | None) -> str:
    title = f"Error {status}"
    trace = f"<pre>{html.escape(stack)}</pre>" if stack else ""
    return (
        "<!doctype html>\n"
        f'<html><head><meta charset="utf-8"/><title>{title}</title></head>'
        f"<body><h1>{title}</h1><p>{html.escape(message)}</p>{trace}</body></html>"
    )


def error_handler(
    expose_stack: bool = False,
    logger: ErrorLogger | bool | None = None,
    on_error: ErrorHook | None = None,
) -> Callable[[Request, BaseException], Response]:
    """Build an error-channel handler.

    Args:
        expose_stack: Include the formatted traceback in the response.
        logger: ``logger(exc, request, {"status": status})`` replaces the
            default logging. ``False`` disables logging.
        on_error: Hook called with ``(exc, request)`` before responding,
            e.g. to report to an external service.

    A logger or hook that raises is logged and ignored; the response is
    still sent.
    """
    if logger is True or logger is None:
        log: ErrorLogger | None = _default_log
    elif logger is False:
        log = None
    else:
        log = logger

    def handle_error(request: Request, exc: BaseException) -> Response:
        status = error_status(exc)
        payload: dict[str, Any] = {
            "message": _message(exc),
            "code": getattr(exc, "code", None) or "INTERNAL_ERROR",
        }
        stack = "".join(traceback.format_exception(exc)) if expose_stack else None
        if stack is not None:
            payload["stack"] = stack

        if log is not None:
            try:
                log(exc, request, {"status": status})
            except Exception:
                logging.getLogger("kaelum.server").exception("errorHandler logger raised")

        if on_error is not None:
            try:
                on_error(exc, request)
            except Exception:
                logging.getLogger("kaelum.server").exception("errorHandler on_error hook raised")

        if request.accepts("html") and not request.accepts("json"):
            body = _html_page(status, payload["message"], stack)
            response = Response(body=body, status=status)
        else:
            response = Response.json({"error": payload}, status=status)

        if isinstance(exc, HTTPError):
            response = response.with_headers(dict(exc.headers))
        return response

    return handle_error
