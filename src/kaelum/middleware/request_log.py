"""Request logging middleware (the ``logs`` option).

Writes one line per request to the ``kaelum.access`` logger in one of the
familiar access-log formats: ``dev``, ``combined``, ``common``, ``short``
or ``tiny``.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from kaelum.errors import ConfigurationError, HTTPError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.middleware.protocol import Next

logger = logging.getLogger("kaelum.access")


def _remote(request: Request) -> str:
    return request.client[0] if request.client else "-"


def _length(response: Response) -> str:
    return str(len(response.body_bytes)) if response.body else "-"


def _request_line(request: Request) -> str:
    return f"{request.method} {request.url} HTTP/{request.http_version}"


def _clf_date() -> str:
    return datetime.now(UTC).strftime("%d/%b/%Y:%H:%M:%S +0000")


def _dev(request: Request, response: Response, elapsed_ms: float) -> str:
    return (
        f"{request.method} {request.url} {response.status} "
        f"{elapsed_ms:.3f} ms - {_length(response)}"
    )


def _common(request: Request, response: Response, elapsed_ms: float) -> str:
    return (
        f'{_remote(request)} - - [{_clf_date()}] "{_request_line(request)}" '
        f"{response.status} {_length(response)}"
    )


def _combined(request: Request, response: Response, elapsed_ms: float) -> str:
    referrer = request.headers.get("referer", "-")
    agent = request.headers.get("user-agent", "-")
    return f'{_common(request, response, elapsed_ms)} "{referrer}" "{agent}"'


def _short(request: Request, response: Response, elapsed_ms: float) -> str:
    return (
        f"{_remote(request)} - {_request_line(request)} {response.status} "
        f"{_length(response)} - {elapsed_ms:.3f} ms"
    )


def _tiny(request: Request, response: Response, elapsed_ms: float) -> str:
    return (
        f"{request.method} {request.url} {response.status} "
        f"{_length(response)} - {elapsed_ms:.3f} ms"
    )


FORMATS: dict[str, Callable[[Request, Response, float], str]] = {
    "dev": _dev,
    "combined": _combined,
    "common": _common,
    "short": _short,
    "tiny": _tiny,
}


class RequestLogger:
    """Log each request after its response is produced.

    Usage::

        app.set_config(logs=True)                    # "dev" format
        app.set_config(logs="combined")
        app.set_config(logs={"format": "tiny"})
    """

    __slots__ = ("_line", "format")

    def __init__(self, format: str = "dev") -> None:
        line = FORMATS.get(format)
        if line is None:
            msg = f"Unknown log format {format!r}. Known formats: {', '.join(FORMATS)}."
            raise ConfigurationError(msg)
        self.format = format
        self._line = line

    async def __call__(self, request: Request, next: Next) -> Response:
        start = time.perf_counter()
        try:
            response = await next(request)
        except HTTPError as exc:
            self._log(request, Response(body="", status=exc.status), start)
            raise
        except Exception:
            self._log(request, Response(body="", status=500), start)
            raise
        self._log(request, response, start)
        return response

    def _log(self, request: Request, response: Response, start: float) -> None:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s", self._line(request, response, elapsed_ms))
