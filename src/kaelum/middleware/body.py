"""Body-parsing middleware.

``JSONBodyParser`` and ``FormBodyParser`` read the request body once,
parse it according to its content type, and attach the result to the
request so handlers read it from ``request.parsed_body``. Requests with
other content types pass through untouched.

Both are installed together by the ``bodyParser`` option.
"""

import json

from kaelum.errors import HTTPError
from kaelum.http.forms import is_form_content_type
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.middleware.protocol import Next

DEFAULT_LIMIT = 1024 * 1024  # 1 MB


def _is_json(content_type: str | None) -> bool:
    if not content_type:
        return False
    media = content_type.lower().split(";")[0].strip()
    return media == "application/json" or media.endswith("+json")


async def _read_limited(request: Request, limit: int | None) -> bytes:
    declared = request.content_length
    if limit is not None and declared is not None and declared > limit:
        raise HTTPError(413, f"Request body exceeds {limit} bytes")
    body = await request.body()
    if limit is not None and len(body) > limit:
        raise HTTPError(413, f"Request body exceeds {limit} bytes")
    return body


class JSONBodyParser:
    """Parse ``application/json`` bodies.

    An empty body parses to ``None``. Malformed JSON is a 400.
    """

    __slots__ = ("limit",)

    def __init__(self, limit: int | None = DEFAULT_LIMIT) -> None:
        self.limit = limit

    async def __call__(self, request: Request, next: Next) -> Response:
        if _is_json(request.content_type):
            raw = await _read_limited(request, self.limit)
            if raw.strip():
                try:
                    request.attach_body(json.loads(raw))
                except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                    raise HTTPError(400, f"Invalid JSON body: {exc}") from exc
        return await next(request)


class FormBodyParser:
    """Parse URL-encoded and multipart form bodies into ``FormData``."""

    __slots__ = ("limit",)

    def __init__(self, limit: int | None = DEFAULT_LIMIT) -> None:
        self.limit = limit

    async def __call__(self, request: Request, next: Next) -> Response:
        if is_form_content_type(request.content_type):
            await _read_limited(request, self.limit)
            try:
                request.attach_body(await request.form())
            except ValueError as exc:
                raise HTTPError(400, f"Invalid form body: {exc}") from exc
        return await next(request)
