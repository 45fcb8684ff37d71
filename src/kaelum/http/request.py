"""Immutable HTTP request.

Frozen metadata with async body access. Body-parsing middleware attach
their result through ``attach_body`` so later handlers read it from
``parsed_body`` without touching the ASGI receive channel again.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from kaelum._internal.asgi import Receive
from kaelum.http.cookies import parse_cookies
from kaelum.http.headers import Headers
from kaelum.http.query import QueryParams

if TYPE_CHECKING:
    from kaelum.http.forms import FormData

_MEDIA_ALIASES = {
    "html": "text/html",
    "json": "application/json",
    "text": "text/plain",
    "xml": "application/xml",
}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    Body is accessed asynchronously via ``.body()``, ``.json()``, ``.form()``.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str, str]
    http_version: str
    client: tuple[str, int] | None
    cookies: Mapping[str, str]

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: shared mutable cache for the body and parsed payloads.
    # Survives with_path_params() so parsers upstream of a route are not lost.
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def parsed_body(self) -> Any:
        """Body attached by a body-parsing middleware, or ``None``."""
        return self._cache.get("parsed_body")

    def attach_body(self, value: Any) -> None:
        """Record a parsed body for downstream handlers."""
        self._cache["parsed_body"] = value

    def accepts(self, media: str) -> bool:
        """True if the ``Accept`` header admits *media*.

        *media* may be a full type (``"text/html"``) or a short alias
        (``"html"``, ``"json"``). A missing header accepts everything.
        """
        wanted = _MEDIA_ALIASES.get(media, media).lower()
        accept = self.headers.get("accept")
        if not accept:
            return True
        major = wanted.split("/", 1)[0]
        for part in accept.split(","):
            candidate = part.split(";", 1)[0].strip().lower()
            if candidate in ("*/*", wanted, f"{major}/*"):
                return True
        return False

    def with_path_params(self, params: dict[str, str]) -> Request:
        """Return a copy carrying the params of a matched route."""
        return replace(self, path_params=params)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body (cached after the first read)."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncIterator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        raw = await self.body()
        return json_module.loads(raw)

    async def text(self) -> str:
        raw = await self.body()
        return raw.decode("utf-8")

    async def form(self) -> FormData:
        """Parse the body as form data (URL-encoded or multipart).

        Raises:
            ValueError: If Content-Type is not a form encoding.
        """
        if "_form" in self._cache:
            return self._cache["_form"]

        from kaelum.http.forms import parse_form_data

        ct = self.content_type or "application/x-www-form-urlencoded"
        raw = await self.body()
        result = parse_form_data(raw, ct)
        self._cache["_form"] = result
        return result

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )
