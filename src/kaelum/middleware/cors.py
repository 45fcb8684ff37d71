"""CORS middleware.

Handles preflight requests and adds the appropriate headers to every
response for an allowed origin.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from kaelum.errors import ConfigurationError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.middleware.protocol import Next

# Short option names accepted by CORSConfig.from_options()
_ALIASES = {
    "origin": "allow_origins",
    "origins": "allow_origins",
    "methods": "allow_methods",
    "headers": "allow_headers",
    "credentials": "allow_credentials",
}


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    Constructed directly, all fields have secure defaults (nothing is
    allowed). Override what you need::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST"),
        )
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "CORSConfig":
        """Build a config from a ``cors`` option mapping.

        An empty mapping (``cors: True``) allows any origin for the usual
        methods, matching what people expect from switching CORS on.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {
            "allow_origins": ("*",),
            "allow_methods": ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"),
        }
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                msg = f"Unknown CORS option {key!r}. Known options: {', '.join(sorted(known))}."
                raise ConfigurationError(msg)
            if name == "allow_credentials":
                values[name] = bool(value)
            elif name == "max_age":
                values[name] = int(value)
            else:
                values[name] = (value,) if isinstance(value, str) else tuple(value)
        return cls(**values)


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (returns 204 with CORS headers)
    - Simple and actual requests (adds CORS headers to response)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled

    Usage::

        app.set_middleware(CORSMiddleware(CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST", "PUT"),
            allow_headers=("Content-Type", "Authorization"),
        )))
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _is_allowed_origin(self, origin: str) -> bool:
        if "*" in self.config.allow_origins:
            return True
        return origin in self.config.allow_origins

    def _add_cors_headers(self, response: Response, origin: str) -> Response:
        cfg = self.config

        if "*" in cfg.allow_origins and not cfg.allow_credentials:
            response = response.with_header("Access-Control-Allow-Origin", "*")
        else:
            response = response.with_header("Access-Control-Allow-Origin", origin)
            response = response.with_header("Vary", "Origin")

        if cfg.allow_credentials:
            response = response.with_header("Access-Control-Allow-Credentials", "true")

        if cfg.expose_headers:
            response = response.with_header(
                "Access-Control-Expose-Headers",
                ", ".join(cfg.expose_headers),
            )

        return response

    def _preflight_response(self, origin: str, request_method: str | None) -> Response:
        cfg = self.config
        response = Response(body="", status=204)
        response = self._add_cors_headers(response, origin)

        if request_method:
            response = response.with_header(
                "Access-Control-Allow-Methods",
                ", ".join(cfg.allow_methods),
            )

        if cfg.allow_headers:
            response = response.with_header(
                "Access-Control-Allow-Headers",
                ", ".join(cfg.allow_headers),
            )

        return response.with_header("Access-Control-Max-Age", str(cfg.max_age))

    async def __call__(self, request: Request, next: Next) -> Response:
        origin = request.headers.get("origin")

        # No Origin header: not a CORS request
        if origin is None or not self._is_allowed_origin(origin):
            return await next(request)

        if request.method == "OPTIONS":
            request_method = request.headers.get("access-control-request-method")
            return self._preflight_response(origin, request_method)

        response = await next(request)
        return self._add_cors_headers(response, origin)
