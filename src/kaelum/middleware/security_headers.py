"""Security headers middleware (the ``helmet`` option).

Adds X-Frame-Options, X-Content-Type-Options, Referrer-Policy and a
Content-Security-Policy to responses. Optional headers are skipped when
their value is ``None``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from kaelum.errors import ConfigurationError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    """Configuration for security headers.

    All values are applied as-is. Use standard header values.
    """

    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    content_security_policy: str | None = (
        "default-src 'self'; base-uri 'self'; frame-ancestors 'none'; object-src 'none'"
    )
    strict_transport_security: str | None = None
    html_only: bool = False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "SecurityHeadersConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            msg = (
                f"Unknown helmet option(s) {', '.join(map(repr, unknown))}. "
                f"Known options: {', '.join(sorted(known))}."
            )
            raise ConfigurationError(msg)
        return cls(**options)


def _add_headers(response: Response, config: SecurityHeadersConfig) -> Response:
    secured = (
        response.with_header("X-Frame-Options", config.x_frame_options)
        .with_header("X-Content-Type-Options", config.x_content_type_options)
        .with_header("Referrer-Policy", config.referrer_policy)
    )
    if config.content_security_policy:
        secured = secured.with_header("Content-Security-Policy", config.content_security_policy)
    if config.strict_transport_security:
        secured = secured.with_header(
            "Strict-Transport-Security", config.strict_transport_security
        )
    return secured


class SecurityHeadersMiddleware:
    """Add security headers to responses.

    Usage::

        from kaelum.middleware import SecurityHeadersMiddleware

        app.set_middleware(SecurityHeadersMiddleware())

    Or with custom config::

        app.set_config(helmet={"x_frame_options": "SAMEORIGIN"})
    """

    __slots__ = ("config",)

    def __init__(self, config: SecurityHeadersConfig | None = None) -> None:
        self.config = config or SecurityHeadersConfig()

    async def __call__(self, request: Request, next: Next) -> Response:
        response = await next(request)
        if self.config.html_only and not response.content_type.startswith("text/html"):
            return response
        return _add_headers(response, self.config)
