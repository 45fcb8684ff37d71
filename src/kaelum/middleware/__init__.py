"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing (``cors`` option)
    SecurityHeadersMiddleware -- X-Frame-Options, CSP, Referrer-Policy (``helmet`` option)
    StaticFiles -- Serve static files from a directory (``static`` option)
    JSONBodyParser, FormBodyParser -- Parse request bodies (``bodyParser`` option)
    RequestLogger -- Access log lines (``logs`` option)

Error channel:
    error_handler -- JSON/HTML error responses (``errorHandler`` option)
"""

from kaelum.middleware.body import FormBodyParser, JSONBodyParser
from kaelum.middleware.cors import CORSConfig, CORSMiddleware
from kaelum.middleware.error_handler import error_handler
from kaelum.middleware.protocol import Middleware, Next
from kaelum.middleware.request_log import RequestLogger
from kaelum.middleware.security_headers import (
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
)
from kaelum.middleware.static import StaticFiles

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "FormBodyParser",
    "JSONBodyParser",
    "Middleware",
    "Next",
    "RequestLogger",
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "StaticFiles",
    "error_handler",
]
