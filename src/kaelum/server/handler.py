"""ASGI handler: translates ASGI scope/messages to kaelum types.

The only component that touches raw ASGI directly. Converts the scope to
a typed Request, dispatches it through the router, maps whatever the
error channel left unhandled to a default response, and sends the
Response back through ASGI send().
"""

from contextvars import Token

from kaelum._internal.asgi import Receive, Scope, Send
from kaelum.context import g, request_var
from kaelum.errors import HTTPError
from kaelum.http.request import Request
from kaelum.http.response import Response
from kaelum.routing.router import Router
from kaelum.server.errors import handle_http_error, handle_internal_error
from kaelum.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    debug: bool = False,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    request = Request.from_asgi(scope, receive)

    # Set request context var (reset after dispatch)
    token: Token[Request] = request_var.set(request)
    try:
        response: Response = await router.dispatch(request)
    except HTTPError as exc:
        response = handle_http_error(exc, request)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug=debug)
    finally:
        g._reset()
        request_var.reset(token)

    await send_response(response, send, head=request.method == "HEAD")
