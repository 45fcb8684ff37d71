"""Server entry point.

Starts a pounce ASGI server with the live kaelum App object.
"""


def run_server(app: object, host: str, port: int, *, reload: bool = False) -> None:
    """Serve *app* with pounce until interrupted.

    Pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``),
    but kaelum has a live ``App`` object, so ``pounce.Server`` is used
    directly with the ASGI callable.

    Raises ``ProviderUnavailable`` if pounce is not installed.
    """
    try:
        from pounce.config import ServerConfig
        from pounce.server import Server
    except ImportError as exc:
        from kaelum.errors import ProviderUnavailable

        msg = "Serving requires pounce. Install it with: pip install kaelum[server]"
        raise ProviderUnavailable(msg) from exc

    config = ServerConfig(host=host, port=port, workers=1, reload=reload)
    Server(config, app).run()
