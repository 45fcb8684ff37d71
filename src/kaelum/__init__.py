"""Kaelum: declarative routes and switchable middleware for ASGI apps.

Describe routes as nested data, toggle cross-cutting features with one
configuration call, and replace or remove them at runtime without
leaving duplicate or orphaned handlers in the pipeline.

Basic usage::

    from kaelum import create_app

    app = create_app()

    app.add_route("/users", {
        "get": list_users,
        "post": create_user,
        "/{id}": {"get": show_user, "delete": delete_user},
    })
    app.api_route("posts", {"crud": {"list": list_posts}})

    app.set_config(cors=True, helmet=True, logs="dev", port=8080)
    app.health_check()
    app.redirect("/old", "/new", 301)

    app.start()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "KaelumError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "ProviderUnavailable",
    "Redirect",
    "Request",
    "Response",
    "Template",
    "create_app",
    "g",
    "get_request",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import kaelum`` fast while providing a clean top-level API.
    """
    if name in ("App", "create_app"):
        from kaelum import app as _app

        return getattr(_app, name)

    if name == "AppConfig":
        from kaelum.config import AppConfig

        return AppConfig

    if name == "Request":
        from kaelum.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from kaelum.http import response as _resp

        return getattr(_resp, name)

    if name == "Template":
        from kaelum.templating.returns import Template

        return Template

    if name in ("Middleware", "Next"):
        from kaelum.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("g", "get_request"):
        from kaelum import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "KaelumError",
        "MethodNotAllowed",
        "NotFound",
        "ProviderUnavailable",
    ):
        from kaelum import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
