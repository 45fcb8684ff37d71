"""Path joining and resource name normalization."""

from kaelum.errors import ConfigurationError


def join_path(base: str, sub: str) -> str:
    """Join a base path and a sub-path key into one canonical path.

    The base loses a trailing ``/`` unless it is the root, and the sub-path
    contributes exactly one leading ``/``::

        join_path("/users", "/{id}")   # "/users/{id}"
        join_path("/users/", "/{id}")  # "/users/{id}"
        join_path("/", "/health")      # "/health"
        join_path("/users", "/")       # "/users"
    """
    sub_part = sub.lstrip("/")
    head = base.rstrip("/") if base != "/" else ""
    if not sub_part:
        return head or "/"
    return f"{head}/{sub_part}"


def normalize_resource(resource: object) -> str:
    """Turn a resource name into an absolute collection path.

    ``"users"`` and ``"/users/"`` both become ``"/users"``; an empty name
    is the root.
    """
    if not isinstance(resource, str):
        msg = f"Resource name must be a string, got {type(resource).__name__}."
        raise ConfigurationError(msg)
    path = resource.strip()
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path
