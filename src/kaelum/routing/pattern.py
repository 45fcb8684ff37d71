"""Path pattern compilation.

A route path like ``/users/{id:int}`` or ``/users/:id`` is compiled once
at registration into a regex. Route layers match the whole path; mount
layers (middleware attached at a path) match the path as a prefix on a
segment boundary.

Trailing slashes are not significant: ``/users`` and ``/users/`` match
the same requests.
"""

import re
from dataclasses import dataclass, field

from kaelum.errors import ConfigurationError
from kaelum.routing.params import CONVERTERS

_BRACE_PARAM = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<type>[a-z]+))?\}$")
_COLON_PARAM = re.compile(r"^:(?P<name>[A-Za-z_][A-Za-z0-9_]*)$")


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``users``     (is_param=False)
    Param:   ``{id}``      (is_param=True, param_name="id")
    Typed:   ``{id:int}``  (is_param=True, param_name="id", param_type="int")
    Colon:   ``:id``       (same as ``{id}``)
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Raises ``ConfigurationError`` for unknown converters, a ``path``
    converter anywhere but the last segment, or Flask-style ``<param>``.
    """
    if not path.startswith("/"):
        msg = f"Route path {path!r} must start with '/'."
        raise ConfigurationError(msg)

    parts = [part for part in path.strip("/").split("/") if part]
    segments: list[PathSegment] = []
    for index, part in enumerate(parts):
        if part.startswith("<") and part.endswith(">"):
            msg = (
                f"Route path {path!r} uses <param> syntax. "
                "Use {param} or :param for path parameters."
            )
            raise ConfigurationError(msg)

        match = _BRACE_PARAM.match(part) or _COLON_PARAM.match(part)
        if match is None:
            segments.append(PathSegment(value=part))
            continue

        param_type = match.groupdict().get("type") or "str"
        if param_type not in CONVERTERS:
            msg = f"Unknown path converter {param_type!r} in route {path!r}."
            raise ConfigurationError(msg)
        if param_type == "path" and index != len(parts) - 1:
            msg = f"Path converter must be the last segment in route {path!r}."
            raise ConfigurationError(msg)
        segments.append(
            PathSegment(
                value=part,
                is_param=True,
                param_name=match.group("name"),
                param_type=param_type,
            )
        )
    return segments


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled path pattern.

    Usage::

        pattern = PathPattern.compile("/users/{id}")
        pattern.match("/users/42")         # {"id": "42"}
        pattern.match("/users/42/posts")   # None

        mount = PathPattern.compile("/api", prefix=True)
        mount.match("/api/users")          # {}
        mount.match("/apix")               # None
    """

    source: str
    prefix: bool
    regex: re.Pattern[str] = field(compare=False)
    param_names: tuple[str, ...] = ()
    param_types: tuple[tuple[str, str], ...] = ()

    @classmethod
    def compile(cls, path: str, *, prefix: bool = False) -> "PathPattern":
        segments = parse_path(path)
        pieces: list[str] = []
        names: list[str] = []
        types: list[tuple[str, str]] = []
        for seg in segments:
            if seg.is_param:
                assert seg.param_name is not None
                if seg.param_name in names:
                    msg = f"Duplicate path parameter {seg.param_name!r} in route {path!r}."
                    raise ConfigurationError(msg)
                names.append(seg.param_name)
                types.append((seg.param_name, seg.param_type))
                converter, _ = CONVERTERS[seg.param_type]
                pieces.append(f"/(?P<{seg.param_name}>{converter})")
            else:
                pieces.append("/" + re.escape(seg.value))

        body = "".join(pieces)
        if prefix:
            regex = re.compile(f"^{body}(?:/.*)?$") if body else re.compile("^/.*$")
        else:
            regex = re.compile(f"^{body}/?$") if body else re.compile("^/$")
        return cls(
            source=path,
            prefix=prefix,
            regex=regex,
            param_names=tuple(names),
            param_types=tuple(types),
        )

    def match(self, path: str) -> dict[str, str] | None:
        """Return captured params on a match, ``None`` otherwise."""
        found = self.regex.match(path or "/")
        if found is None:
            return None
        return {name: value for name, value in found.groupdict().items() if value is not None}
