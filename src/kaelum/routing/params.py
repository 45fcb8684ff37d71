"""Path parameter converters.

Built-in converters for route path segments like ``{id:int}``. The
regex constrains which segments match; the Python type converts the
captured string before it reaches the handler.
"""

# (regex_pattern, python_type) for each supported converter
CONVERTERS: dict[str, tuple[str, type]] = {
    "str": (r"[^/]+", str),
    "int": (r"\d+", int),
    "float": (r"\d+(?:\.\d+)?", float),
    "path": (r".+", str),
}


def convert_param(value: str, type_name: str) -> object:
    """Convert a captured path segment with the named converter.

    Raises ``KeyError`` for unknown converters and ``ValueError`` when
    the value does not convert.
    """
    _, python_type = CONVERTERS[type_name]
    return python_type(value)
