"""Application configuration.

``AppConfig`` is the frozen bootstrap configuration of an ``App``:
immutable after creation, IDE-autocompletable, no string-key lookups.

The runtime options applied through ``App.set_config()`` live in a
separate, mergeable snapshot (see ``kaelum.configure``).
"""

from dataclasses import dataclass
from pathlib import Path

from kaelum.errors import ConfigurationError

DEFAULT_PORT = 3000


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=8080, static_dir="assets")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    debug: bool = False

    # Defaults installed by create_app()
    static_dir: str | Path | None = "public"
    view_engine: str = "kida"
    views_dir: str | Path = "views"

    # Read a .env file from the working directory on App creation
    load_dotenv: bool = True

    # Include tracebacks in default 500 responses
    expose_errors: bool = False


def coerce_port(value: object) -> int | None:
    """Coerce a ``port`` option.

    Integers and numeric strings become ``int``; ``False`` and ``None``
    clear the port. Anything else is a ``ConfigurationError``.
    """
    if value is None or value is False:
        return None
    if isinstance(value, bool):
        msg = f"Invalid port {value!r}."
        raise ConfigurationError(msg)
    if isinstance(value, int):
        port = value
    elif isinstance(value, str) and value.strip().isdigit():
        port = int(value.strip())
    else:
        msg = f"Invalid port {value!r}: expected an integer or a numeric string."
        raise ConfigurationError(msg)
    if not 0 <= port <= 65535:
        msg = f"Port {port} is out of range (0-65535)."
        raise ConfigurationError(msg)
    return port
