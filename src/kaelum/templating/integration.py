"""Kida environment setup for view rendering.

The environment is built lazily from the router's ``"views"`` setting the
first time a handler returns a ``Template``, and dropped whenever the
view settings change.
"""

from __future__ import annotations

from importlib.util import find_spec
from pathlib import Path
from typing import TYPE_CHECKING

from kaelum.errors import ConfigurationError, ProviderUnavailable
from kaelum.templating.returns import Template

if TYPE_CHECKING:
    from kida import Environment

KIDA_ENGINE = "kida"
KIDA_MISSING = "Template rendering requires kida. Install it with: pip install kaelum[views]"


def create_environment(views: str | Path, *, auto_reload: bool = False) -> Environment:
    """Create a kida Environment that loads templates from *views*.

    Raises ``ProviderUnavailable`` if kida is not installed.
    """
    try:
        from kida import Environment, FileSystemLoader
    except ImportError as exc:
        raise ProviderUnavailable(KIDA_MISSING) from exc

    return Environment(
        loader=FileSystemLoader(str(views)),
        autoescape=True,
        auto_reload=auto_reload,
    )


def require_kida() -> None:
    """Raise ``ProviderUnavailable`` unless kida can be imported."""
    if find_spec("kida") is None:
        raise ProviderUnavailable(KIDA_MISSING)


def check_engine(engine: object) -> None:
    """Only kida views can be rendered."""
    if engine != KIDA_ENGINE:
        msg = (
            f"View engine {engine!r} is not supported. "
            f"Set the 'view engine' setting to {KIDA_ENGINE!r}."
        )
        raise ConfigurationError(msg)


def render_template(env: Environment, tpl: Template) -> str:
    """Render a full template to string."""
    template = env.get_template(tpl.name)
    return template.render(tpl.context)
