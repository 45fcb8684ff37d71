"""Shared type aliases used across kaelum modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: user-defined function with variable signature
Handler: TypeAlias = Callable[..., Any]

# Error-channel handler: receives (request, exc) and returns a response value or None
ErrorHandler: TypeAlias = Callable[..., Any]
