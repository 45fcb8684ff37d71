"""Middleware lifecycle registry.

Tracks which pipeline layers were installed for which feature key
(``"cors"``, ``"static"``, ``"bodyParser"``, a mount path...) so a
feature can be replaced or switched off without touching anything else
in the router.

One registry belongs to one ``App``.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from kaelum.errors import ConfigurationError
from kaelum.routing.layer import Layer
from kaelum.routing.router import Router

logger = logging.getLogger("kaelum.registry")


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """What the registry installed under one key.

    Attributes:
        key: Feature key. Unique within a registry.
        mount_path: Mount path for middleware, route path for routes,
            ``None`` for global middleware and error handlers.
        handlers: The exact handler references that were installed.
        layers: The router layers created for them.
    """

    key: str
    mount_path: str | None
    handlers: tuple[Callable[..., Any], ...]
    layers: tuple[Layer, ...] = field(default=(), repr=False, compare=False)


class MiddlewareRegistry:
    """Idempotent install and safe removal of pipeline layers.

    Usage::

        registry = MiddlewareRegistry()
        registry.install(router, "cors", CORSMiddleware())
        registry.install(router, "cors", CORSMiddleware(config))  # replaces
        registry.remove(router, "cors")

    Removal filters the router by the identity of layers this registry
    created, so layers added directly through the router are never
    touched, even when they carry the same handler.
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}

    # -- Install --

    def install(
        self,
        router: Router,
        key: str,
        handler: Callable[..., Any],
        mount_path: str | None = None,
    ) -> RegistryEntry:
        """Install one middleware under *key*, replacing any previous entry."""
        return self.install_many(router, key, (handler,), mount_path)

    def install_many(
        self,
        router: Router,
        key: str,
        handlers: Iterable[Callable[..., Any]],
        mount_path: str | None = None,
    ) -> RegistryEntry:
        """Install a group of middleware under one key, in order."""
        group = tuple(handlers)
        if not group:
            msg = f"Nothing to install under {key!r}."
            raise ConfigurationError(msg)
        layers = tuple(router.prepare_use(handler, mount_path) for handler in group)
        return self._record(router, key, mount_path, group, layers)

    def install_route(
        self,
        router: Router,
        key: str,
        method: str,
        path: str,
        handler: Callable[..., Any],
    ) -> RegistryEntry:
        """Install a single route under *key*, replacing any previous entry."""
        layer = router.prepare_route(method, path, handler)
        return self._record(router, key, path, (handler,), (layer,))

    def install_error_handler(
        self,
        router: Router,
        key: str,
        handler: Callable[..., Any],
    ) -> RegistryEntry:
        """Install an error-channel handler under *key*."""
        layer = router.prepare_error(handler)
        return self._record(router, key, None, (handler,), (layer,))

    def _record(
        self,
        router: Router,
        key: str,
        mount_path: str | None,
        handlers: tuple[Callable[..., Any], ...],
        layers: tuple[Layer, ...],
    ) -> RegistryEntry:
        if not isinstance(key, str) or not key:
            msg = f"Registry key must be a non-empty string, got {key!r}."
            raise ConfigurationError(msg)
        self.remove(router, key)
        router.attach(layers)
        entry = RegistryEntry(key, mount_path, handlers, layers)
        self._entries[key] = entry
        logger.debug(
            "Installed %r (%d layer(s)) at %s", key, len(layers), mount_path or "<global>"
        )
        return entry

    # -- Remove --

    def remove(self, router: Router, key: str) -> bool:
        """Remove what was installed under *key*. Absent keys are a no-op."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        removed = router.remove_layers(entry.layers)
        logger.debug("Removed %r (%d layer(s))", key, removed)
        return True

    def remove_by_mount_path(self, router: Router, mount_path: str) -> list[str]:
        """Remove every entry mounted at *mount_path*. Returns their keys."""
        keys = [key for key, entry in self._entries.items() if entry.mount_path == mount_path]
        for key in keys:
            self.remove(router, key)
        return keys

    def remove_all(self, router: Router) -> None:
        for key in list(self._entries):
            self.remove(router, key)

    # -- Introspection --

    @property
    def entries(self) -> tuple[RegistryEntry, ...]:
        """Entries in install order."""
        return tuple(self._entries.values())

    def get(self, key: str) -> RegistryEntry | None:
        return self._entries.get(key)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return [key for key in self._entries if key.startswith(prefix)]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
