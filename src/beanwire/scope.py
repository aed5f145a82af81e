from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

SINGLETON = "singleton"
"""Scope name of beans created once and shared for the container lifetime."""

PROTOTYPE = "prototype"
"""Scope name of beans created anew for every request."""

THREAD = "thread"
"""Scope name under which ``ThreadScope`` is registered by default."""

SCOPED_TARGET_PREFIX = "scopedTarget."


class ScopedProxyMode(Enum):
    """Select whether a scoped bean is exposed through a proxy.

    A proxied bean is registered twice: the real definition lives under
    ``scopedTarget.<name>`` and the plain name holds a singleton proxy that
    looks up the current target on every attribute access.
    """

    DEFAULT = "default"
    """Use the container default, which is ``NO``."""

    NO = "no"
    """Do not create a scoped proxy."""

    INTERFACES = "interfaces"
    """Create a proxy that forwards every attribute to the current target."""

    TARGET_CLASS = "target_class"
    """Create a class-based proxy; forwards like ``INTERFACES``."""

    @property
    def is_proxied(self) -> bool:
        return self in {ScopedProxyMode.INTERFACES, ScopedProxyMode.TARGET_CLASS}


def scoped_target_name(name: str) -> str:
    """Return the internal bean name holding the target of a scoped proxy."""
    return SCOPED_TARGET_PREFIX + name


def is_scoped_target(name: str) -> bool:
    return name.startswith(SCOPED_TARGET_PREFIX)


class Scope(ABC):
    """Strategy that stores beans of a custom scope.

    Register implementations with ``Container.register_scope`` and reference
    them by name from ``@bean(scope=...)``.
    """

    @abstractmethod
    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        """Return the scoped instance for ``name``, creating it when absent.

        Args:
            name: Bean name to look up.
            object_factory: Callable creating a new instance when the scope holds
                none.

        """

    @abstractmethod
    def remove(self, name: str) -> Any | None:
        """Remove and return the scoped instance for ``name`` if present."""


class ThreadScope(Scope):
    """Keep one instance per bean name and thread."""

    def __init__(self) -> None:
        self._local = threading.local()

    def _instances(self) -> dict[str, Any]:
        instances: dict[str, Any] | None = getattr(self._local, "instances", None)
        if instances is None:
            instances = {}
            self._local.instances = instances
        return instances

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        instances = self._instances()
        if name not in instances:
            instances[name] = object_factory()
        return instances[name]

    def remove(self, name: str) -> Any | None:
        return self._instances().pop(name, None)


__all__ = [
    "PROTOTYPE",
    "SCOPED_TARGET_PREFIX",
    "SINGLETON",
    "THREAD",
    "Scope",
    "ScopedProxyMode",
    "ThreadScope",
    "is_scoped_target",
    "scoped_target_name",
]
