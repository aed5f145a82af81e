from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from beanwire.exceptions import BeanWireCircularDependencyError, BeanWireInvariantViolationError

logger = logging.getLogger(__name__)

_ABSENT = object()


@dataclass(slots=True)
class CreationRecord:
    """Creation state tracked for one bean name."""

    instance: Any = _ABSENT
    in_creation: bool = False

    @property
    def is_created(self) -> bool:
        return self.instance is not _ABSENT


class SingletonRegistry:
    """Own created singletons and their in-creation markers.

    Reads of completed singletons go through a plain dict lookup and never take
    the lock. Every mutation happens under ``singleton_lock``, a single
    reentrant lock, so nested creations of different names on one thread do not
    deadlock.
    """

    def __init__(self) -> None:
        self.singleton_lock = threading.RLock()
        self._singletons: dict[str, Any] = {}
        self._records: dict[str, CreationRecord] = {}

    def get_if_present(self, name: str) -> Any | None:
        """Return the completed singleton for ``name`` or ``None``."""
        return self._singletons.get(name)

    def contains_singleton(self, name: str) -> bool:
        return name in self._singletons

    @property
    def singleton_names(self) -> list[str]:
        with self.singleton_lock:
            return list(self._singletons)

    @property
    def singleton_count(self) -> int:
        return len(self._singletons)

    def is_in_creation(self, name: str) -> bool:
        record = self._records.get(name)
        return record is not None and record.in_creation

    def begin_creation(self, name: str) -> None:
        """Mark ``name`` as being created.

        Raises:
            BeanWireCircularDependencyError: If ``name`` is already in creation.

        """
        with self.singleton_lock:
            record = self._records.setdefault(name, CreationRecord())
            if record.in_creation:
                raise BeanWireCircularDependencyError(name, self.names_in_creation())
            record.in_creation = True

    def end_creation(self, name: str) -> None:
        """Clear the in-creation marker set by ``begin_creation``.

        Raises:
            BeanWireInvariantViolationError: If ``name`` is not in creation.

        """
        with self.singleton_lock:
            record = self._records.get(name)
            if record is None or not record.in_creation:
                msg = f"Singleton '{name}' isn't currently in creation"
                raise BeanWireInvariantViolationError(msg)
            record.in_creation = False

    def set_in_creation(self, name: str, in_creation: bool) -> None:  # noqa: FBT001
        """Force the in-creation marker of ``name`` without pairing checks."""
        with self.singleton_lock:
            self._records.setdefault(name, CreationRecord()).in_creation = in_creation

    @contextmanager
    def creating(self, name: str) -> Iterator[None]:
        self.begin_creation(name)
        try:
            yield
        finally:
            self.end_creation(name)

    def names_in_creation(self) -> list[str]:
        with self.singleton_lock:
            return [name for name, record in self._records.items() if record.in_creation]

    def register(self, name: str, instance: Any) -> None:
        """Record a completed singleton.

        Raises:
            BeanWireInvariantViolationError: If a different instance is already
                registered under ``name``.

        """
        with self.singleton_lock:
            existing = self._singletons.get(name, _ABSENT)
            if existing is not _ABSENT and existing is not instance:
                msg = (
                    f"Could not register object [{instance!r}] under bean name '{name}': "
                    f"there is already object [{existing!r}] bound"
                )
                raise BeanWireInvariantViolationError(msg)
            self._singletons[name] = instance
            self._records.setdefault(name, CreationRecord()).instance = instance

    def get_or_create(self, name: str, factory: Callable[[], Any]) -> Any:
        """Return the singleton for ``name``, creating it with ``factory`` once.

        Concurrent first-time calls for the same name run ``factory`` exactly
        once; the other callers block on the singleton lock and observe the
        registered instance.
        """
        if name in self._singletons:
            return self._singletons[name]
        with self.singleton_lock:
            if name in self._singletons:
                return self._singletons[name]
            logger.debug("Creating shared instance of singleton bean '%s'", name)
            with self.creating(name):
                instance = factory()
            self.register(name, instance)
            return instance

    def remove(self, name: str) -> None:
        with self.singleton_lock:
            self._singletons.pop(name, None)
            self._records.pop(name, None)


__all__ = ["CreationRecord", "SingletonRegistry"]
