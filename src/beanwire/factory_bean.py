from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from beanwire.container import Container

T = TypeVar("T")

FACTORY_BEAN_PREFIX = "&"
"""Prefix that dereferences a factory bean: ``get_bean("&name")`` returns the factory."""


class FactoryBean(ABC, Generic[T]):
    """Bean that produces the object exposed under its name.

    When a ``@bean`` method returns a ``FactoryBean``, ``get_bean(name)`` returns
    the product of ``get_object`` and ``get_bean("&name")`` returns the factory
    itself. Singleton products are cached by the container.

    Examples:
        .. code-block:: python

            class ClientFactory(FactoryBean[Client]):
                object_type = Client

                def get_object(self) -> Client:
                    return Client(timeout=5)

    """

    object_type: type[Any] | None = None
    """Type of the produced object, when known ahead of creation."""

    @abstractmethod
    def get_object(self) -> T:
        """Return the produced object."""

    @property
    def is_singleton(self) -> bool:
        """Return whether the container may cache the produced object."""
        return True


def is_factory_dereference(name: str) -> bool:
    return name.startswith(FACTORY_BEAN_PREFIX)


def transformed_bean_name(name: str) -> str:
    """Strip every factory-bean dereference prefix from ``name``."""
    while name.startswith(FACTORY_BEAN_PREFIX):
        name = name[len(FACTORY_BEAN_PREFIX) :]
    return name


class ScopedProxy:
    """Forward attribute access to the current target of a scoped bean.

    Every access looks the target up again, so a singleton holding the proxy
    always talks to the instance of the caller's active scope.
    """

    __slots__ = ("_beanwire_container", "_beanwire_target_name", "_beanwire_target_type")

    def __init__(
        self,
        container: Container,
        target_name: str,
        target_type: type[Any] | None,
    ) -> None:
        object.__setattr__(self, "_beanwire_container", container)
        object.__setattr__(self, "_beanwire_target_name", target_name)
        object.__setattr__(self, "_beanwire_target_type", target_type)

    def _beanwire_target(self) -> Any:
        return self._beanwire_container.get_bean(self._beanwire_target_name)

    # Keeps isinstance() checks against the declared bean type working.
    @property  # type: ignore[misc]
    def __class__(self) -> type[Any]:  # type: ignore[override]
        target_type = object.__getattribute__(self, "_beanwire_target_type")
        return target_type if target_type is not None else ScopedProxy

    def __getattr__(self, item: str) -> Any:
        return getattr(self._beanwire_target(), item)

    def __setattr__(self, key: str, value: Any) -> None:
        setattr(self._beanwire_target(), key, value)

    def __repr__(self) -> str:
        return f"ScopedProxy({self._beanwire_target_name!r})"


class ScopedProxyFactoryBean(FactoryBean[Any]):
    """Factory bean exposing a ``ScopedProxy`` for a scoped target bean.

    The interception engine passes these factories through unchanged instead of
    redirecting their ``get_object`` calls.
    """

    def __init__(
        self,
        container: Container,
        target_name: str,
        target_type: type[Any] | None = None,
    ) -> None:
        self.target_name = target_name
        self.object_type = target_type
        self._proxy = ScopedProxy(container, target_name, target_type)

    def get_object(self) -> Any:
        return self._proxy


__all__ = [
    "FACTORY_BEAN_PREFIX",
    "FactoryBean",
    "ScopedProxy",
    "ScopedProxyFactoryBean",
    "is_factory_dereference",
    "transformed_bean_name",
]
