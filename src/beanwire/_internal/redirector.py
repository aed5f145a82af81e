from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from beanwire.exceptions import BeanWireError

if TYPE_CHECKING:
    from beanwire.container import Container

logger = logging.getLogger(__name__)

_TARGET_FIELD = "_beanwire_target"
_CONTAINER_FIELD = "_beanwire_container"
_BEAN_NAME_FIELD = "_beanwire_bean_name"
_UNBOUND = object()
_OWN_ATTRIBUTES = frozenset(
    {
        _TARGET_FIELD,
        _CONTAINER_FIELD,
        _BEAN_NAME_FIELD,
        "__class__",
        "__dict__",
        "__slots__",
        "__beanwire_redirecting__",
    },
)


def _bound_target(proxy: Any) -> Any:
    # Unbound while a fallback constructor is still running.
    try:
        return object.__getattribute__(proxy, _TARGET_FIELD)
    except AttributeError:
        return _UNBOUND


def _redirecting_getattribute(self: Any, item: str) -> Any:
    if item in _OWN_ATTRIBUTES:
        return object.__getattribute__(self, item)
    target = _bound_target(self)
    if target is _UNBOUND:
        return object.__getattribute__(self, item)
    if item == "get_object":
        container = object.__getattribute__(self, _CONTAINER_FIELD)
        bean_name = object.__getattribute__(self, _BEAN_NAME_FIELD)

        def get_object() -> Any:
            return container.get_bean(bean_name)

        return get_object
    return getattr(target, item)


def _redirecting_setattr(self: Any, key: str, value: Any) -> None:
    target = _bound_target(self)
    if target is _UNBOUND or key in _OWN_ATTRIBUTES:
        object.__setattr__(self, key, value)
        return
    setattr(target, key, value)


def _redirecting_delattr(self: Any, key: str) -> None:
    target = _bound_target(self)
    if target is _UNBOUND:
        object.__delattr__(self, key)
        return
    delattr(target, key)


def _redirecting_repr(self: Any) -> str:
    target = object.__getattribute__(self, _TARGET_FIELD)
    bean_name = object.__getattribute__(self, _BEAN_NAME_FIELD)
    return f"<redirecting factory bean '{bean_name}' for {target!r}>"


class FactoryBeanRedirector:
    """Wrap factory beans so that ``get_object`` goes through the container.

    The wrapper is an instance of a generated subclass of the factory's class,
    so it passes ``isinstance`` checks against the factory type. ``get_object``
    returns ``container.get_bean(name)``; every other attribute is read from,
    and written to, the original factory bean.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._classes: dict[type[Any], type[Any]] = {}

    def redirect(self, factory_bean: Any, container: Container, bean_name: str) -> Any:
        proxy_class = self._redirecting_class(type(factory_bean))
        proxy = self._instantiate(proxy_class, type(factory_bean))
        object.__setattr__(proxy, _TARGET_FIELD, factory_bean)
        object.__setattr__(proxy, _CONTAINER_FIELD, container)
        object.__setattr__(proxy, _BEAN_NAME_FIELD, bean_name)
        return proxy

    def _redirecting_class(self, factory_class: type[Any]) -> type[Any]:
        proxy_class = self._classes.get(factory_class)
        if proxy_class is not None:
            return proxy_class
        with self._lock:
            proxy_class = self._classes.get(factory_class)
            if proxy_class is None:
                proxy_class = type(factory_class)(
                    f"{factory_class.__name__}$$BeanWireRedirecting",
                    (factory_class,),
                    {
                        "__slots__": (_TARGET_FIELD, _CONTAINER_FIELD, _BEAN_NAME_FIELD),
                        "__module__": factory_class.__module__,
                        "__beanwire_redirecting__": True,
                        "__getattribute__": _redirecting_getattribute,
                        "__setattr__": _redirecting_setattr,
                        "__delattr__": _redirecting_delattr,
                        "__repr__": _redirecting_repr,
                    },
                )
                self._classes[factory_class] = proxy_class
            return proxy_class

    def _instantiate(self, proxy_class: type[Any], factory_class: type[Any]) -> Any:
        # Allocate without running the factory's constructor.
        try:
            return object.__new__(proxy_class)
        except TypeError as error:
            logger.warning(
                "Unable to allocate redirecting proxy for factory bean class %s without "
                "running its constructor (%s); falling back to regular construction",
                factory_class.__qualname__,
                error,
            )
        try:
            return proxy_class()
        except Exception as error:
            msg = (
                f"Unable to instantiate redirecting proxy for factory bean class "
                f"{factory_class.__qualname__}: allocation without constructor failed and "
                "regular construction via the no-argument constructor failed as well"
            )
            raise BeanWireError(msg) from error


def is_redirecting_factory_bean(candidate: object) -> bool:
    return getattr(type(candidate), "__beanwire_redirecting__", False) is True


__all__ = ["FactoryBeanRedirector", "is_redirecting_factory_bean"]
