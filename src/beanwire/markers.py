from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar, overload

from beanwire.exceptions import BeanWireInvalidRegistrationError
from beanwire.factory_bean import FACTORY_BEAN_PREFIX
from beanwire.scope import SINGLETON, ScopedProxyMode

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type[Any])

BEAN_SPEC_ATTR = "__beanwire_bean__"
CONFIGURATION_ATTR = "__beanwire_configuration__"


@dataclass(frozen=True, slots=True)
class BeanSpec:
    """Metadata attached to a ``@bean`` method."""

    name: str | None
    aliases: tuple[str, ...]
    scope: str
    proxy_mode: ScopedProxyMode
    lazy: bool


@overload
def bean(func: F, /) -> F: ...


@overload
def bean(
    func: None = None,
    /,
    *,
    name: str | None = None,
    aliases: tuple[str, ...] = (),
    scope: str = SINGLETON,
    proxy_mode: ScopedProxyMode = ScopedProxyMode.DEFAULT,
    lazy: bool = False,
) -> Callable[[F], F]: ...


def bean(
    func: F | None = None,
    /,
    *,
    name: str | None = None,
    aliases: tuple[str, ...] = (),
    scope: str = SINGLETON,
    proxy_mode: ScopedProxyMode = ScopedProxyMode.DEFAULT,
    lazy: bool = False,
) -> F | Callable[[F], F]:
    """Mark a configuration-class method as a bean factory method.

    The container calls the method once per bean creation. Calling the method
    from another ``@bean`` method returns the container-managed instance instead
    of running the body again.

    Args:
        func: Method being decorated when used without parentheses.
        name: Bean name. Defaults to the method name.
        aliases: Additional names resolving to the same bean.
        scope: Scope name; ``"singleton"``, ``"prototype"`` or a name registered
            with ``Container.register_scope``.
        proxy_mode: Expose the bean through a scoped proxy.
        lazy: Skip the bean during ``Container.preinstantiate_singletons``.

    Examples:
        .. code-block:: python

            @configuration
            class AppConfig:
                @bean
                def database(self) -> Database:
                    return Database()

                @bean(name="repo", scope=PROTOTYPE)
                def repository(self) -> Repository:
                    return Repository(self.database())

    """
    for candidate in (name, *aliases):
        if candidate is None:
            continue
        if not isinstance(candidate, str) or not candidate:
            msg = f"Bean names must be non-empty strings, got {candidate!r}"
            raise BeanWireInvalidRegistrationError(msg)
        if candidate.startswith(FACTORY_BEAN_PREFIX):
            msg = f"Bean name {candidate!r} must not start with {FACTORY_BEAN_PREFIX!r}"
            raise BeanWireInvalidRegistrationError(msg)

    spec = BeanSpec(
        name=name,
        aliases=tuple(aliases),
        scope=scope,
        proxy_mode=proxy_mode,
        lazy=lazy,
    )

    def decorator(method: F) -> F:
        if not inspect.isfunction(method):
            msg = (
                f"@bean can only decorate plain instance methods, got {method!r}. "
                "Static methods, class methods and properties are not supported."
            )
            raise BeanWireInvalidRegistrationError(msg)
        setattr(method, BEAN_SPEC_ATTR, spec)
        return method

    if func is not None:
        return decorator(func)
    return decorator


def get_bean_spec(candidate: object) -> BeanSpec | None:
    """Return the ``@bean`` metadata of a function, or ``None``."""
    spec = getattr(candidate, BEAN_SPEC_ATTR, None)
    return spec if isinstance(spec, BeanSpec) else None


def configuration(cls: C) -> C:
    """Mark a class as a configuration class.

    The marker is informational: ``Container.register_configuration`` accepts
    any class declaring ``@bean`` methods.
    """
    if not isinstance(cls, type):
        msg = f"@configuration can only decorate classes, got {cls!r}"
        raise BeanWireInvalidRegistrationError(msg)
    setattr(cls, CONFIGURATION_ATTR, True)
    return cls


def is_configuration(cls: object) -> bool:
    return isinstance(cls, type) and cls.__dict__.get(CONFIGURATION_ATTR, False) is True


__all__ = [
    "BEAN_SPEC_ATTR",
    "BeanSpec",
    "bean",
    "configuration",
    "get_bean_spec",
    "is_configuration",
]
