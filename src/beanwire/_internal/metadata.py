from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias, get_type_hints

from beanwire.exceptions import BeanWireInvalidRegistrationError
from beanwire.markers import BeanSpec, get_bean_spec
from beanwire.scope import PROTOTYPE, SINGLETON, ScopedProxyMode

InvocationKey: TypeAlias = tuple[str, tuple[Any, ...]]
"""Identity of a factory method used by the currently-invoked marker: name and parameter types."""

MISSING_ANNOTATION: Any = object()

SET_CONTAINER_METHOD = "set_container"
"""Name of the container back-reference setter; never a ``@bean`` method."""

_VARIADIC_KINDS = frozenset({inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD})


@dataclass(frozen=True, slots=True)
class FactoryMethodParameter:
    """One parameter of a factory method, excluding ``self``."""

    name: str
    annotation: Any
    has_default: bool
    default: Any = None


@dataclass(frozen=True, slots=True)
class FactoryMethod:
    """Descriptor of a ``@bean`` method on a configuration class."""

    attribute_name: str
    bean_name: str
    aliases: tuple[str, ...]
    return_type: Any
    scope: str
    proxy_mode: ScopedProxyMode
    lazy: bool
    parameters: tuple[FactoryMethodParameter, ...]
    declaring_class: type[Any]
    function: Callable[..., Any] = field(repr=False, compare=False)

    @property
    def invocation_key(self) -> InvocationKey:
        return (
            self.attribute_name,
            tuple(parameter.annotation for parameter in self.parameters),
        )

    @property
    def is_singleton(self) -> bool:
        return self.scope == SINGLETON

    @property
    def is_prototype(self) -> bool:
        return self.scope == PROTOTYPE

    @property
    def is_scoped_proxy(self) -> bool:
        return self.proxy_mode.is_proxied

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_class.__name__}.{self.attribute_name}"


class FactoryMethodExtractor:
    """Reads ``@bean`` metadata from configuration classes."""

    def collect(self, config_cls: type[Any]) -> list[FactoryMethod]:
        """Return descriptors for every ``@bean`` method visible on ``config_cls``.

        Methods are taken in definition order, base classes first. An override in
        a subclass replaces the base method; an override without ``@bean`` hides
        it.

        Args:
            config_cls: Configuration class to inspect.

        Raises:
            BeanWireInvalidRegistrationError: If ``set_container`` is marked as a
                ``@bean`` method.

        """
        seen: dict[str, None] = {}
        for klass in reversed(config_cls.__mro__):
            for attribute_name in vars(klass):
                seen.setdefault(attribute_name, None)

        factory_methods: list[FactoryMethod] = []
        for attribute_name in seen:
            resolved = inspect.getattr_static(config_cls, attribute_name, None)
            spec = get_bean_spec(resolved)
            if spec is None or not inspect.isfunction(resolved):
                continue
            if attribute_name == SET_CONTAINER_METHOD:
                msg = (
                    f"{config_cls.__qualname__}.{SET_CONTAINER_METHOD} receives the owning "
                    "container and cannot be a @bean method"
                )
                raise BeanWireInvalidRegistrationError(msg)
            factory_methods.append(
                self.describe(
                    config_cls=config_cls,
                    attribute_name=attribute_name,
                    function=resolved,
                    spec=spec,
                ),
            )
        return factory_methods

    def describe(
        self,
        *,
        config_cls: type[Any],
        attribute_name: str,
        function: Callable[..., Any],
        spec: BeanSpec,
    ) -> FactoryMethod:
        type_hints = self._type_hints(function)
        signature = inspect.signature(function)
        parameters = tuple(
            FactoryMethodParameter(
                name=parameter.name,
                annotation=type_hints.get(parameter.name, self._raw_annotation(parameter)),
                has_default=parameter.default is not inspect.Parameter.empty,
                default=None if parameter.default is inspect.Parameter.empty else parameter.default,
            )
            for index, parameter in enumerate(signature.parameters.values())
            if index > 0
            and parameter.kind not in _VARIADIC_KINDS
        )
        return_type = type_hints.get("return", MISSING_ANNOTATION)
        if return_type is MISSING_ANNOTATION and not isinstance(signature.return_annotation, str):
            return_type = signature.return_annotation
        if return_type is inspect.Signature.empty:
            return_type = MISSING_ANNOTATION

        proxy_mode = spec.proxy_mode
        if proxy_mode is ScopedProxyMode.DEFAULT:
            proxy_mode = ScopedProxyMode.NO

        return FactoryMethod(
            attribute_name=attribute_name,
            bean_name=spec.name or attribute_name,
            aliases=spec.aliases,
            return_type=return_type,
            scope=spec.scope,
            proxy_mode=proxy_mode,
            lazy=spec.lazy,
            parameters=parameters,
            declaring_class=self._declaring_class(config_cls, attribute_name),
            function=function,
        )

    def _type_hints(self, function: Callable[..., Any]) -> dict[str, Any]:
        try:
            return get_type_hints(function)
        except (AttributeError, NameError, TypeError):
            return {}

    def _raw_annotation(self, parameter: inspect.Parameter) -> Any:
        if parameter.annotation is inspect.Parameter.empty:
            return MISSING_ANNOTATION
        return parameter.annotation

    def _declaring_class(self, config_cls: type[Any], attribute_name: str) -> type[Any]:
        for klass in config_cls.__mro__:
            if attribute_name in vars(klass):
                return klass
        return config_cls


def collect_factory_methods(config_cls: type[Any]) -> list[FactoryMethod]:
    """Return the ``@bean`` method descriptors of ``config_cls``."""
    return FactoryMethodExtractor().collect(config_cls)


__all__ = [
    "MISSING_ANNOTATION",
    "SET_CONTAINER_METHOD",
    "FactoryMethod",
    "FactoryMethodExtractor",
    "FactoryMethodParameter",
    "InvocationKey",
    "collect_factory_methods",
]
