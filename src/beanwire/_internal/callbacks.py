from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from beanwire._internal.invocation import invoking, is_currently_invoked
from beanwire._internal.metadata import MISSING_ANNOTATION, SET_CONTAINER_METHOD, FactoryMethod
from beanwire._internal.redirector import FactoryBeanRedirector
from beanwire._internal.type_checks import is_assignable_value
from beanwire.aware import ContainerAware
from beanwire.exceptions import (
    BeanWireBeanNotFoundError,
    BeanWireConfigurationConflictError,
    BeanWireInvariantViolationError,
    BeanWireMissingContainerError,
)
from beanwire.factory_bean import FACTORY_BEAN_PREFIX, ScopedProxyFactoryBean
from beanwire.scope import scoped_target_name

if TYPE_CHECKING:
    from beanwire.container import Container

logger = logging.getLogger(__name__)

CONTAINER_FIELD = "_beanwire_container"


@dataclass(frozen=True, slots=True)
class MethodCandidate:
    """A method of a configuration class considered for interception."""

    name: str
    function: Callable[..., Any] = field(compare=False)
    declaring_class: type[Any]
    factory_method: FactoryMethod | None = None


class Callback(Protocol):
    def intercept(
        self,
        instance: Any,
        method: MethodCandidate,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any: ...


@runtime_checkable
class ConditionalCallback(Protocol):
    """Callback that only applies to methods it matches."""

    def is_match(self, method: MethodCandidate) -> bool: ...


class NoOp:
    """Leave the method as declared on the configuration class."""

    def intercept(
        self,
        instance: Any,
        method: MethodCandidate,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        return method.function(instance, *args, **kwargs)

    def __repr__(self) -> str:
        return "NO_OP"


NO_OP = NoOp()


class CallbackFilter:
    """Route a method to the first callback that accepts it.

    Callbacks are tried in order. Conditional callbacks accept the methods they
    match; any other callback accepts every method, which makes it a catch-all.
    """

    def __init__(self, callbacks: Sequence[Callback]) -> None:
        self.callbacks = tuple(callbacks)
        self.callback_types = tuple(type(callback) for callback in self.callbacks)

    def accept(self, method: MethodCandidate) -> int:
        """Return the index of the callback handling ``method``.

        Raises:
            BeanWireInvariantViolationError: If no callback accepts the method.

        """
        for index, callback in enumerate(self.callbacks):
            if not isinstance(callback, ConditionalCallback) or callback.is_match(method):
                return index
        msg = f"No callback available for method {method.name}"
        raise BeanWireInvariantViolationError(msg)


class ContainerAwareMethodInterceptor:
    """Store the container handed to ``set_container`` on the enhanced instance."""

    def intercept(
        self,
        instance: Any,
        method: MethodCandidate,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        container = args[0] if args else kwargs["container"]
        current = getattr(instance, CONTAINER_FIELD, None)
        if current is not None and current is not container:
            msg = (
                f"Configuration instance {instance!r} is already bound to another container; "
                "the container back-reference can only be set once"
            )
            raise BeanWireInvariantViolationError(msg)
        object.__setattr__(instance, CONTAINER_FIELD, container)

        # Also run the original set_container when the user class implements it.
        original_class = getattr(type(instance), "__beanwire_original_class__", None)
        if original_class is not None and issubclass(original_class, ContainerAware):
            return method.function(instance, *args, **kwargs)
        return None

    def is_match(self, method: MethodCandidate) -> bool:
        if method.name != SET_CONTAINER_METHOD:
            return False
        if not issubclass(method.declaring_class, ContainerAware):
            return False
        parameters = list(inspect.signature(method.function).parameters.values())
        return len(parameters) == 2  # noqa: PLR2004


class BeanMethodInterceptor:
    """Redirect ``@bean`` method calls to the container.

    The original method body only runs when the container itself invokes the
    method to create the bean. Any other call, typically one ``@bean`` method
    calling another, is a bean reference and returns the container-managed
    instance.
    """

    def __init__(self, redirector: FactoryBeanRedirector | None = None) -> None:
        self._redirector = redirector or FactoryBeanRedirector()

    def is_match(self, method: MethodCandidate) -> bool:
        return method.factory_method is not None

    def intercept(
        self,
        instance: Any,
        method: MethodCandidate,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        factory_method = method.factory_method
        if factory_method is None:  # pragma: no cover - guarded by is_match
            msg = f"Method {method.name} is not a @bean method"
            raise BeanWireInvariantViolationError(msg)

        container = self._get_container(instance, factory_method)
        bean_name = factory_method.bean_name

        if factory_method.is_scoped_proxy:
            target_name = scoped_target_name(bean_name)
            in_creation = container.is_currently_in_creation
            if in_creation(target_name) or in_creation(bean_name):
                bean_name = target_name

        if self._factory_contains_bean(
            container,
            FACTORY_BEAN_PREFIX + bean_name,
        ) and self._factory_contains_bean(container, bean_name):
            factory_bean = container.get_bean(FACTORY_BEAN_PREFIX + bean_name)
            if not isinstance(factory_bean, ScopedProxyFactoryBean):
                logger.debug(
                    "Redirecting get_object() of factory bean '%s' returned by %s to the container",
                    bean_name,
                    factory_method.qualified_name,
                )
                return self._redirector.redirect(factory_bean, container, bean_name)

        if is_currently_invoked(factory_method):
            # The container is creating the bean; hide the marker so calls made by
            # the body, including calls back into this method, are bean references.
            with invoking(None):
                return method.function(instance, *args, **kwargs)

        return self._resolve_bean_reference(
            container,
            instance,
            factory_method,
            bean_name,
            args,
            kwargs,
        )

    def _resolve_bean_reference(
        self,
        container: Container,
        instance: Any,
        factory_method: FactoryMethod,
        bean_name: str,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        # The bean may already be marked as in creation, for example when its
        # own parameters are being resolved; clear the marker so the lookup is
        # not rejected, and put it back afterwards.
        already_in_creation = False
        if container.is_currently_in_creation(bean_name):
            with container.singleton_mutex:
                already_in_creation = container.is_currently_in_creation(bean_name)
                if already_in_creation:
                    container.set_currently_in_creation(bean_name, False)
        try:
            lookup_args = self._lookup_args(instance, factory_method, args, kwargs)
            use_args = any(arg is not None for arg in lookup_args)
            if use_args and container.is_singleton(bean_name) and None in lookup_args:
                # Placeholder arguments; the container autowires singleton parameters.
                use_args = False
            if use_args:
                bean_instance = container.get_bean(bean_name, *lookup_args)
            else:
                bean_instance = container.get_bean(bean_name)
            self._check_assignable(container, factory_method, bean_name, bean_instance)
            return bean_instance
        finally:
            if already_in_creation:
                container.set_currently_in_creation(bean_name, True)

    def _lookup_args(
        self,
        instance: Any,
        factory_method: FactoryMethod,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> list[Any]:
        # Bind like a plain call so unknown keywords and surplus positionals fail.
        signature = inspect.signature(factory_method.function)
        try:
            bound = signature.bind_partial(instance, *args, **kwargs)
        except TypeError as error:
            msg = f"Invalid arguments for @bean method {factory_method.qualified_name}: {error}"
            raise TypeError(msg) from error
        arguments = bound.arguments
        lookup_args = [arguments.get(parameter.name) for parameter in factory_method.parameters]
        while lookup_args and lookup_args[-1] is None:
            lookup_args.pop()
        return lookup_args

    def _check_assignable(
        self,
        container: Container,
        factory_method: FactoryMethod,
        bean_name: str,
        bean_instance: Any,
    ) -> None:
        return_type = factory_method.return_type
        if return_type is MISSING_ANNOTATION or is_assignable_value(return_type, bean_instance):
            return
        msg = (
            f"@bean method {factory_method.qualified_name} called as a bean reference "
            f"for type [{getattr(return_type, '__qualname__', return_type)}] but overridden "
            f"by non-compatible bean instance of type [{type(bean_instance).__qualname__}]."
        )
        try:
            source = container.get_bean_definition(bean_name).source
        except BeanWireBeanNotFoundError:
            source = None
        if source:
            msg += f" Overriding bean of same name declared in: {source}"
        raise BeanWireConfigurationConflictError(msg)

    def _factory_contains_bean(self, container: Container, name: str) -> bool:
        return container.contains_bean(name) and not container.is_currently_in_creation(name)

    def _get_container(self, instance: Any, factory_method: FactoryMethod) -> Container:
        container = getattr(instance, CONTAINER_FIELD, None)
        if container is None:
            msg = (
                f"Container has not been injected into {type(instance).__qualname__}; "
                f"cannot call @bean method {factory_method.qualified_name}. Register the "
                "configuration class with Container.register_configuration() instead of "
                "instantiating the enhanced class directly."
            )
            raise BeanWireMissingContainerError(msg)
        return container


CALLBACKS: tuple[Callback, ...] = (
    BeanMethodInterceptor(),
    ContainerAwareMethodInterceptor(),
    NO_OP,
)
"""Process-wide, stateless callbacks. Order matters: the first match wins."""

CALLBACK_FILTER = CallbackFilter(CALLBACKS)


__all__ = [
    "CALLBACKS",
    "CALLBACK_FILTER",
    "CONTAINER_FIELD",
    "NO_OP",
    "BeanMethodInterceptor",
    "Callback",
    "CallbackFilter",
    "ConditionalCallback",
    "ContainerAwareMethodInterceptor",
    "MethodCandidate",
    "NoOp",
]
