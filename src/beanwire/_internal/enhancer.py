from __future__ import annotations

import functools
import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any

from beanwire._internal.callbacks import (
    CALLBACK_FILTER,
    CONTAINER_FIELD,
    NO_OP,
    Callback,
    CallbackFilter,
    MethodCandidate,
)
from beanwire._internal.metadata import SET_CONTAINER_METHOD, FactoryMethod, FactoryMethodExtractor
from beanwire.aware import ContainerAware
from beanwire.exceptions import BeanWireInvalidRegistrationError

logger = logging.getLogger(__name__)

ENHANCED_CLASS_SUFFIX = "$$BeanWireEnhanced"


class EnhancedConfiguration(ContainerAware):
    """Marker base of every enhanced configuration class.

    ``ConfigurationClassEnhancer.enhance`` returns classes deriving from it
    unchanged, which makes enhancement idempotent.
    """

    __slots__ = ()


class ConfigurationClassEnhancer:
    """Synthesize container-aware subclasses of configuration classes.

    The generated subclass overrides every ``@bean`` method so that calls reach
    the callback selected by the callback filter, and adds a slot holding the
    owning container. Subclasses are built once per configuration class and
    cached.
    """

    def __init__(
        self,
        callback_filter: CallbackFilter = CALLBACK_FILTER,
        factory_method_extractor: FactoryMethodExtractor | None = None,
    ) -> None:
        self._callback_filter = callback_filter
        self._factory_method_extractor = factory_method_extractor or FactoryMethodExtractor()
        self._lock = threading.Lock()
        self._enhanced_classes: dict[type[Any], type[Any]] = {}

    def enhance(self, config_cls: type[Any]) -> type[Any]:
        """Return the enhanced subclass of ``config_cls``.

        Args:
            config_cls: Configuration class, or an already enhanced class.

        Raises:
            BeanWireInvalidRegistrationError: If the class is marked final, its
                constructor requires arguments or it cannot be subclassed.

        """
        if issubclass(config_cls, EnhancedConfiguration):
            logger.debug(
                "Ignoring request to enhance %s as it has already been enhanced",
                config_cls.__qualname__,
            )
            return config_cls

        enhanced = self._enhanced_classes.get(config_cls)
        if enhanced is not None:
            return enhanced
        with self._lock:
            enhanced = self._enhanced_classes.get(config_cls)
            if enhanced is None:
                enhanced = self._create_class(config_cls)
                self._enhanced_classes[config_cls] = enhanced
                logger.debug(
                    "Successfully enhanced %s; enhanced class name is: %s",
                    config_cls.__qualname__,
                    enhanced.__name__,
                )
        return enhanced

    def factory_methods(self, config_cls: type[Any]) -> list[FactoryMethod]:
        """Return the ``@bean`` method descriptors of a plain or enhanced class."""
        return self._factory_method_extractor.collect(original_class(config_cls))

    def _create_class(self, config_cls: type[Any]) -> type[Any]:
        if getattr(config_cls, "__final__", False):
            msg = (
                f"Configuration class {config_cls.__qualname__} is marked final and cannot be "
                "enhanced; remove @typing.final"
            )
            raise BeanWireInvalidRegistrationError(msg)

        required = _required_init_parameters(config_cls)
        if required:
            msg = (
                f"Configuration class {config_cls.__qualname__} must be constructible without "
                f"arguments; __init__ requires {', '.join(required)}. Give the parameters "
                "defaults or inject collaborators through @bean method parameters"
            )
            raise BeanWireInvalidRegistrationError(msg)

        callback_indexes: dict[str, int] = {}
        namespace: dict[str, Any] = {
            "__slots__": (CONTAINER_FIELD,),
            "__module__": config_cls.__module__,
            "__qualname__": f"{config_cls.__qualname__}{ENHANCED_CLASS_SUFFIX}",
            "__beanwire_original_class__": config_cls,
            "__beanwire_callbacks__": callback_indexes,
        }
        for candidate in self._candidates(config_cls):
            index = self._callback_filter.accept(candidate)
            callback = self._callback_filter.callbacks[index]
            callback_indexes[candidate.name] = index
            if callback is NO_OP:
                continue
            namespace[candidate.name] = _intercepting_method(candidate, callback)

        try:
            return type(config_cls)(
                f"{config_cls.__name__}{ENHANCED_CLASS_SUFFIX}",
                (config_cls, EnhancedConfiguration),
                namespace,
            )
        except TypeError as error:
            msg = f"Configuration class {config_cls.__qualname__} cannot be subclassed: {error}"
            raise BeanWireInvalidRegistrationError(msg) from error

    def _candidates(self, config_cls: type[Any]) -> list[MethodCandidate]:
        candidates = [
            MethodCandidate(
                name=factory_method.attribute_name,
                function=factory_method.function,
                declaring_class=factory_method.declaring_class,
                factory_method=factory_method,
            )
            for factory_method in self._factory_method_extractor.collect(config_cls)
        ]
        set_container = inspect.getattr_static(config_cls, SET_CONTAINER_METHOD, None)
        declaring_class: type[Any] = ContainerAware
        if inspect.isfunction(set_container) and issubclass(config_cls, ContainerAware):
            declaring_class = next(
                klass for klass in config_cls.__mro__ if SET_CONTAINER_METHOD in vars(klass)
            )
        else:
            set_container = ContainerAware.set_container
        candidates.append(
            MethodCandidate(
                name=SET_CONTAINER_METHOD,
                function=set_container,
                declaring_class=declaring_class,
            ),
        )
        return candidates


def _intercepting_method(candidate: MethodCandidate, callback: Callback) -> Callable[..., Any]:
    @functools.wraps(candidate.function)
    def intercepted(self: Any, /, *args: Any, **kwargs: Any) -> Any:
        return callback.intercept(self, candidate, args, kwargs)

    return intercepted


def _required_init_parameters(config_cls: type[Any]) -> list[str]:
    init = config_cls.__init__
    if not inspect.isfunction(init):
        return []
    parameters = list(inspect.signature(init).parameters.values())[1:]
    return [
        parameter.name
        for parameter in parameters
        if parameter.default is inspect.Parameter.empty
        and parameter.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]


def original_class(config_cls: type[Any]) -> type[Any]:
    """Return the user-declared class behind an enhanced configuration class."""
    return getattr(config_cls, "__beanwire_original_class__", config_cls)


def is_enhanced(config_cls: type[Any]) -> bool:
    return isinstance(config_cls, type) and issubclass(config_cls, EnhancedConfiguration)


__all__ = [
    "ENHANCED_CLASS_SUFFIX",
    "ConfigurationClassEnhancer",
    "EnhancedConfiguration",
    "is_enhanced",
    "original_class",
]
