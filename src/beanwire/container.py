from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar, overload

from beanwire._internal.creation_stack import get_creation_stack, tracking_creation
from beanwire._internal.enhancer import ConfigurationClassEnhancer, original_class
from beanwire._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from beanwire._internal.invocation import invoking
from beanwire._internal.metadata import MISSING_ANNOTATION, FactoryMethod, FactoryMethodParameter
from beanwire._internal.type_checks import is_runtime_class
from beanwire.exceptions import (
    BeanWireBeanCreationError,
    BeanWireBeanNotFoundError,
    BeanWireError,
    BeanWireInvalidRegistrationError,
    BeanWireNoUniqueBeanError,
)
from beanwire.factory_bean import (
    FACTORY_BEAN_PREFIX,
    FactoryBean,
    ScopedProxyFactoryBean,
    is_factory_dereference,
    transformed_bean_name,
)
from beanwire.registry import SingletonRegistry
from beanwire.scope import (
    PROTOTYPE,
    SINGLETON,
    THREAD,
    Scope,
    ScopedProxyMode,
    ThreadScope,
    is_scoped_target,
    scoped_target_name,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

_ENHANCER = ConfigurationClassEnhancer()

_ABSENT = object()


@dataclass(frozen=True, slots=True)
class BeanDefinition:
    """Recipe for creating one bean.

    Definitions created from ``@bean`` methods carry a ``factory_method`` and the
    name of the configuration bean declaring it. Synthetic definitions, such as
    configuration classes and scoped proxies, carry an ``instantiate`` callable
    instead.
    """

    name: str
    scope: str = SINGLETON
    bean_type: Any = MISSING_ANNOTATION
    product_type: Any = MISSING_ANNOTATION
    factory_method: FactoryMethod | None = None
    config_name: str | None = None
    instantiate: Callable[[], Any] | None = field(default=None, compare=False, repr=False)
    proxy_mode: ScopedProxyMode = ScopedProxyMode.NO
    lazy: bool = False
    aliases: tuple[str, ...] = ()
    autowire_candidate: bool = True
    source: str | None = None

    @property
    def is_singleton(self) -> bool:
        return self.scope == SINGLETON

    @property
    def is_prototype(self) -> bool:
        return self.scope == PROTOTYPE


class Container:
    """Create and manage beans declared by configuration classes.

    Configuration classes declare beans with ``@bean`` methods. Registration
    enhances each class with a generated subclass whose ``@bean`` methods route
    through the container: the method body runs only when the container creates
    the bean, while calls from other ``@bean`` methods return the managed
    instance. Singletons are therefore created once even when several beans
    reference them by calling the method directly.

    Examples:
        .. code-block:: python

            @configuration
            class AppConfig:
                @bean
                def database(self) -> Database:
                    return Database()

                @bean
                def repository(self) -> Repository:
                    return Repository(self.database())


            container = Container()
            container.register_configuration(AppConfig)
            assert container.get_bean(Repository).db is container.get_bean("database")

    """

    def __init__(
        self,
        *,
        allow_bean_definition_overriding: bool = True,
        autoregister_settings: bool = True,
    ) -> None:
        """Initialize an empty container.

        Args:
            allow_bean_definition_overriding: Let a later registration replace a
                bean definition of the same name. When disabled, duplicate names
                raise ``BeanWireInvalidRegistrationError``.
            autoregister_settings: Create ``pydantic-settings`` ``BaseSettings``
                subclasses on demand when a ``@bean`` method parameter asks for
                one and no bean provides it.

        """
        self._allow_bean_definition_overriding = allow_bean_definition_overriding
        self._autoregister_settings = autoregister_settings

        self._enhancer = _ENHANCER
        self._registry = SingletonRegistry()
        self._definitions: dict[str, BeanDefinition] = {}
        self._aliases: dict[str, str] = {}
        self._definitions_lock = threading.RLock()
        self._scopes: dict[str, Scope] = {THREAD: ThreadScope()}
        self._factory_bean_objects: dict[str, Any] = {}

    # region Registration
    def register_configuration(self, config_cls: type[Any], *, name: str | None = None) -> str:
        """Register a configuration class and the beans its ``@bean`` methods declare.

        Args:
            config_cls: Configuration class. Already enhanced classes are accepted.
            name: Bean name of the configuration instance. Defaults to the class
                name with a lowercase first letter.

        Returns:
            The bean name of the configuration instance.

        Raises:
            BeanWireInvalidRegistrationError: If the class cannot be enhanced or a
                bean name clashes while overriding is disabled.

        """
        enhanced_cls = self._enhancer.enhance(config_cls)
        declared_cls = original_class(enhanced_cls)
        config_name = name or _default_bean_name(declared_cls)
        self.register_bean_definition(
            BeanDefinition(
                name=config_name,
                bean_type=enhanced_cls,
                instantiate=lambda: self._instantiate_configuration(enhanced_cls),
                source=_describe_class(declared_cls),
            ),
        )
        for factory_method in self._enhancer.factory_methods(enhanced_cls):
            self._register_factory_method(config_name, factory_method)
        return config_name

    def _register_factory_method(self, config_name: str, factory_method: FactoryMethod) -> None:
        declared_in = _describe_class(factory_method.declaring_class)
        source = f"{declared_in}.{factory_method.attribute_name}"
        bean_name = factory_method.bean_name
        if not factory_method.is_scoped_proxy:
            self.register_bean_definition(
                BeanDefinition(
                    name=bean_name,
                    scope=factory_method.scope,
                    bean_type=factory_method.return_type,
                    factory_method=factory_method,
                    config_name=config_name,
                    lazy=factory_method.lazy,
                    aliases=factory_method.aliases,
                    source=source,
                ),
            )
            return

        target_name = scoped_target_name(bean_name)
        return_type = factory_method.return_type
        target_type = return_type if is_runtime_class(return_type) else None
        self.register_bean_definition(
            BeanDefinition(
                name=target_name,
                scope=factory_method.scope,
                bean_type=factory_method.return_type,
                factory_method=factory_method,
                config_name=config_name,
                proxy_mode=factory_method.proxy_mode,
                lazy=True,
                autowire_candidate=False,
                source=source,
            ),
        )
        self.register_bean_definition(
            BeanDefinition(
                name=bean_name,
                bean_type=ScopedProxyFactoryBean,
                product_type=target_type,
                instantiate=lambda: ScopedProxyFactoryBean(self, target_name, target_type),
                proxy_mode=factory_method.proxy_mode,
                lazy=factory_method.lazy,
                aliases=factory_method.aliases,
                source=source,
            ),
        )

    def register_bean_definition(self, definition: BeanDefinition) -> None:
        """Register a bean definition and its aliases.

        Raises:
            BeanWireInvalidRegistrationError: If the name is taken and overriding
                is disabled, or the scope is unknown.

        """
        if definition.scope not in {SINGLETON, PROTOTYPE} and definition.scope not in self._scopes:
            msg = (
                f"No scope registered for scope name '{definition.scope}' "
                f"(bean '{definition.name}')"
            )
            raise BeanWireInvalidRegistrationError(msg)
        with self._definitions_lock:
            existing = self._definitions.get(definition.name)
            if existing is not None:
                if not self._allow_bean_definition_overriding:
                    msg = (
                        f"Cannot register bean definition for bean '{definition.name}' from "
                        f"{definition.source}: there is already a definition from "
                        f"{existing.source} bound"
                    )
                    raise BeanWireInvalidRegistrationError(msg)
                logger.info(
                    "Overriding bean definition for bean '%s' with a different definition: "
                    "replacing [%s] with [%s]",
                    definition.name,
                    existing.source,
                    definition.source,
                )
            self._definitions[definition.name] = definition
            for alias in definition.aliases:
                self.register_alias(definition.name, alias)

    def register_alias(self, name: str, alias: str) -> None:
        with self._definitions_lock:
            if alias == name:
                self._aliases.pop(alias, None)
                return
            if alias in self._definitions:
                msg = (
                    f"Cannot register alias '{alias}' for bean '{name}': "
                    "a bean of that name exists"
                )
                raise BeanWireInvalidRegistrationError(msg)
            self._aliases[alias] = name

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register an existing object as a singleton under ``name``."""
        self._registry.register(name, instance)

    def register_scope(self, name: str, scope: Scope) -> None:
        """Register a custom scope usable from ``@bean(scope=name)``.

        Raises:
            BeanWireInvalidRegistrationError: When replacing the built-in
                ``singleton`` or ``prototype`` scopes.

        """
        if name in {SINGLETON, PROTOTYPE}:
            msg = f"Cannot replace the built-in '{name}' scope"
            raise BeanWireInvalidRegistrationError(msg)
        self._scopes[name] = scope

    def get_registered_scope(self, name: str) -> Scope | None:
        return self._scopes.get(name)

    # endregion Registration

    # region Lookup
    @overload
    def get_bean(self, key: type[T], /, *args: Any) -> T: ...

    @overload
    def get_bean(self, key: str, /, *args: Any) -> Any: ...

    def get_bean(self, key: str | type[Any], /, *args: Any) -> Any:
        """Return the bean registered under a name or type, creating it if needed.

        Prefix a name with ``&`` to get a factory bean itself instead of its
        product. Explicit ``args`` replace the factory method arguments when the
        bean is created; they are ignored for singletons that already exist, and
        ``None`` entries are resolved by the container.

        Args:
            key: Bean name or type.
            *args: Explicit factory method arguments.

        Raises:
            BeanWireBeanNotFoundError: If no bean matches ``key``.
            BeanWireNoUniqueBeanError: If ``key`` is a type matching several beans.
            BeanWireCircularDependencyError: If the bean is requested again while
                it is being created on the current call stack.
            BeanWireBeanCreationError: If user code raised while creating the bean.
            TypeError: If more ``args`` are given than the factory method accepts.

        """
        if not isinstance(key, str):
            return self.get_bean(self._bean_name_for_type(key), *args)

        bean_name = self.canonical_name(transformed_bean_name(key))

        shared_instance = self._registry.get_if_present(bean_name)
        if shared_instance is not None or self._registry.contains_singleton(bean_name):
            return self._object_for_bean_instance(shared_instance, key, bean_name)

        definition = self.get_bean_definition(bean_name)
        if definition.is_singleton:
            with tracking_creation(bean_name):
                instance = self._registry.get_or_create(
                    bean_name,
                    lambda: self._create_bean(definition, args),
                )
        elif definition.is_prototype:
            with tracking_creation(bean_name):
                instance = self._create_bean(definition, args)
        else:
            scope = self._scopes.get(definition.scope)
            if scope is None:
                msg = f"No scope registered for scope name '{definition.scope}'"
                raise BeanWireInvalidRegistrationError(msg)

            def create_scoped() -> Any:
                with tracking_creation(bean_name):
                    return self._create_bean(definition, args)

            instance = scope.get(bean_name, create_scoped)
        return self._object_for_bean_instance(instance, key, bean_name)

    def contains_bean(self, name: str) -> bool:
        """Return whether a bean definition or singleton exists under ``name``.

        For ``&name`` the bean must also be a factory bean.
        """
        bean_name = self.canonical_name(transformed_bean_name(name))
        exists = bean_name in self._definitions or self._registry.contains_singleton(bean_name)
        if exists and is_factory_dereference(name):
            return self.is_factory_bean(bean_name)
        return exists

    def get_bean_definition(self, name: str) -> BeanDefinition:
        """Return the definition registered under ``name`` or one of its aliases.

        Raises:
            BeanWireBeanNotFoundError: If no definition exists.

        """
        definition = self._definitions.get(self.canonical_name(transformed_bean_name(name)))
        if definition is None:
            raise BeanWireBeanNotFoundError(name, f"No bean named '{name}' is defined")
        return definition

    def canonical_name(self, name: str) -> str:
        seen: set[str] = set()
        while name in self._aliases and name not in seen:
            seen.add(name)
            name = self._aliases[name]
        return name

    def is_singleton(self, name: str) -> bool:
        bean_name = self.canonical_name(transformed_bean_name(name))
        if self._registry.contains_singleton(bean_name):
            return True
        return self.get_bean_definition(bean_name).is_singleton

    def is_prototype(self, name: str) -> bool:
        bean_name = self.canonical_name(transformed_bean_name(name))
        if self._registry.contains_singleton(bean_name):
            return False
        return self.get_bean_definition(bean_name).is_prototype

    def is_factory_bean(self, name: str) -> bool:
        """Return whether the bean under ``name`` is a ``FactoryBean``."""
        bean_name = self.canonical_name(transformed_bean_name(name))
        if self._registry.contains_singleton(bean_name):
            return isinstance(self._registry.get_if_present(bean_name), FactoryBean)
        definition = self._definitions.get(bean_name)
        if definition is None:
            return False
        return _is_factory_bean_type(definition.bean_type)

    def get_type(self, name: str) -> type[Any] | None:
        """Return the type of the bean under ``name`` without creating it, if known.

        For factory beans this is the product type; ``&name`` returns the
        factory type.
        """
        bean_name = self.canonical_name(transformed_bean_name(name))
        dereference = is_factory_dereference(name)
        if self._registry.contains_singleton(bean_name):
            instance = self._registry.get_if_present(bean_name)
            if isinstance(instance, FactoryBean) and not dereference:
                return instance.object_type
            return type(instance)
        definition = self._definitions.get(bean_name)
        if definition is None or not is_runtime_class(definition.bean_type):
            return None
        if _is_factory_bean_type(definition.bean_type) and not dereference:
            object_type = definition.product_type
            if not is_runtime_class(object_type):
                object_type = getattr(definition.bean_type, "object_type", None)
            return object_type if is_runtime_class(object_type) else None
        return definition.bean_type

    def get_bean_names_for_type(self, bean_type: type[Any]) -> list[str]:
        """Return the names of autowire-candidate beans assignable to ``bean_type``."""
        with self._definitions_lock:
            definitions = list(self._definitions.values())
        names = [
            definition.name
            for definition in definitions
            if definition.autowire_candidate
            and _is_subclass(self.get_type(definition.name), bean_type)
        ]
        names.extend(
            name
            for name in self._registry.singleton_names
            if name not in self._definitions and _is_subclass(self.get_type(name), bean_type)
        )
        return names

    @property
    def bean_names(self) -> list[str]:
        with self._definitions_lock:
            names = list(self._definitions)
        names.extend(name for name in self._registry.singleton_names if name not in names)
        return names

    # endregion Lookup

    # region Creation state
    @property
    def singleton_mutex(self) -> threading.RLock:
        """Return the lock guarding singleton creation, for external collaborators."""
        return self._registry.singleton_lock

    def is_currently_in_creation(self, name: str) -> bool:
        """Return whether the bean under ``name`` is being created.

        Singletons count as in creation while their registry marker is set;
        other scopes while they are on the current call stack's creation stack.
        """
        bean_name = self.canonical_name(name)
        if self._registry.is_in_creation(bean_name):
            return True
        definition = self._definitions.get(bean_name)
        return (
            definition is not None
            and not definition.is_singleton
            and bean_name in get_creation_stack()
        )

    def set_currently_in_creation(self, name: str, in_creation: bool) -> None:  # noqa: FBT001
        """Force the in-creation marker of a singleton bean.

        Other scopes are tracked by the creation stack only; the call is a
        no-op for them.
        """
        bean_name = self.canonical_name(name)
        definition = self._definitions.get(bean_name)
        if definition is not None and not definition.is_singleton:
            return
        self._registry.set_in_creation(bean_name, in_creation)

    def preinstantiate_singletons(self) -> None:
        """Create every non-lazy singleton bean eagerly.

        Factory beans are created themselves; their products stay lazy.
        """
        with self._definitions_lock:
            definitions = list(self._definitions.values())
        for definition in definitions:
            if not definition.is_singleton or definition.lazy or is_scoped_target(definition.name):
                continue
            if self.is_factory_bean(definition.name):
                self.get_bean(FACTORY_BEAN_PREFIX + definition.name)
            else:
                self.get_bean(definition.name)

    # endregion Creation state

    # region Internals
    def _instantiate_configuration(self, enhanced_cls: type[Any]) -> Any:
        instance = enhanced_cls()
        instance.set_container(self)
        return instance

    def _create_bean(self, definition: BeanDefinition, args: tuple[Any, ...]) -> Any:
        logger.debug("Creating instance of bean '%s'", definition.name)
        if definition.instantiate is not None:
            try:
                return definition.instantiate()
            except BeanWireError:
                raise
            except Exception as error:
                msg = f"instantiating {definition.source or definition.name} raised {error!r}"
                raise BeanWireBeanCreationError(definition.name, msg) from error

        factory_method = definition.factory_method
        if factory_method is None or definition.config_name is None:
            msg = (
                f"Bean definition '{definition.name}' has neither a factory method "
                "nor an instantiator"
            )
            raise BeanWireInvalidRegistrationError(msg)

        config = self.get_bean(definition.config_name)
        method = getattr(config, factory_method.attribute_name)
        call_args = self._resolve_arguments(definition, factory_method, args)
        with invoking(factory_method.invocation_key):
            try:
                return method(*call_args)
            except BeanWireError:
                raise
            except Exception as error:
                msg = f"factory method {factory_method.qualified_name} raised {error!r}"
                raise BeanWireBeanCreationError(definition.name, msg) from error

    def _resolve_arguments(
        self,
        definition: BeanDefinition,
        factory_method: FactoryMethod,
        args: tuple[Any, ...],
    ) -> list[Any]:
        if len(args) > len(factory_method.parameters):
            msg = (
                f"@bean method {factory_method.qualified_name} takes "
                f"{len(factory_method.parameters)} argument(s) but {len(args)} were given "
                f"for bean '{definition.name}'"
            )
            raise TypeError(msg)
        resolved: list[Any] = []
        for index, parameter in enumerate(factory_method.parameters):
            if index < len(args) and args[index] is not None:
                resolved.append(args[index])
                continue
            resolved.append(self._resolve_parameter(definition, factory_method, parameter))
        return resolved

    def _resolve_parameter(
        self,
        definition: BeanDefinition,
        factory_method: FactoryMethod,
        parameter: FactoryMethodParameter,
    ) -> Any:
        excluded = {definition.name, transformed_bean_name(definition.name)}
        if definition.factory_method is not None and is_scoped_target(definition.name):
            excluded.add(definition.factory_method.bean_name)

        annotation = parameter.annotation
        if is_runtime_class(annotation):
            candidates = [
                name for name in self.get_bean_names_for_type(annotation) if name not in excluded
            ]
            if len(candidates) == 1:
                return self.get_bean(candidates[0])
            if len(candidates) > 1:
                if parameter.name in candidates:
                    return self.get_bean(parameter.name)
                raise BeanWireNoUniqueBeanError(annotation, candidates)

        if parameter.name not in excluded and self.contains_bean(parameter.name):
            return self.get_bean(parameter.name)

        if self._autoregister_settings and is_pydantic_settings_subclass(annotation):
            return self._settings_bean(annotation)

        if parameter.has_default:
            return parameter.default

        msg = (
            f"Unsatisfied dependency for parameter '{parameter.name}' of factory method "
            f"{factory_method.qualified_name} (bean '{definition.name}')"
        )
        raise BeanWireBeanNotFoundError(
            annotation if annotation is not MISSING_ANNOTATION else parameter.name,
            msg,
        )

    def _settings_bean(self, settings_cls: type[Any]) -> Any:
        name = _default_bean_name(settings_cls)
        with self._definitions_lock:
            if name not in self._definitions:
                logger.debug("Autoregistering settings class %s as bean '%s'", settings_cls, name)
                self.register_bean_definition(
                    BeanDefinition(
                        name=name,
                        bean_type=settings_cls,
                        instantiate=settings_cls,
                        source=_describe_class(settings_cls),
                    ),
                )
        return self.get_bean(name)

    def _object_for_bean_instance(self, instance: Any, requested_name: str, bean_name: str) -> Any:
        if is_factory_dereference(requested_name):
            if not isinstance(instance, FactoryBean):
                msg = (
                    f"Bean named '{bean_name}' is expected to be a factory bean "
                    f"but is {type(instance)!r}"
                )
                raise BeanWireBeanNotFoundError(requested_name, msg)
            return instance
        if not isinstance(instance, FactoryBean):
            return instance
        if instance.is_singleton and self._registry.contains_singleton(bean_name):
            cached = self._factory_bean_objects.get(bean_name, _ABSENT)
            if cached is not _ABSENT:
                return cached
            with self._registry.singleton_lock:
                cached = self._factory_bean_objects.get(bean_name, _ABSENT)
                if cached is _ABSENT:
                    cached = self._get_factory_object(instance, bean_name)
                    self._factory_bean_objects[bean_name] = cached
                return cached
        return self._get_factory_object(instance, bean_name)

    def _get_factory_object(self, factory: FactoryBean[Any], bean_name: str) -> Any:
        try:
            return factory.get_object()
        except BeanWireError:
            raise
        except Exception as error:
            msg = f"factory bean {type(factory).__qualname__}.get_object() raised {error!r}"
            raise BeanWireBeanCreationError(bean_name, msg) from error

    def _bean_name_for_type(self, bean_type: type[Any]) -> str:
        candidates = self.get_bean_names_for_type(bean_type)
        if not candidates:
            raise BeanWireBeanNotFoundError(bean_type)
        if len(candidates) > 1:
            raise BeanWireNoUniqueBeanError(bean_type, candidates)
        return candidates[0]

    # endregion Internals


def _default_bean_name(cls: type[Any]) -> str:
    name = cls.__name__
    return name[:1].lower() + name[1:]


def _describe_class(cls: type[Any]) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _is_factory_bean_type(candidate: Any) -> bool:
    return is_runtime_class(candidate) and issubclass(candidate, FactoryBean)


def _is_subclass(candidate: type[Any] | None, bean_type: type[Any]) -> bool:
    if candidate is None:
        return False
    try:
        return issubclass(candidate, bean_type)
    except TypeError:
        return False


__all__ = ["BeanDefinition", "Container"]
