"""Tests for @bean method interception on enhanced configuration classes."""

import threading

import pytest

from beanwire import (
    PROTOTYPE,
    THREAD,
    BeanWireCircularDependencyError,
    BeanWireConfigurationConflictError,
    BeanWireMissingContainerError,
    ConfigurationClassEnhancer,
    Container,
    ScopedProxyMode,
    bean,
    configuration,
)
from beanwire._internal.invocation import currently_invoked_factory_method, invoking
from beanwire._internal.metadata import collect_factory_methods


class Database:
    pass


class Repository:
    def __init__(self, db: Database) -> None:
        self.db = db


class Service:
    def __init__(self, repository: Repository, db: Database) -> None:
        self.repository = repository
        self.db = db


@configuration
class AppConfig:
    def __init__(self) -> None:
        self.database_calls = 0

    @bean
    def database(self) -> Database:
        self.database_calls += 1
        return Database()

    @bean
    def repository(self) -> Repository:
        return Repository(self.database())

    @bean
    def service(self) -> Service:
        return Service(self.repository(), self.database())

    def helper(self) -> str:
        return "plain"


def _factory_method(config_cls: type, attribute_name: str):
    return next(
        factory_method
        for factory_method in collect_factory_methods(config_cls)
        if factory_method.attribute_name == attribute_name
    )


class TestSingletonReferences:
    def test_body_runs_once_for_shared_dependency(self, container: Container) -> None:
        """Several beans calling the same @bean method share one instance."""
        container.register_configuration(AppConfig)

        service = container.get_bean("service")
        config = container.get_bean(AppConfig)

        assert service.db is service.repository.db
        assert service.db is container.get_bean("database")
        assert config.database_calls == 1

    def test_direct_call_returns_managed_instance(self, container: Container) -> None:
        """Calling a @bean method from user code returns the container's bean."""
        container.register_configuration(AppConfig)
        config = container.get_bean(AppConfig)

        first = config.database()
        second = config.database()

        assert first is second
        assert first is container.get_bean(Database)
        assert config.database_calls == 1

    def test_plain_methods_are_not_intercepted(self, container: Container) -> None:
        container.register_configuration(AppConfig)
        config = container.get_bean(AppConfig)

        assert config.helper() == "plain"
        assert "helper" not in vars(type(config))

    def test_separate_containers_own_separate_singletons(self) -> None:
        first = Container()
        second = Container()
        first.register_configuration(AppConfig)
        second.register_configuration(AppConfig)

        assert first.get_bean("database") is not second.get_bean("database")
        assert type(first.get_bean(AppConfig)) is type(second.get_bean(AppConfig))


class TestContainerInvocationPath:
    def test_marked_invocation_runs_method_body(self, container: Container) -> None:
        """With the currently-invoked marker set, the body runs even for an existing singleton."""
        container.register_configuration(AppConfig)
        config = container.get_bean(AppConfig)
        cached = container.get_bean("database")

        with invoking(_factory_method(AppConfig, "database").invocation_key):
            fresh = config.database()

        assert fresh is not cached
        assert config.database_calls == 2
        assert config.database() is cached

    def test_marker_is_hidden_while_body_runs(self, container: Container) -> None:
        """Calls made by a method body are bean references, not container invocations."""
        observed: list[object] = []

        class ObservingConfig:
            @bean
            def value(self) -> Database:
                observed.append(currently_invoked_factory_method())
                return Database()

        container.register_configuration(ObservingConfig)
        container.get_bean("value")

        assert observed == [None]
        assert currently_invoked_factory_method() is None

    def test_marker_for_other_method_does_not_run_body(self, container: Container) -> None:
        container.register_configuration(AppConfig)
        config = container.get_bean(AppConfig)
        cached = container.get_bean("database")

        with invoking(_factory_method(AppConfig, "repository").invocation_key):
            assert config.database() is cached

        assert config.database_calls == 1


@configuration
class CyclicConfig:
    @bean
    def first(self) -> Repository:
        return Repository(self.second())

    @bean
    def second(self) -> Database:
        self.first()
        return Database()


@configuration
class SelfReferencingConfig:
    @bean
    def node(self) -> Database:
        self.node()
        return Database()


@configuration
class PrototypeCycleConfig:
    @bean(scope=PROTOTYPE)
    def left(self) -> Repository:
        return Repository(self.right())

    @bean(scope=PROTOTYPE)
    def right(self) -> Database:
        self.left()
        return Database()


class TestCircularReferences:
    def test_cycle_between_singletons_is_detected(self, container: Container) -> None:
        container.register_configuration(CyclicConfig)

        with pytest.raises(BeanWireCircularDependencyError) as exc_info:
            container.get_bean("first")

        assert exc_info.value.name == "first"
        assert exc_info.value.creation_stack == ["first", "second"]
        assert "first -> second -> first" in str(exc_info.value)

    def test_cycle_leaves_no_creation_markers(self, container: Container) -> None:
        container.register_configuration(CyclicConfig)

        with pytest.raises(BeanWireCircularDependencyError):
            container.get_bean("first")

        assert not container.is_currently_in_creation("first")
        assert not container.is_currently_in_creation("second")
        assert "first" not in container._registry.singleton_names
        assert "second" not in container._registry.singleton_names

    def test_self_reference_is_detected(self, container: Container) -> None:
        container.register_configuration(SelfReferencingConfig)

        with pytest.raises(BeanWireCircularDependencyError) as exc_info:
            container.get_bean("node")

        assert exc_info.value.creation_stack == ["node"]
        assert not container.is_currently_in_creation("node")

    def test_cycle_between_prototypes_is_detected(self, container: Container) -> None:
        container.register_configuration(PrototypeCycleConfig)

        with pytest.raises(BeanWireCircularDependencyError):
            container.get_bean("left")

        assert container._registry.names_in_creation() == []

    def test_failed_creation_can_be_retried_after_fix(self, container: Container) -> None:
        container.register_configuration(CyclicConfig)
        with pytest.raises(BeanWireCircularDependencyError):
            container.get_bean("first")

        container.register_singleton("second", Database())

        assert isinstance(container.get_bean("first"), Repository)


class Greeter:
    def __init__(self, name: str) -> None:
        self.name = name


@configuration
class ArgumentsConfig:
    @bean(scope=PROTOTYPE)
    def greeter(self, name: str = "world") -> Greeter:
        return Greeter(name)

    @bean
    def shared_greeter(self, name: str = "shared") -> Greeter:
        return Greeter(name)


class TestReferenceArguments:
    def test_arguments_reach_prototype_body(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        greeter = config.greeter("alice")

        assert greeter.name == "alice"
        assert config.greeter("alice") is not greeter
        assert config.greeter().name == "world"

    def test_keyword_arguments_reach_prototype_body(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        assert config.greeter(name="bob").name == "bob"

    def test_arguments_ignored_for_existing_singleton(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)
        existing = container.get_bean("shared_greeter")

        assert config.shared_greeter("other") is existing
        assert existing.name == "shared"

    def test_arguments_used_for_first_singleton_creation(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        greeter = config.shared_greeter("first")

        assert greeter.name == "first"
        assert container.get_bean("shared_greeter") is greeter

    def test_none_arguments_are_resolved_by_container(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        assert config.shared_greeter(None).name == "shared"
        assert config.greeter(None).name == "world"

    def test_unknown_keyword_argument_is_rejected(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        with pytest.raises(TypeError, match="ArgumentsConfig.greeter"):
            config.greeter(nmae="bob")

    def test_surplus_positional_argument_is_rejected(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)
        config = container.get_bean(ArgumentsConfig)

        with pytest.raises(TypeError, match="ArgumentsConfig.greeter"):
            config.greeter("bob", "extra")

    def test_surplus_lookup_argument_is_rejected(self, container: Container) -> None:
        container.register_configuration(ArgumentsConfig)

        with pytest.raises(TypeError, match="takes 1 argument"):
            container.get_bean("greeter", "bob", "extra")


@configuration
class ConflictConfig:
    @bean
    def database(self) -> Database:
        return Database()

    @bean
    def repository(self) -> Repository:
        return Repository(self.database())


class TestConfigurationConflict:
    def test_incompatible_override_is_rejected(self, container: Container) -> None:
        container.register_configuration(ConflictConfig)
        container.register_singleton("database", "not a database")

        with pytest.raises(BeanWireConfigurationConflictError) as exc_info:
            container.get_bean("repository")

        message = str(exc_info.value)
        assert "ConflictConfig.database" in message
        assert "[Database]" in message
        assert "[str]" in message
        assert "Overriding bean of same name declared in" in message

    def test_compatible_override_is_returned(self, container: Container) -> None:
        class SpecialDatabase(Database):
            pass

        override = SpecialDatabase()
        container.register_configuration(ConflictConfig)
        container.register_singleton("database", override)

        assert container.get_bean("repository").db is override


class TestMissingContainer:
    def test_enhanced_instance_without_container_raises(self) -> None:
        enhanced = ConfigurationClassEnhancer().enhance(AppConfig)
        config = enhanced()

        with pytest.raises(BeanWireMissingContainerError) as exc_info:
            config.database()

        assert "Container has not been injected" in str(exc_info.value)
        assert "AppConfig.database" in str(exc_info.value)

    def test_plain_configuration_class_is_untouched(self) -> None:
        """The user's class keeps plain method semantics; only the subclass intercepts."""
        config = AppConfig()

        assert config.database() is not config.database()
        assert config.database_calls == 2


class RequestContext:
    def __init__(self) -> None:
        self.thread_name = threading.current_thread().name


class Handler:
    def __init__(self, context: RequestContext) -> None:
        self.context = context


@configuration
class ScopedConfig:
    @bean(scope=THREAD, proxy_mode=ScopedProxyMode.TARGET_CLASS)
    def request_context(self) -> RequestContext:
        return RequestContext()

    @bean
    def handler(self) -> Handler:
        return Handler(self.request_context())


class TestScopedProxyReferences:
    def test_reference_returns_proxy(self, container: Container) -> None:
        container.register_configuration(ScopedConfig)

        handler = container.get_bean("handler")

        assert isinstance(handler.context, RequestContext)
        assert type(handler.context) is not RequestContext
        assert handler.context is container.get_bean("request_context")

    def test_proxy_forwards_to_thread_target(self, container: Container) -> None:
        container.register_configuration(ScopedConfig)
        proxy = container.get_bean("handler").context
        seen: list[str] = []

        worker = threading.Thread(target=lambda: seen.append(proxy.thread_name), name="worker")
        worker.start()
        worker.join()

        assert proxy.thread_name == threading.current_thread().name
        assert seen == ["worker"]

    def test_call_while_plain_name_in_creation_returns_target(self, container: Container) -> None:
        """While the proxy name is in creation, the method resolves the scoped target."""
        container.register_configuration(ScopedConfig)
        config = container.get_bean(ScopedConfig)

        container.set_currently_in_creation("request_context", True)
        try:
            target = config.request_context()
        finally:
            container.set_currently_in_creation("request_context", False)

        assert type(target) is RequestContext
        assert target is container.get_bean("scopedTarget.request_context")

    def test_scoped_target_is_not_autowired_by_type(self, container: Container) -> None:
        container.register_configuration(ScopedConfig)

        assert container.get_bean_names_for_type(RequestContext) == ["request_context"]
