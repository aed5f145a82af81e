from __future__ import annotations

from typing import Any


class BeanWireError(Exception):
    """Represent a base class for all BeanWire-specific failures.

    Catch this type when you want to handle any BeanWire error path without
    matching each concrete exception class individually.
    """


class BeanWireInvalidRegistrationError(BeanWireError):
    """Signal invalid configuration class or bean registration.

    Raised by ``Container.register_configuration``, ``Container.register_scope``
    and the ``bean``/``configuration`` decorators when arguments are invalid.

    Typical fixes include removing ``typing.final`` from configuration classes,
    giving beans unique names, or registering custom scopes before use.
    """


class BeanWireInvariantViolationError(BeanWireError):
    """Signal an internal consistency failure of the enhancement machinery.

    Raised when creation tracking is unbalanced (``end_creation`` without a
    matching ``begin_creation``), when a method reaches the callback filter
    without a matching callback, or when a container back-reference is assigned
    twice. These errors indicate a synthesis or initialization-ordering bug and
    are never recovered locally.
    """


class BeanWireCircularDependencyError(BeanWireInvariantViolationError):
    """Signal that a bean was requested again while it is still being created.

    The ``creation_stack`` attribute lists the bean names being created on the
    current call stack, outermost first.

    Typical fix is breaking the cycle between the participating ``@bean``
    methods, for example by moving a shared dependency into its own bean.
    """

    def __init__(self, name: str, creation_stack: list[str]) -> None:
        self.name = name
        self.creation_stack = creation_stack
        chain = " -> ".join([*creation_stack, name])
        super().__init__(
            f"Requested bean '{name}' is currently in creation: "
            f"is there an unresolvable circular reference? ({chain})",
        )


class BeanWireMissingContainerError(BeanWireError):
    """Signal a factory method call on an enhanced instance without a container.

    Enhanced configuration instances receive their container through
    ``set_container`` before the first ``@bean`` method call. Instances created
    by hand (outside ``Container.register_configuration``) do not.
    """


class BeanWireConfigurationConflictError(BeanWireError):
    """Signal that a bean name resolves to an instance of an unexpected type.

    Raised when a ``@bean`` method is called as a bean reference and the
    container returns an instance that is not compatible with the method's
    declared return type, usually because another registration replaced the
    bean under the same name.
    """


class BeanWireBeanNotFoundError(BeanWireError):
    """Signal that a bean name or type has no definition in the container.

    The ``key`` attribute holds the requested name or type.
    """

    def __init__(self, key: Any, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"No bean named or typed {key!r} is defined")


class BeanWireNoUniqueBeanError(BeanWireBeanNotFoundError):
    """Signal that a type lookup matched more than one bean definition.

    Typical fix is requesting the bean by name instead of by type.
    """

    def __init__(self, key: Any, candidates: list[str]) -> None:
        self.candidates = candidates
        super().__init__(
            key,
            f"Expected a single bean of type {key!r} but found {len(candidates)}: "
            f"{', '.join(candidates)}",
        )


class BeanWireBeanCreationError(BeanWireError):
    """Signal that user code raised while the container created a bean.

    Covers ``@bean`` method bodies, configuration class constructors, settings
    classes and ``FactoryBean.get_object()``.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(f"Error creating bean '{name}': {message}")
