from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beanwire._internal.metadata import FactoryMethod, InvocationKey

# Set by the container immediately around its own calls into @bean methods.
# A ContextVar keeps the marker private to the current thread or asyncio task,
# so concurrent creations never see each other's marker.
_currently_invoked: ContextVar[InvocationKey | None] = ContextVar(
    "currently_invoked_factory_method",
    default=None,
)


def currently_invoked_factory_method() -> InvocationKey | None:
    """Return the invocation key of the factory method the container is calling."""
    return _currently_invoked.get()


def is_currently_invoked(method: FactoryMethod) -> bool:
    current = _currently_invoked.get()
    return current is not None and current == method.invocation_key


@contextmanager
def invoking(key: InvocationKey | None) -> Iterator[None]:
    """Expose ``key`` as the currently invoked factory method for the block.

    Passing ``None`` hides the marker, which the interceptor does while running
    a method body so that calls made by the body count as bean references.
    """
    token = _currently_invoked.set(key)
    try:
        yield
    finally:
        _currently_invoked.reset(token)


__all__ = ["currently_invoked_factory_method", "invoking", "is_currently_invoked"]
