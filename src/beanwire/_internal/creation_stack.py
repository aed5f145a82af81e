from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from beanwire.exceptions import BeanWireCircularDependencyError

# Context variable for creation tracking (works with both threads and async tasks)
# Stores (task_id, stack) tuple to detect when stack needs cloning for new async tasks
_creation_stack: ContextVar[tuple[int | None, list[str]] | None] = ContextVar(
    "creation_stack",
    default=None,
)


def _get_context_id() -> int | None:
    """Get an identifier for the current execution context.

    Returns the id of the current async task if running in an async context,
    or None if running in a sync context.
    """
    try:
        task = asyncio.current_task()
        return id(task) if task is not None else None
    except RuntimeError:
        return None


def get_creation_stack() -> list[str]:
    """Get the current context's creation stack.

    When called from a different async task than the one that created the stack,
    returns a cloned copy to ensure task isolation during parallel creation.
    """
    current_task_id = _get_context_id()
    stored = _creation_stack.get()

    if stored is None:
        stack: list[str] = []
        _creation_stack.set((current_task_id, stack))
        return stack

    owner_task_id, stack = stored

    if current_task_id is not None and owner_task_id != current_task_id:
        cloned_stack = list(stack)
        _creation_stack.set((current_task_id, cloned_stack))
        return cloned_stack

    return stack


@contextmanager
def tracking_creation(name: str) -> Iterator[None]:
    """Push ``name`` on the creation stack for the duration of the block.

    Raises:
        BeanWireCircularDependencyError: If ``name`` is already being created on
            the current call stack.

    """
    stack = get_creation_stack()
    if name in stack:
        raise BeanWireCircularDependencyError(name, list(stack))
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


__all__ = ["get_creation_stack", "tracking_creation"]
