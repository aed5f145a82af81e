from __future__ import annotations

import types
from typing import Any, Union, get_args, get_origin

from typing_extensions import TypeIs


def is_runtime_class(candidate: object) -> TypeIs[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_assignable_value(declared_type: object, value: object) -> bool:
    """Return whether ``value`` may be returned from a method declaring ``declared_type``.

    Unknown, generic and non-class annotations are treated as compatible. Unions
    and ``Optional`` accept a value matching any runtime-class member.

    Args:
        declared_type: Declared return annotation, already evaluated.
        value: Runtime value to check.

    """
    if value is None:
        return True
    origin = get_origin(declared_type)
    if origin is Union or origin is types.UnionType:
        members = get_args(declared_type)
        if not all(is_runtime_class(member) for member in members):
            return True
        return isinstance(value, members)
    if origin is not None and is_runtime_class(origin):
        return isinstance(value, origin)
    if not is_runtime_class(declared_type) or declared_type is object:
        return True
    try:
        return isinstance(value, declared_type)
    except TypeError:
        return True


__all__ = ["is_assignable_value", "is_runtime_class"]
