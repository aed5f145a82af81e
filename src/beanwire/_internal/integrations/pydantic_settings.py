from __future__ import annotations

import importlib
import warnings
from functools import cache
from typing import Any

from beanwire._internal.type_checks import is_runtime_class

_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)
_SETTINGS_MODULES = ("pydantic_settings", "pydantic.v1")


def _load_base_settings(module_name: str) -> type[Any] | None:
    try:
        with warnings.catch_warnings():
            warnings.filterwarnings(
                "ignore",
                message=_PYDANTIC_V1_WARNING_PATTERN,
                category=UserWarning,
            )
            module = importlib.import_module(module_name)
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    return base_settings if isinstance(base_settings, type) else None


@cache
def settings_bases() -> tuple[type[Any], ...]:
    """Return the ``BaseSettings`` classes importable in this environment.

    Loaded lazily on first use so that importing ``beanwire`` never imports
    Pydantic.
    """
    bases: list[type[Any]] = []
    for module_name in _SETTINGS_MODULES:
        base = _load_base_settings(module_name)
        if base is not None and base not in bases:
            bases.append(base)
    return tuple(bases)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether a class is a supported Pydantic settings model.

    BeanWire checks ``pydantic_settings.BaseSettings`` and the legacy
    ``pydantic.v1.BaseSettings`` when available. Without Pydantic installed, this
    returns ``False`` for every candidate.

    The container uses this to create settings objects on demand for ``@bean``
    method parameters that no bean satisfies; the settings object is then cached
    as a singleton bean.

    Args:
        candidate: Object to test.

    """
    if not is_runtime_class(candidate):
        return False
    try:
        return any(issubclass(candidate, base) for base in settings_bases())
    except TypeError:
        return False


__all__ = ["is_pydantic_settings_subclass", "settings_bases"]
