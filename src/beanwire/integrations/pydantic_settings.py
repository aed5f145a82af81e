from beanwire._internal.integrations.pydantic_settings import (
    is_pydantic_settings_subclass,
    settings_bases,
)

__all__ = ["is_pydantic_settings_subclass", "settings_bases"]
