"""Shared pytest fixtures for beanwire tests."""

import pytest

from beanwire import ConfigurationClassEnhancer, Container


@pytest.fixture()
def container() -> Container:
    """Default container with overriding and settings autoregistration enabled."""
    return Container()


@pytest.fixture()
def strict_container() -> Container:
    """Container rejecting duplicate bean definitions."""
    return Container(allow_bean_definition_overriding=False)


@pytest.fixture()
def enhancer() -> ConfigurationClassEnhancer:
    """Fresh enhancer with its own class cache."""
    return ConfigurationClassEnhancer()
