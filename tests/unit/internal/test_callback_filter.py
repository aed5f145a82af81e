from collections.abc import Mapping
from typing import Any

import pytest

from beanwire._internal.callbacks import (
    CALLBACK_FILTER,
    NO_OP,
    BeanMethodInterceptor,
    CallbackFilter,
    ConditionalCallback,
    ContainerAwareMethodInterceptor,
    MethodCandidate,
)
from beanwire._internal.metadata import collect_factory_methods
from beanwire.aware import ContainerAware
from beanwire.exceptions import BeanWireInvariantViolationError
from beanwire.markers import bean


class Widget:
    pass


class WidgetConfig:
    @bean
    def widget(self) -> Widget:
        return Widget()

    def helper(self) -> int:
        return 1


def _bean_candidate() -> MethodCandidate:
    factory_method = collect_factory_methods(WidgetConfig)[0]
    return MethodCandidate(
        name=factory_method.attribute_name,
        function=factory_method.function,
        declaring_class=WidgetConfig,
        factory_method=factory_method,
    )


def _set_container_candidate() -> MethodCandidate:
    return MethodCandidate(
        name="set_container",
        function=ContainerAware.set_container,
        declaring_class=ContainerAware,
    )


def _plain_candidate() -> MethodCandidate:
    return MethodCandidate(
        name="helper",
        function=WidgetConfig.helper,
        declaring_class=WidgetConfig,
    )


class RecordingCallback:
    def __init__(self, matches: bool) -> None:  # noqa: FBT001
        self.matches = matches

    def is_match(self, method: MethodCandidate) -> bool:
        return self.matches

    def intercept(
        self,
        instance: Any,
        method: MethodCandidate,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        return None


def test_default_filter_routes_bean_methods_first() -> None:
    assert CALLBACK_FILTER.accept(_bean_candidate()) == 0
    assert CALLBACK_FILTER.accept(_set_container_candidate()) == 1
    assert CALLBACK_FILTER.accept(_plain_candidate()) == 2


def test_default_filter_callback_types() -> None:
    assert CALLBACK_FILTER.callback_types == (
        BeanMethodInterceptor,
        ContainerAwareMethodInterceptor,
        type(NO_OP),
    )


def test_first_matching_callback_wins() -> None:
    callback_filter = CallbackFilter([RecordingCallback(False), RecordingCallback(True), NO_OP])

    assert callback_filter.accept(_plain_candidate()) == 1


def test_unconditional_callback_is_catch_all() -> None:
    callback_filter = CallbackFilter([NO_OP, RecordingCallback(True)])

    assert not isinstance(NO_OP, ConditionalCallback)
    assert callback_filter.accept(_bean_candidate()) == 0


def test_no_matching_callback_raises() -> None:
    callback_filter = CallbackFilter([RecordingCallback(False)])

    with pytest.raises(BeanWireInvariantViolationError, match="No callback available"):
        callback_filter.accept(_plain_candidate())


def test_container_aware_interceptor_requires_single_argument() -> None:
    def set_container(self: Any) -> None:
        return None

    candidate = MethodCandidate(
        name="set_container",
        function=set_container,
        declaring_class=ContainerAware,
    )

    assert not ContainerAwareMethodInterceptor().is_match(candidate)
    assert ContainerAwareMethodInterceptor().is_match(_set_container_candidate())


def test_container_aware_interceptor_ignores_unrelated_classes() -> None:
    def set_container(self: Any, container: Any) -> None:
        return None

    candidate = MethodCandidate(
        name="set_container",
        function=set_container,
        declaring_class=WidgetConfig,
    )

    assert not ContainerAwareMethodInterceptor().is_match(candidate)


def test_no_op_calls_original_function() -> None:
    assert NO_OP.intercept(WidgetConfig(), _plain_candidate(), (), {}) == 1
