"""Tests for thread safety of singleton creation and interception."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from beanwire import ConfigurationClassEnhancer, Container, bean
from beanwire._internal.invocation import invoking
from beanwire._internal.metadata import collect_factory_methods


class SlowService:
    pass


class SlowConfig:
    def __init__(self) -> None:
        self.constructions = 0

    @bean
    def slow(self) -> SlowService:
        self.constructions += 1
        time.sleep(0.05)
        return SlowService()


THREADS = 16


def _run_concurrently(target, count: int = THREADS) -> list:
    barrier = threading.Barrier(count)

    def call() -> object:
        barrier.wait()
        return target()

    with ThreadPoolExecutor(max_workers=count) as executor:
        futures = [executor.submit(call) for _ in range(count)]
        return [future.result() for future in futures]


class TestConcurrentSingletonCreation:
    def test_concurrent_get_bean_constructs_once(self, container: Container) -> None:
        """Racing first requests run the method body exactly once."""
        container.register_configuration(SlowConfig)

        results = _run_concurrently(lambda: container.get_bean("slow"))

        assert all(result is results[0] for result in results)
        assert container.get_bean(SlowConfig).constructions == 1

    def test_concurrent_direct_calls_construct_once(self, container: Container) -> None:
        """Racing calls through the enhanced method share the singleton."""
        container.register_configuration(SlowConfig)
        config = container.get_bean(SlowConfig)

        results = _run_concurrently(config.slow)

        assert all(result is results[0] for result in results)
        assert results[0] is container.get_bean("slow")
        assert config.constructions == 1

    def test_concurrent_mixed_access_constructs_once(self, container: Container) -> None:
        container.register_configuration(SlowConfig)
        config = container.get_bean(SlowConfig)
        calls = [
            config.slow,
            lambda: container.get_bean("slow"),
            lambda: container.get_bean(SlowService),
        ]
        counter = iter(range(THREADS))
        lock = threading.Lock()

        def mixed() -> object:
            with lock:
                index = next(counter)
            return calls[index % len(calls)]()

        results = _run_concurrently(mixed)

        assert all(result is results[0] for result in results)
        assert config.constructions == 1
        assert container._registry.names_in_creation() == []

    def test_concurrent_configuration_instantiation(self) -> None:
        constructed: list[int] = []

        class CountingConfig:
            def __init__(self) -> None:
                constructed.append(1)
                time.sleep(0.01)

            @bean
            def value(self) -> SlowService:
                return SlowService()

        container = Container()
        container.register_configuration(CountingConfig)

        results = _run_concurrently(lambda: container.get_bean(CountingConfig))

        assert all(result is results[0] for result in results)
        assert constructed == [1]


class TestConcurrentEnhancement:
    def test_concurrent_enhance_returns_one_class(self) -> None:
        enhancer = ConfigurationClassEnhancer()

        class RacedConfig:
            @bean
            def value(self) -> SlowService:
                return SlowService()

        results = _run_concurrently(lambda: enhancer.enhance(RacedConfig))

        assert all(result is results[0] for result in results)
        assert issubclass(results[0], RacedConfig)


class TestInvocationMarkerIsolation:
    def test_marker_is_private_to_thread(self, container: Container) -> None:
        """A marker set on one thread never makes another thread run the body."""
        container.register_configuration(SlowConfig)
        config = container.get_bean(SlowConfig)
        cached = container.get_bean("slow")
        key = next(
            factory_method.invocation_key
            for factory_method in collect_factory_methods(SlowConfig)
            if factory_method.attribute_name == "slow"
        )
        marker_set = threading.Event()
        release = threading.Event()
        results: list[object] = []

        def hold_marker() -> None:
            with invoking(key):
                marker_set.set()
                release.wait(timeout=5)

        def call_method() -> None:
            marker_set.wait(timeout=5)
            results.append(config.slow())
            release.set()

        holder = threading.Thread(target=hold_marker)
        caller = threading.Thread(target=call_method)
        holder.start()
        caller.start()
        caller.join()
        holder.join()

        assert results == [cached]
        assert config.constructions == 1
