"""Tests for thread safety of Context resolution."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated

from bindwire.binding_scope import BindingScope
from bindwire.context import Context
from bindwire.injection import inject


class ServiceA:
    def __init__(self) -> None:
        # Widen the window between cache check and cache write.
        time.sleep(0.01)


class ServiceB:
    def __init__(self, a: Annotated[ServiceA, inject("a")]) -> None:
        self.a = a


def _resolve_concurrently(ctx: Context, key: str, workers: int = 10) -> list[object]:
    barrier = threading.Barrier(workers)

    def resolve() -> object:
        barrier.wait()
        return ctx.get_sync(key)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(resolve) for _ in range(workers)]
        return [future.result() for future in futures]


class TestConcurrentResolution:
    def test_concurrent_singleton_resolution_same_instance(self, empty_ctx: Context) -> None:
        """Concurrent singleton resolution constructs one instance."""
        empty_ctx.bind("a").to_class(ServiceA).in_scope(BindingScope.SINGLETON)

        results = _resolve_concurrently(empty_ctx, "a")

        assert len(results) == 10
        assert all(result is results[0] for result in results)

    def test_concurrent_context_scoped_resolution_per_context(self, empty_ctx: Context) -> None:
        """Context-scoped values are shared within a context and distinct across contexts."""
        empty_ctx.bind("a").to_class(ServiceA).in_scope(BindingScope.CONTEXT)
        first = Context(empty_ctx, "first")
        second = Context(empty_ctx, "second")

        first_results = _resolve_concurrently(first, "a")
        second_results = _resolve_concurrently(second, "a")

        assert all(result is first_results[0] for result in first_results)
        assert all(result is second_results[0] for result in second_results)
        assert first_results[0] is not second_results[0]

    def test_concurrent_transient_resolution_different_instances(self, empty_ctx: Context) -> None:
        """Concurrent transient resolution creates different instances."""
        empty_ctx.bind("a").to_class(ServiceA)

        results = _resolve_concurrently(empty_ctx, "a")

        assert len({id(result) for result in results}) == 10

    def test_concurrent_graphs_do_not_report_false_cycles(self, empty_ctx: Context) -> None:
        """Each resolution call tree tracks its own session."""
        empty_ctx.bind("a").to_class(ServiceA)
        empty_ctx.bind("b").to_class(ServiceB)

        results = _resolve_concurrently(empty_ctx, "b")

        assert all(isinstance(result, ServiceB) for result in results)

    def test_singleton_dependency_shared_by_concurrent_graphs(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to_class(ServiceA).in_scope(BindingScope.SINGLETON)
        empty_ctx.bind("b").to_class(ServiceB)

        results = _resolve_concurrently(empty_ctx, "b")

        assert len({id(result.a) for result in results}) == 1  # type: ignore[attr-defined]


class TestConcurrentRegistration:
    def test_concurrent_bind_of_distinct_keys(self, empty_ctx: Context) -> None:
        def bind(index: int) -> None:
            empty_ctx.bind(f"key.{index}").to(index)

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(bind, range(100)))

        assert len(empty_ctx.find("key.*")) == 100
        assert empty_ctx.get_sync("key.42") == 42
