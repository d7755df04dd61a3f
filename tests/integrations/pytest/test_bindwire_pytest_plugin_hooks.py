import inspect
from collections.abc import Callable
from typing import Annotated, Any, cast

import pytest

from bindwire.context import Context
from bindwire.exceptions import AsyncValueInSyncContextError
from bindwire.injection import inject
from bindwire.integrations.pytest_plugin.plugin import pytest_pycollect_makeitem, pytest_pyfunc_call


async def _resolved(value: Any) -> Any:
    return value


class _DummyCollector:
    def __init__(self, *, is_test_function: bool) -> None:
        self._is_test_function = is_test_function

    def istestfunction(self, obj: object, name: str) -> bool:
        _ = obj, name
        return self._is_test_function


class _DummyPyFuncItem:
    def __init__(self, *, obj: Callable[..., Any], context: Context | None) -> None:
        self.obj = obj
        if context is not None:
            self._bindwire_context = context


@pytest.fixture()
def greeting_context() -> Context:
    context = Context(name="hooks")
    context.bind("greeting").to("hello")
    return context


def test_pycollect_makeitem_ignores_non_callable_objects() -> None:
    collector = _DummyCollector(is_test_function=True)

    assert pytest_pycollect_makeitem(collector=collector, name="test_value", obj=1) is None


def test_pycollect_makeitem_ignores_non_test_callables() -> None:
    collector = _DummyCollector(is_test_function=False)

    def helper(value: int, greeting: Annotated[str, inject("greeting")]) -> None:
        _ = value, greeting

    original_signature = inspect.signature(helper)
    result = pytest_pycollect_makeitem(collector=collector, name="helper", obj=helper)

    assert result is None
    assert inspect.signature(helper) == original_signature


def test_pycollect_makeitem_rewrites_signature_for_injected_parameters() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(value: int, greeting: Annotated[str, inject("greeting")]) -> tuple[int, str]:
        return value, greeting

    assert tuple(inspect.signature(test_handler).parameters) == ("value", "greeting")
    result = pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)

    assert result is None
    assert tuple(inspect.signature(test_handler).parameters) == ("value",)


def test_pycollect_makeitem_leaves_async_tests_alone() -> None:
    collector = _DummyCollector(is_test_function=True)

    async def test_handler(greeting: Annotated[str, inject("greeting")]) -> str:
        return greeting

    pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)

    assert tuple(inspect.signature(test_handler).parameters) == ("greeting",)


def test_pyfunc_call_passes_through_when_no_injected_parameters(greeting_context: Context) -> None:
    def test_handler(value: int) -> int:
        return value

    item = _DummyPyFuncItem(obj=test_handler, context=greeting_context)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    assert item.obj is test_handler
    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_wraps_injected_callable_and_restores_original(greeting_context: Context) -> None:
    def test_handler(value: int, greeting: Annotated[str, inject("greeting")]) -> str:
        return f"{greeting} {value}"

    item = _DummyPyFuncItem(obj=test_handler, context=greeting_context)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    wrapped = cast("Callable[..., str]", item.obj)
    assert wrapped(value=1) == "hello 1"
    assert wrapped(value=2, greeting="hi") == "hi 2"

    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_passes_through_when_context_state_is_missing() -> None:
    def test_handler(greeting: Annotated[str, inject("greeting")]) -> str:
        return greeting

    item = _DummyPyFuncItem(obj=test_handler, context=None)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    assert item.obj is test_handler
    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_refuses_async_values() -> None:
    context = Context(name="async")
    context.bind("greeting").to_dynamic_value(lambda: _resolved("hello"))

    def test_handler(greeting: Annotated[str, inject("greeting")]) -> str:
        return greeting

    item = _DummyPyFuncItem(obj=test_handler, context=context)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    with pytest.raises(AsyncValueInSyncContextError):
        cast("Callable[..., str]", item.obj)()

    next(hook, None)
