from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator, Mapping
from typing import Any, cast, get_type_hints

import pytest

from bindwire.context import Context
from bindwire.exceptions import AsyncValueInSyncContextError
from bindwire.injection import Injection, find_injection
from bindwire.outcome import close_pending, is_awaitable, reject
from bindwire.resolver import resolve_injection
from bindwire.session import ResolutionSession

_BINDWIRE_CONTEXT_ATTR = "_bindwire_context"
_BINDWIRE_INJECTED_PARAMETERS_ATTR = "__bindwire_pytest_injected_parameters__"


@pytest.fixture()
def bindwire_context() -> Context:
    """Create a per-test context used by the plugin.

    Test parameters annotated with ``Annotated[T, inject("key")]`` are resolved
    from this context. Override the fixture to pre-bind values or to chain the
    test context to an application context.

    Returns:
        A new root ``Context`` named ``"pytest"``.

    """
    return Context(name="pytest")


@pytest.fixture(autouse=True)
def _bindwire_state(
    request: pytest.FixtureRequest,
    bindwire_context: Context,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _BINDWIRE_CONTEXT_ATTR, bindwire_context)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide injected parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names. Parameters
    carrying an ``inject`` marker are removed from the signature pytest sees
    and remembered for ``pytest_pyfunc_call``.

    Limitations:
        Only synchronous test functions are rewritten; ``async def`` tests keep
        their signature and are left to their own fixtures.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not callable(obj) or not inspect.isfunction(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    function = cast("Callable[..., Any]", obj)
    injected = _injected_parameters(function)
    if not injected:
        return None

    signature = inspect.signature(function)
    function.__dict__[_BINDWIRE_INJECTED_PARAMETERS_ATTR] = injected
    cast("Any", function).__signature__ = signature.replace(
        parameters=[
            parameter for parameter in signature.parameters.values() if parameter.name not in injected
        ],
    )
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Resolve injected parameters from ``bindwire_context`` around the test call.

    Injected values are resolved synchronously in one resolution session. A
    value that resolves asynchronously fails the test with
    ``AsyncValueInSyncContextError``.
    """
    original = cast("Callable[..., Any]", pyfuncitem.obj)
    injected = cast(
        "Mapping[str, Injection] | None",
        getattr(original, _BINDWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    if injected is None:
        injected = _injected_parameters(original)
    context = cast("Context | None", getattr(pyfuncitem, _BINDWIRE_CONTEXT_ATTR, None))
    if not injected or context is None:
        yield
        return

    @functools.wraps(original)
    def call_with_injections(*args: Any, **kwargs: Any) -> Any:
        session = ResolutionSession()
        for parameter_name, injection in injected.items():
            if parameter_name in kwargs:
                continue
            kwargs[parameter_name] = _resolve_sync(context, injection, session)
        return original(*args, **kwargs)

    pyfuncitem.obj = call_with_injections
    try:
        yield
    finally:
        pyfuncitem.obj = original


def _injected_parameters(function: Callable[..., Any]) -> dict[str, Injection]:
    if inspect.iscoroutinefunction(function):
        return {}
    try:
        parameters = inspect.signature(function).parameters
    except (TypeError, ValueError):
        return {}
    try:
        hints = get_type_hints(function, include_extras=True)
    except (AttributeError, NameError, TypeError):
        hints = {}

    injected: dict[str, Injection] = {}
    for name, parameter in parameters.items():
        marker = find_injection(hints.get(name, parameter.annotation))
        if marker is not None and marker.is_injected:
            injected[name] = marker
    return injected


def _resolve_sync(context: Context, injection: Injection, session: ResolutionSession) -> Any:
    value = resolve_injection(context, injection, session)
    if is_awaitable(value):
        close_pending(value)
        raise AsyncValueInSyncContextError(injection.binding_key)
    return reject(value)
