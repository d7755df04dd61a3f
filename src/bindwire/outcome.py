"""Helpers for values that may be plain or pending.

Resolution returns a plain value when every dependency in the graph is
synchronous and an awaitable otherwise. Failures raised inside an awaitable are
captured into a ``Failure`` carrier and threaded through chained continuations
as ordinary results, so composing many awaitables never leaves an exception
without an observer. ``reject`` turns the carrier back into a raised exception
once the caller is ready to observe the outcome.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, NoReturn, TypeAlias, TypeVar, Union, cast

T = TypeVar("T")
V = TypeVar("V")

_PACKAGE = __name__.partition(".")[0]

ValueOrAwaitable: TypeAlias = Union[T, Awaitable[T]]  # noqa: UP007
"""A value of ``T`` or an awaitable producing ``T``."""

ValueOrAwaitableWithFailure: TypeAlias = Union[T, Awaitable[Union[T, "Failure"]]]  # noqa: UP007
"""A value of ``T`` or an awaitable producing ``T`` or a ``Failure`` carrier."""


@dataclass(frozen=True, slots=True)
class Failure:
    """Carry an exception through awaitable chains as a regular result.

    A ``Failure`` is never raised by itself. Code that composes pending results
    checks for it with ``isinstance`` and either forwards it or calls
    ``raise_cause`` at an explicit boundary.
    """

    cause: BaseException

    @property
    def message(self) -> str:
        return str(self.cause)

    def raise_cause(self) -> NoReturn:
        """Raise the captured exception."""
        raise self.cause


def is_awaitable(value: object) -> bool:
    """Return True when ``value`` can be awaited.

    Objects whose ``__await__`` attribute is not callable are not treated as
    awaitables.
    """
    if inspect.iscoroutine(value):
        return True
    return callable(getattr(type(value), "__await__", None))


def capture(value: ValueOrAwaitable[T]) -> ValueOrAwaitableWithFailure[T]:
    """Convert a failing awaitable into an awaitable resolved to a ``Failure``.

    Plain values are returned as is.
    """
    if not is_awaitable(value):
        return cast("T", value)
    return _capture(cast("Awaitable[T]", value))


async def _capture(awaitable: Awaitable[T]) -> T | Failure:
    try:
        return await awaitable
    except Exception as exc:  # noqa: BLE001
        return Failure(exc)


def then(
    value: ValueOrAwaitableWithFailure[T],
    on_fulfilled: Callable[[T], ValueOrAwaitableWithFailure[V]],
) -> ValueOrAwaitableWithFailure[V]:
    """Chain ``on_fulfilled`` after ``value``.

    A plain value is passed to ``on_fulfilled`` immediately and its result is
    returned untouched, so synchronous chains stay synchronous. An awaitable
    produces a coroutine that skips ``on_fulfilled`` for a ``Failure``, awaits
    awaitables returned by ``on_fulfilled``, and captures exceptions raised by
    the continuation into a ``Failure``.

    Args:
        value: Plain value or awaitable, possibly resolving to a ``Failure``.
        on_fulfilled: Continuation receiving the successful value.

    Returns:
        The continuation result, or a coroutine producing it.

    """
    if is_awaitable(value):
        return _then(cast("Awaitable[Any]", value), on_fulfilled)
    if isinstance(value, Failure):
        return value
    return on_fulfilled(cast("T", value))


async def _then(
    awaitable: Awaitable[T | Failure],
    on_fulfilled: Callable[[T], ValueOrAwaitableWithFailure[V]],
) -> V | Failure:
    try:
        value = await awaitable
        if isinstance(value, Failure):
            return value
        result = on_fulfilled(value)
        if is_awaitable(result):
            result = await cast("Awaitable[V | Failure]", result)
    except Exception as exc:  # noqa: BLE001
        return Failure(exc)
    return cast("V | Failure", result)


def reject(value: ValueOrAwaitableWithFailure[T]) -> ValueOrAwaitable[T]:
    """Turn a ``Failure`` result back into a raised exception.

    This is the boundary where a caller observes the outcome of a resolution.
    Plain values are returned as is; a plain ``Failure`` raises immediately.
    """
    if is_awaitable(value):
        return _reject(cast("Awaitable[T | Failure]", value))
    if isinstance(value, Failure):
        value.raise_cause()
    return cast("T", value)


async def _reject(awaitable: Awaitable[T | Failure]) -> T:
    value = await awaitable
    if isinstance(value, Failure):
        value.raise_cause()
    return value


def on_settled(
    value: ValueOrAwaitableWithFailure[T],
    callback: Callable[[], object],
) -> ValueOrAwaitableWithFailure[T]:
    """Run ``callback`` once ``value`` is settled, whatever the outcome.

    For a plain value the callback runs immediately. For an awaitable it runs
    inside the continuation that observes the result, after failures have
    been captured into a ``Failure``.
    """
    if is_awaitable(value):
        return _on_settled(cast("Awaitable[T | Failure]", value), callback)
    callback()
    return value


async def _on_settled(awaitable: Awaitable[T | Failure], callback: Callable[[], object]) -> T | Failure:
    try:
        return await _capture(awaitable)
    finally:
        callback()


async def settle_all(awaitables: Iterable[Awaitable[Any]]) -> list[Any] | Failure:
    """Wait for every awaitable and report the first ``Failure``.

    All awaitables run concurrently and are awaited to completion even when
    one of them fails, so side effects of siblings are never torn down
    halfway. Results keep the order of ``awaitables``.
    """
    values = await asyncio.gather(*(_capture(awaitable) for awaitable in awaitables))
    for value in values:
        if isinstance(value, Failure):
            return value
    return list(values)


class SharedAwaitable(Generic[T]):
    """Awaitable that runs its underlying awaitable once for many awaiters.

    Python coroutines can be awaited only once. Cached pending values and
    coroutine constants are wrapped so every consumer observes the same
    result. The underlying awaitable is scheduled on the running loop by the
    first ``await``.
    """

    __slots__ = ("_awaitable", "_future")

    def __init__(self, awaitable: Awaitable[T]) -> None:
        self._awaitable = awaitable
        self._future: asyncio.Future[T] | None = None

    def __await__(self) -> Any:
        if self._future is None:
            self._future = asyncio.ensure_future(self._awaitable)
        # Cancelling one awaiter leaves the shared future running for the others.
        return asyncio.shield(self._future).__await__()


def close_pending(value: object) -> None:
    """Close a coroutine that will never be awaited.

    Unstarted bindwire coroutines keep the work they wait for in frame locals
    named ``awaitable`` or ``pending*``; unstarted coroutines found there are
    closed as well so that an abandoned chain emits no "never awaited"
    warnings. Other locals, such as argument values collected for the caller,
    and the locals of coroutines created outside bindwire are never touched.
    Shared awaitables are left alone since other consumers may still await
    them.
    """
    if isinstance(value, (list, tuple)):
        for item in value:
            close_pending(item)
        return
    if not inspect.iscoroutine(value):
        return
    if inspect.getcoroutinestate(value) == inspect.CORO_CREATED and _is_own_coroutine(value):
        for name, local in list(value.cr_frame.f_locals.items()):
            if name == "awaitable" or name.startswith("pending"):
                close_pending(local)
    value.close()


def _is_own_coroutine(coroutine: Any) -> bool:
    module = coroutine.cr_frame.f_globals.get("__name__", "")
    return module == _PACKAGE or module.startswith(f"{_PACKAGE}.")

