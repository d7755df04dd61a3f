"""Instantiate classes and invoke methods with injected dependencies.

Every entry point returns a plain result when all injected slots resolve
synchronously. As soon as one slot resolves to an awaitable, the entry point
returns an awaitable instead; it resolves to the result or to a ``Failure``
carrying the first failure observed. Use ``bindwire.outcome.reject`` to turn
such a ``Failure`` back into a raised exception.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from bindwire.exceptions import MethodNotFoundError, MissingArgumentValueError
from bindwire.injection import (
    Injection,
    describe_injected_arguments,
    describe_injected_properties,
    describe_parameters,
    is_static_member,
)
from bindwire.metadata import get_target_name, owner_class
from bindwire.outcome import (
    Failure,
    ValueOrAwaitableWithFailure,
    close_pending,
    is_awaitable,
    on_settled,
    settle_all,
    then,
)
from bindwire.session import ResolutionSession

if TYPE_CHECKING:
    from bindwire.context import Context

T = TypeVar("T")

logger = logging.getLogger(__name__)


def instantiate_class(
    cls: type[T],
    ctx: Context,
    session: ResolutionSession | None = None,
    non_injected_args: Sequence[Any] | None = None,
) -> ValueOrAwaitableWithFailure[T]:
    """Create an instance of ``cls`` with injected constructor arguments and properties.

    Constructor arguments and properties are resolved independently. The
    constructor runs once its arguments are available, and resolved properties
    are assigned onto the instance afterwards.

    Args:
        cls: Class to instantiate.
        ctx: Context providing the bound values.
        session: Resolution session of the enclosing resolution, if any.
        non_injected_args: Values for constructor parameters that are not
            decorated for injection, consumed in order.

    Returns:
        The instance when every dependency resolved synchronously, otherwise an
        awaitable resolving to the instance or to a ``Failure``.

    Raises:
        MissingArgumentValueError: If a parameter cannot be given a value.
        CircularDependencyError: If the dependency graph is cyclic.
        BindingNotFoundError: If an injected key is not bound.

    """
    session = session if session is not None else ResolutionSession()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Instantiating %s (session %r)", cls.__name__, session)

    args = resolve_injected_arguments(cls, "", ctx, session, non_injected_args)
    try:
        properties = resolve_injected_properties(cls, ctx, session)
    except BaseException:
        if is_awaitable(args):
            close_pending(args)
        raise

    if is_awaitable(args):
        return _instantiate_when_resolved(cls, args, properties)

    try:
        instance = _call(cls, describe_parameters(cls), args)
    except BaseException:
        if is_awaitable(properties):
            close_pending(properties)
        raise
    return then(properties, lambda resolved: _assign_properties(instance, resolved))


async def _instantiate_when_resolved(
    cls: type[T],
    pending_args: Awaitable[list[Any] | Failure],
    pending_properties: Any,
) -> T | Failure:
    # Properties keep settling while the constructor waits for its arguments.
    properties_task = (
        asyncio.ensure_future(pending_properties) if is_awaitable(pending_properties) else None
    )
    try:
        args = await pending_args
    except BaseException:
        if properties_task is not None:
            properties_task.cancel()
        raise

    instance = _construct(cls, args)
    properties = await properties_task if properties_task is not None else pending_properties
    if isinstance(instance, Failure):
        return instance
    if isinstance(properties, Failure):
        return properties
    try:
        return _assign_properties(instance, properties)
    except Exception as exc:  # noqa: BLE001
        return Failure(exc)


def _construct(cls: type[T], args: list[Any] | Failure) -> T | Failure:
    if isinstance(args, Failure):
        return args
    try:
        return _call(cls, describe_parameters(cls), args)
    except Exception as exc:  # noqa: BLE001
        return Failure(exc)


def _assign_properties(instance: T, properties: Mapping[str, Any]) -> T:
    for name, value in properties.items():
        setattr(instance, name, value)
    return instance


def invoke_method(
    target: object,
    method: str,
    ctx: Context,
    non_injected_args: Sequence[Any] | None = None,
    session: ResolutionSession | None = None,
) -> ValueOrAwaitableWithFailure[Any]:
    """Invoke ``method`` on ``target`` with injected arguments.

    ``target`` is an instance, or a class for static and class methods. When
    ``target`` is a class and ``method`` is a plain instance method, the method
    is called with the class itself as ``self``.

    The method's return value is passed through untouched when arguments
    resolve synchronously, including an awaitable returned by an ``async``
    method.

    Args:
        target: Instance or class owning the method.
        method: Method name.
        ctx: Context providing the bound values.
        non_injected_args: Values for parameters that are not decorated for
            injection, consumed in order.
        session: Resolution session of the enclosing resolution, if any.

    Raises:
        MethodNotFoundError: If ``target`` has no such method.

    """
    function = _bound_member(target, method)
    args = resolve_injected_arguments(target, method, ctx, session, non_injected_args)
    parameters = describe_parameters(target, method)
    return then(args, lambda resolved: _call(function, parameters, resolved))


def _bound_member(target: object, method: str) -> Callable[..., Any]:
    owner = owner_class(target)
    raw = inspect.getattr_static(target, method, None)
    if raw is None or not callable(getattr(target, method, None)):
        raise MethodNotFoundError(owner.__name__, method)
    if inspect.isclass(target) and inspect.isfunction(raw):
        return functools.partial(raw, target)
    return getattr(target, method)


def _call(function: Callable[..., T], parameters: Sequence[inspect.Parameter], values: Sequence[Any]) -> T:
    positional: list[Any] = []
    keywords: dict[str, Any] = {}
    for parameter, value in zip(parameters, values):
        if parameter.kind is inspect.Parameter.KEYWORD_ONLY:
            keywords[parameter.name] = value
        else:
            positional.append(value)
    return function(*positional, **keywords)


def resolve_injection(
    ctx: Context,
    injection: Injection,
    session: ResolutionSession,
) -> ValueOrAwaitableWithFailure[Any]:
    """Resolve the value of one injection point.

    A custom ``resolve`` function takes precedence over the context lookup of
    ``injection.binding_key``. The slot resolves in a fork of ``session`` that
    keeps the injection on its stack until the value is settled; ``session``
    itself is left untouched.
    """
    slot_session = session.fork()
    slot_session.enter_injection(injection)
    if injection.resolve is not None:
        resolved = injection.resolve(ctx, injection, slot_session)
    else:
        resolved = ctx.get_value_or_promise(injection.binding_key, slot_session)
    return on_settled(resolved, lambda: slot_session.exit_injection(injection))


def resolve_injected_arguments(
    target: object,
    method: str,
    ctx: Context,
    session: ResolutionSession | None = None,
    non_injected_args: Sequence[Any] | None = None,
) -> ValueOrAwaitableWithFailure[list[Any]]:
    """Resolve the arguments of a constructor or method in declared order.

    Decorated parameters are resolved from ``ctx``. Other parameters take the
    next value of ``non_injected_args``, then their declared default.

    Args:
        target: Class for constructors, static and class methods; instance or
            class for instance methods.
        method: Method name; ``""`` selects the constructor.
        ctx: Context providing the bound values.
        session: Resolution session of the enclosing resolution, if any.
        non_injected_args: Values for parameters that are not decorated.

    Returns:
        The argument list, or an awaitable resolving to it or to a ``Failure``
        when at least one argument resolves asynchronously.

    Raises:
        MissingArgumentValueError: If an undecorated parameter has no value.
        MethodNotFoundError: If ``method`` does not exist on ``target``.

    """
    if method:
        _bound_member(target, method)
    session = session if session is not None else ResolutionSession()
    injections = describe_injected_arguments(target, method)
    parameters = describe_parameters(target, method)
    non_injected = list(non_injected_args) if non_injected_args else []

    args: list[Any] = [None] * len(parameters)
    pending: list[tuple[int, Awaitable[Any]]] = []
    non_injected_index = 0

    for index, parameter in enumerate(parameters):
        injection = injections[index] if index < len(injections) else None
        if injection is None or not injection.is_injected:
            if non_injected_index < len(non_injected):
                args[index] = non_injected[non_injected_index]
                non_injected_index += 1
                continue
            if parameter.default is not inspect.Parameter.empty:
                args[index] = parameter.default
                continue
            close_pending(pending)
            owner = owner_class(target)
            name = get_target_name(owner, method, index, static=is_static_member(owner, method))
            raise MissingArgumentValueError(name, index)

        try:
            value = resolve_injection(ctx, injection, session)
        except BaseException:
            close_pending(pending)
            raise
        if is_awaitable(value):
            pending.append((index, value))
        else:
            args[index] = value

    if pending:
        return _collect_arguments(args, pending)
    return args


async def _collect_arguments(
    args: list[Any],
    pending: list[tuple[int, Awaitable[Any]]],
) -> list[Any] | Failure:
    settled = await settle_all([value for _, value in pending])
    if isinstance(settled, Failure):
        return settled
    for (index, _), value in zip(pending, settled):
        args[index] = value
    return args


def resolve_injected_properties(
    cls: type[Any],
    ctx: Context,
    session: ResolutionSession | None = None,
) -> ValueOrAwaitableWithFailure[dict[str, Any]]:
    """Resolve the injected properties of ``cls`` keyed by property name.

    Returns:
        The property mapping, or an awaitable resolving to it or to a
        ``Failure`` when at least one property resolves asynchronously.

    Raises:
        MissingArgumentValueError: If a property declares neither a binding
            key nor a custom resolver.

    """
    session = session if session is not None else ResolutionSession()
    properties: dict[str, Any] = {}
    pending: list[tuple[str, Awaitable[Any]]] = []

    for name, injection in describe_injected_properties(cls).items():
        if not injection.is_injected:
            close_pending(pending)
            raise MissingArgumentValueError(get_target_name(cls, name), name)
        try:
            value = resolve_injection(ctx, injection, session)
        except BaseException:
            close_pending(pending)
            raise
        if is_awaitable(value):
            pending.append((name, value))
        else:
            properties[name] = value

    if pending:
        return _collect_properties(properties, pending)
    return properties


async def _collect_properties(
    properties: dict[str, Any],
    pending: list[tuple[str, Awaitable[Any]]],
) -> dict[str, Any] | Failure:
    settled = await settle_all([value for _, value in pending])
    if isinstance(settled, Failure):
        return settled
    for (name, _), value in zip(pending, settled):
        properties[name] = value
    return properties
