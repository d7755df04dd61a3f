"""Shared pytest fixtures for bindwire tests."""

import pytest

from bindwire.context import Context


async def _resolved(value: object) -> object:
    """Return ``value`` from a coroutine, standing in for async I/O."""
    return value


@pytest.fixture()
def ctx() -> Context:
    """Context with ``foo`` and ``bar`` bound to constants."""
    context = Context(name="test")
    context.bind("foo").to("FOO")
    context.bind("bar").to("BAR")
    return context


@pytest.fixture()
def async_ctx() -> Context:
    """Context with ``foo`` and ``bar`` bound to values produced by coroutines."""
    context = Context(name="async-test")
    context.bind("foo").to_dynamic_value(lambda: _resolved("FOO"))
    context.bind("bar").to_dynamic_value(lambda: _resolved("BAR"))
    return context


@pytest.fixture()
def empty_ctx() -> Context:
    """Context without bindings."""
    return Context(name="empty")
