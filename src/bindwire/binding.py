from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractContextManager, nullcontext
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar
from weakref import WeakKeyDictionary

from typing_extensions import Self

from bindwire import keys
from bindwire.binding_scope import BindingScope, BindingType
from bindwire.defaults import DEFAULT_BINDING_SCOPE, DEFAULT_LOCK_MODE, PROPERTY_SEPARATOR
from bindwire.exceptions import BindingValueNotConfiguredError
from bindwire.lock_mode import LockMode
from bindwire.outcome import (
    Failure,
    SharedAwaitable,
    ValueOrAwaitable,
    ValueOrAwaitableWithFailure,
    capture,
    is_awaitable,
    then,
)
from bindwire.resolver import instantiate_class
from bindwire.session import ResolutionSession

if TYPE_CHECKING:
    from bindwire.context import Context

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

logger = logging.getLogger(__name__)

_ValueGetter = Callable[["Context", "ResolutionSession | None"], ValueOrAwaitableWithFailure[Any]]


class Provider(Protocol[T_co]):
    """Produce a binding value on demand.

    Providers are classes: their constructor and properties can be injected
    like any other class bound with ``to_class``. The binding value is whatever
    ``value()`` returns, a plain value or an awaitable.

    Examples:
        .. code-block:: python

            class DateProvider:
                def __init__(self, fmt: Annotated[str, inject("date.format")]) -> None:
                    self.fmt = fmt

                def value(self) -> str:
                    return datetime.now().strftime(self.fmt)


            ctx.bind("date").to_provider(DateProvider)

    """

    def value(self) -> ValueOrAwaitable[T_co]: ...


class Binding(Generic[T]):
    """A named recipe producing a value, registered in a ``Context``.

    Bindings are created through ``Context.bind`` and configured with the
    fluent builder methods. Setting a new recipe replaces ``type`` and the
    value getter together and clears cached values.
    """

    PROPERTY_SEPARATOR = PROPERTY_SEPARATOR

    def __init__(
        self,
        key: str,
        *,
        scope: BindingScope = DEFAULT_BINDING_SCOPE,
        lock_mode: LockMode = DEFAULT_LOCK_MODE,
    ) -> None:
        self.key = keys.validate_key(key)
        self.tags: set[str] = set()
        self.scope = scope
        self.type: BindingType | None = None
        self.source: Any = None
        self.options: ValueOrAwaitable[Any] = {}
        self.lock_mode = lock_mode
        self._is_locked = False
        self._get_value: _ValueGetter | None = None
        self._cache: WeakKeyDictionary[Context, Any] = WeakKeyDictionary()
        self._cache_lock: AbstractContextManager[Any] = (
            threading.RLock() if lock_mode is LockMode.THREAD else nullcontext()
        )

    @staticmethod
    def parse_key_with_path(key_with_path: str) -> tuple[str, str | None]:
        return keys.parse_key_with_path(key_with_path)

    @staticmethod
    def get_deep_property(value: Any, path: str) -> Any:
        return keys.get_deep_property(value, path)

    @property
    def is_locked(self) -> bool:
        return self._is_locked

    def lock(self) -> Self:
        """Refuse any further ``bind``/``unbind`` of this key in the owning context."""
        self._is_locked = True
        return self

    def tag(self, *tags: str) -> Self:
        self.tags.update(tags)
        return self

    def in_scope(self, scope: BindingScope) -> Self:
        self.scope = scope
        self._reset_cache()
        return self

    def with_options(self, options: ValueOrAwaitable[Any]) -> Self:
        """Attach options readable through ``inject.options`` during resolution.

        ``options`` may be an awaitable; a coroutine is shared so every
        resolution reads the same settled options object.
        """
        self.options = SharedAwaitable(options) if inspect.iscoroutine(options) else options
        return self

    def to(self, value: Any) -> Self:
        """Bind the key to a constant value.

        A coroutine is wrapped so it runs once and every resolution observes
        the same result.
        """
        constant = SharedAwaitable(value) if inspect.iscoroutine(value) else value
        return self._set_recipe(BindingType.CONSTANT, value, lambda ctx, session: constant)

    def to_dynamic_value(self, factory: Callable[[], ValueOrAwaitable[T]]) -> Self:
        """Bind the key to a zero-argument factory called on each uncached resolution."""
        return self._set_recipe(BindingType.DYNAMIC_VALUE, factory, lambda ctx, session: factory())

    def to_class(self, cls: type[T]) -> Self:
        """Bind the key to a class instantiated with injected dependencies."""

        def get_value(ctx: Context, session: ResolutionSession | None) -> ValueOrAwaitableWithFailure[Any]:
            return ResolutionSession.run_with_binding(
                lambda s: instantiate_class(cls, ctx, s),
                self,
                session,
            )

        return self._set_recipe(BindingType.CLASS, cls, get_value)

    def to_provider(self, provider_cls: type[Provider[T]]) -> Self:
        """Bind the key to the ``value()`` of an injected provider instance."""

        def get_value(ctx: Context, session: ResolutionSession | None) -> ValueOrAwaitableWithFailure[Any]:
            return ResolutionSession.run_with_binding(
                lambda s: then(instantiate_class(provider_cls, ctx, s), _provide),
                self,
                session,
            )

        return self._set_recipe(BindingType.PROVIDER, provider_cls, get_value)

    def get_value(
        self,
        ctx: Context,
        session: ResolutionSession | None = None,
    ) -> ValueOrAwaitableWithFailure[T]:
        """Resolve the binding value in ``ctx``.

        Transient bindings run their recipe on every call. Singleton bindings
        cache the value in the context that owns the binding, context-scoped
        bindings in ``ctx``. A pending first resolution is cached as well so
        concurrent resolutions share it.

        Raises:
            BindingValueNotConfiguredError: If no recipe was set.

        """
        if self._get_value is None:
            raise BindingValueNotConfiguredError(self.key)
        if self.scope is BindingScope.TRANSIENT:
            return self._get_value(ctx, session)

        owner = self._owner_context(ctx) if self.scope is BindingScope.SINGLETON else ctx
        with self._cache_lock:
            if owner in self._cache:
                return self._cache[owner]
            result = self._get_value(ctx, session)
            if is_awaitable(result):
                result = SharedAwaitable(self._cache_when_settled(owner, result))
            self._cache[owner] = result
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Cached %s value of '%s' in context '%s'", self.scope.value, self.key, owner.name)
            return result

    async def _cache_when_settled(self, owner: Context, pending: Awaitable[Any]) -> Any:
        try:
            value = await capture(pending)
        except BaseException:
            self._drop_pending(owner)
            raise
        if isinstance(value, Failure):
            self._drop_pending(owner)
            return value
        with self._cache_lock:
            self._cache[owner] = value
        return value

    def _drop_pending(self, owner: Context) -> None:
        # The next resolution retries.
        with self._cache_lock:
            if is_awaitable(self._cache.get(owner)):
                del self._cache[owner]

    def _owner_context(self, ctx: Context) -> Context:
        current: Context | None = ctx
        while current is not None:
            if current.registry.get(self.key) is self:
                return current
            current = current.parent
        return ctx

    def _set_recipe(self, binding_type: BindingType, source: Any, get_value: _ValueGetter) -> Self:
        self.type = binding_type
        self.source = source
        self._get_value = get_value
        self._reset_cache()
        return self

    def _reset_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "scope": self.scope.value,
            "type": self.type.value if self.type is not None else None,
            "tags": sorted(self.tags),
            "is_locked": self._is_locked,
        }
        if self.type in (BindingType.CLASS, BindingType.PROVIDER):
            data["source"] = self.source.__name__
        if isinstance(self.options, Mapping) and self.options:
            data["options"] = dict(self.options)
        return data

    def __repr__(self) -> str:
        kind = self.type.value if self.type is not None else "unconfigured"
        return f"Binding(key={self.key!r}, type={kind}, scope={self.scope.value})"


def _provide(provider: Provider[Any]) -> ValueOrAwaitable[Any]:
    return provider.value()
