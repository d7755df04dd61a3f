from __future__ import annotations

import logging
import re
import threading
import uuid
import weakref
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from bindwire import keys
from bindwire.binding import Binding
from bindwire.binding_scope import BindingScope
from bindwire.defaults import DEFAULT_BINDING_SCOPE, DEFAULT_LOCK_MODE
from bindwire.exceptions import AsyncValueInSyncContextError, BindingNotFoundError, LockedBindingError
from bindwire.lock_mode import LockMode
from bindwire.outcome import (
    ValueOrAwaitable,
    ValueOrAwaitableWithFailure,
    close_pending,
    is_awaitable,
    reject,
    then,
)
from bindwire.session import ResolutionSession

T = TypeVar("T")

logger = logging.getLogger(__name__)

BindingFilter = Callable[[Binding[Any]], bool]


class Context:
    """A registry of bindings with lookup through a chain of parent contexts.

    A context holds only a weak reference to its parent: the host keeps parent
    contexts alive for as long as their children are in use. A typical host
    creates one root context for the application and a child context per unit
    of work, such as an incoming request.

    Args:
        parent: Enclosing context consulted when a key is not bound here.
        name: Context name used in diagnostics; a random UUID by default.
        default_scope: Scope given to bindings created by ``bind``.
        lock_mode: Lock strategy of the value caches of created bindings.

    Examples:
        .. code-block:: python

            app = Context(name="application")
            app.bind("application.name").to("shop")

            request = Context(app, "request")
            request.bind("authentication.user").to("alice")
            request.get_sync("application.name")  # "shop"

    """

    def __init__(
        self,
        parent: Context | None = None,
        name: str | None = None,
        *,
        default_scope: BindingScope = DEFAULT_BINDING_SCOPE,
        lock_mode: LockMode = DEFAULT_LOCK_MODE,
    ) -> None:
        self.name = name if name is not None else str(uuid.uuid4())
        self.registry: dict[str, Binding[Any]] = {}
        self.default_scope = default_scope
        self.lock_mode = lock_mode
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._registry_lock = threading.Lock()

    @property
    def parent(self) -> Context | None:
        """The enclosing context, or ``None`` for a root or a collected parent."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def bind(self, key: str) -> Binding[Any]:
        """Create a binding for ``key`` in this context, replacing any previous one.

        Raises:
            InvalidBindingKeyError: If ``key`` is empty or contains ``#``.
            LockedBindingError: If the existing binding for ``key`` is locked.

        """
        keys.validate_key(key)
        binding: Binding[Any] = Binding(key, scope=self.default_scope, lock_mode=self.lock_mode)
        with self._registry_lock:
            existing = self.registry.get(key)
            if existing is not None and existing.is_locked:
                raise LockedBindingError(key, self.name)
            self.registry[key] = binding
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Bound '%s' in context '%s'", key, self.name)
        return binding

    def unbind(self, key: str) -> bool:
        """Remove the binding of ``key`` from this context; parents are untouched.

        Returns:
            Whether a binding was removed.

        Raises:
            LockedBindingError: If the binding is locked.

        """
        with self._registry_lock:
            existing = self.registry.get(key)
            if existing is None:
                return False
            if existing.is_locked:
                raise LockedBindingError(key, self.name)
            del self.registry[key]
        return True

    def contains(self, key: str) -> bool:
        """Return whether ``key`` is bound in this context itself."""
        return key in self.registry

    def is_bound(self, key: str) -> bool:
        """Return whether ``key`` is bound in this context or one of its parents."""
        return self.get_owner_context(key) is not None

    def get_owner_context(self, key: str) -> Context | None:
        """Return the nearest context in the chain that binds ``key``."""
        for ctx in self._chain():
            if ctx.contains(key):
                return ctx
        return None

    def get_binding(self, key: str) -> Binding[Any]:
        """Return the binding of ``key`` from this context or the nearest parent.

        Raises:
            BindingNotFoundError: If no context in the chain binds ``key``.

        """
        for ctx in self._chain():
            binding = ctx.registry.get(key)
            if binding is not None:
                return binding
        raise BindingNotFoundError(key, self.name)

    def find(self, pattern: str | BindingFilter | None = None) -> list[Binding[Any]]:
        """Find bindings in this context and its parents.

        ``pattern`` is either a predicate or a key pattern. In a key pattern
        ``*`` matches a run of characters other than ``.`` and ``:`` and ``?``
        matches one such character.
        Bindings of this context shadow parent bindings with the same key.
        """
        if pattern is None:
            matches: BindingFilter = _match_all
        elif callable(pattern):
            matches = pattern
        else:
            regex = _wildcard_to_regex(pattern)
            matches = lambda binding: regex.fullmatch(binding.key) is not None  # noqa: E731

        seen: set[str] = set()
        found: list[Binding[Any]] = []
        for ctx in self._chain():
            for key, binding in list(ctx.registry.items()):
                if key in seen:
                    continue
                seen.add(key)
                if matches(binding):
                    found.append(binding)
        return found

    def find_by_tag(self, tag_pattern: str) -> list[Binding[Any]]:
        """Find bindings carrying a tag that matches ``tag_pattern`` (wildcards allowed)."""
        regex = _wildcard_to_regex(tag_pattern)
        return self.find(lambda binding: any(regex.fullmatch(tag) for tag in binding.tags))

    def get_value_or_promise(
        self,
        key_with_path: str,
        session: ResolutionSession | None = None,
    ) -> ValueOrAwaitableWithFailure[Any]:
        """Resolve ``key_with_path`` without converting failure carriers.

        ``"key#path.to.value"`` resolves ``key`` and reads the nested property
        ``path.to.value`` from its value.

        Returns:
            The value when the binding graph is synchronous, otherwise an
            awaitable resolving to the value or to a ``Failure``.

        """
        key, path = keys.parse_key_with_path(key_with_path)
        binding = self.get_binding(key)
        value = binding.get_value(self, session)
        if not path:
            return value
        return then(value, lambda resolved: keys.get_deep_property(resolved, path))

    def get_value(self, key_with_path: str, session: ResolutionSession | None = None) -> ValueOrAwaitable[Any]:
        """Resolve ``key_with_path``; an awaitable result raises on failure when awaited."""
        return reject(self.get_value_or_promise(key_with_path, session))

    async def get(self, key_with_path: str) -> Any:
        """Resolve ``key_with_path`` and await the value if needed.

        Raises:
            BindingNotFoundError: If the key is not bound.
            CircularDependencyError: If the binding graph is cyclic.

        """
        value = self.get_value(key_with_path)
        if is_awaitable(value):
            return await value
        return value

    def get_sync(self, key_with_path: str) -> Any:
        """Resolve ``key_with_path`` synchronously.

        Raises:
            AsyncValueInSyncContextError: If any dependency resolves
                asynchronously.

        """
        value = self.get_value_or_promise(key_with_path)
        if is_awaitable(value):
            close_pending(value)
            raise AsyncValueInSyncContextError(key_with_path)
        return reject(value)

    def to_json(self) -> dict[str, Any]:
        """Return the bindings of this context as JSON-ready data."""
        return {key: binding.to_json() for key, binding in self.registry.items()}

    def _chain(self) -> Iterator[Context]:
        ctx: Context | None = self
        while ctx is not None:
            yield ctx
            ctx = ctx.parent

    def __repr__(self) -> str:
        return f"Context(name={self.name!r}, bindings={len(self.registry)})"


def _match_all(binding: Binding[Any]) -> bool:
    return True


def _wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    translated = re.escape(pattern).replace(r"\*", "[^.:]*").replace(r"\?", "[^.:]")
    return re.compile(translated)
