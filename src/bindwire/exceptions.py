from __future__ import annotations


class BindwireError(Exception):
    """Represent a base class for all bindwire-specific failures.

    Catch this type when you want to handle any bindwire error path without
    matching each concrete exception class individually.
    """


class InvalidBindingKeyError(BindwireError):
    """Signal a binding key that cannot be registered.

    Raised by ``Context.bind`` when the key is empty or contains the property
    separator ``#``, which is reserved for ``"key#property.path"`` lookups.
    """

    def __init__(self, key: object) -> None:
        self.key = key
        msg = f"Binding key {key!r} is invalid: keys must be non-empty strings without '#'."
        super().__init__(msg)


class BindingNotFoundError(BindwireError):
    """Signal that a key is not bound anywhere in the context chain.

    Raised by ``Context.get_binding`` and every value lookup built on it.

    Typical fixes include binding the key on the current context or on one of
    its ancestors before resolution.
    """

    def __init__(self, key: str, context_name: str) -> None:
        self.key = key
        self.context_name = context_name
        msg = f"The key '{key}' was not bound to any value in context '{context_name}'."
        super().__init__(msg)


class LockedBindingError(BindwireError):
    """Signal an attempt to redefine or remove a locked binding.

    Raised by ``Context.bind`` and ``Context.unbind`` once ``Binding.lock()``
    has been called for the key in that context.
    """

    def __init__(self, key: str, context_name: str) -> None:
        self.key = key
        self.context_name = context_name
        msg = f"Cannot rebind key '{key}' to a locked binding in context '{context_name}'."
        super().__init__(msg)


class CircularDependencyError(BindwireError):
    """Signal that a binding was re-entered while it is still being resolved.

    ``path`` holds the binding keys currently on the resolution stack joined
    with ``->``, in traversal order.
    """

    def __init__(self, key: str, path: str) -> None:
        self.key = key
        self.path = path
        msg = f"Circular dependency detected for '{key}' on path '{path}'."
        super().__init__(msg)


class MissingArgumentValueError(BindwireError):
    """Signal an injection slot that has no way to obtain a value.

    Raised when a parameter is neither decorated for injection nor covered by
    a caller-supplied positional value or a declared default, and when an
    injected property declares neither a binding key nor a custom resolver.
    """

    def __init__(self, target_name: str, index: int | str) -> None:
        self.target_name = target_name
        self.index = index
        if isinstance(index, int):
            msg = (
                f"Cannot resolve injected arguments for {target_name}: "
                f"The arguments[{index}] is not decorated for dependency injection, "
                "but a value is not supplied."
            )
        else:
            msg = (
                f"Cannot resolve injected property for {target_name}: "
                f"The property {index} was not decorated for dependency injection."
            )
        super().__init__(msg)


class InvalidInjectionError(BindwireError):
    """Signal ``inject`` being used where no injection slot exists.

    ``inject(...)`` markers belong inside ``typing.Annotated`` on constructor
    or method parameters and on instance attributes. Applying a marker as a
    decorator or to a ``ClassVar`` (static) attribute raises this error.
    """


class MethodNotFoundError(BindwireError):
    """Signal that ``invoke_method`` was asked for a missing method."""

    def __init__(self, target_name: str, method: str) -> None:
        self.target_name = target_name
        self.method = method
        msg = f"Method {method} not found on {target_name}."
        super().__init__(msg)


class AsyncValueInSyncContextError(BindwireError):
    """Signal synchronous retrieval of a value that resolves asynchronously.

    Raised by ``Context.get_sync`` when the binding graph behind the key
    produces an awaitable.

    Typical fix is switching to ``await context.get(key)``.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        msg = f"Cannot get {key} synchronously: the value is an awaitable."
        super().__init__(msg)


class BindingValueNotConfiguredError(BindwireError):
    """Signal resolution of a binding that was created but never given a value.

    Raised when ``Context.bind(key)`` is not followed by one of ``to``,
    ``to_dynamic_value``, ``to_class`` or ``to_provider`` before the key is
    resolved.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        msg = f"No value was configured for binding '{key}'."
        super().__init__(msg)


class InvalidSettingsClassError(BindwireError):
    """Signal ``bind_settings`` called with a class that is not a settings model.

    The class must subclass ``pydantic_settings.BaseSettings`` (or the
    ``BaseSettings`` of the pydantic v1 API).
    """

    def __init__(self, settings_cls: object) -> None:
        self.settings_cls = settings_cls
        msg = f"{settings_cls!r} is not a pydantic settings class."
        super().__init__(msg)
