from __future__ import annotations

from enum import Enum


class BindingScope(str, Enum):
    """Define how long a resolved binding value is reused."""

    TRANSIENT = "transient"
    """A new value is produced every time the binding is resolved."""

    CONTEXT = "context"
    """The value is cached per context that resolves the binding."""

    SINGLETON = "singleton"
    """The value is cached in the context that owns the binding and shared by its subtree."""


class BindingType(str, Enum):
    """Define the kind of recipe a binding uses to produce its value."""

    CONSTANT = "constant"
    """A fixed value registered with ``Binding.to``."""

    DYNAMIC_VALUE = "dynamic_value"
    """A zero-argument factory registered with ``Binding.to_dynamic_value``."""

    CLASS = "class"
    """A class instantiated with injection, registered with ``Binding.to_class``."""

    PROVIDER = "provider"
    """A provider class whose ``value()`` produces the value, registered with ``Binding.to_provider``."""
