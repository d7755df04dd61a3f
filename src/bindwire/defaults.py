from bindwire.binding_scope import BindingScope
from bindwire.lock_mode import LockMode

DEFAULT_BINDING_SCOPE = BindingScope.TRANSIENT
"""Scope given to new bindings unless the context is configured otherwise."""

DEFAULT_LOCK_MODE = LockMode.THREAD
"""Lock strategy used by new bindings for their value caches."""

PROPERTY_SEPARATOR = "#"
"""Separator between a binding key and a property path, as in ``"config#db.url"``."""

OPTIONS_PATH_SEPARATOR = "."
"""Separator between nested fields of a property path."""
