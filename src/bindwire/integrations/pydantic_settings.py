"""Bind pydantic settings models as application configuration.

.. code-block:: python

    class DatabaseSettings(BaseSettings):
        url: str = "sqlite://"
        pool_size: int = 5


    bind_settings(app, "config.database", DatabaseSettings)
    app.get_sync("config.database#pool_size")  # 5

The settings object is built once, on first resolution, in the context that
owns the binding. Nested fields are reachable with ``"key#field.subfield"``
lookups or with ``inject("key#field")``.
"""

from __future__ import annotations

import importlib
import logging
import warnings
from typing import TYPE_CHECKING, Any

from bindwire.binding_scope import BindingScope
from bindwire.exceptions import InvalidSettingsClassError

if TYPE_CHECKING:
    from bindwire.binding import Binding
    from bindwire.context import Context

logger = logging.getLogger(__name__)

SETTINGS_TAG = "settings"
"""Tag carried by every binding created by ``bind_settings``."""

_SETTINGS_MODULES = ("pydantic_settings", "pydantic.v1", "pydantic")
_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)


def _load_settings_bases() -> tuple[type[Any], ...]:
    bases: list[type[Any]] = []
    for module_name in _SETTINGS_MODULES:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message=_PYDANTIC_V1_WARNING_PATTERN, category=UserWarning)
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                continue
        # pydantic 2 keeps a ``BaseSettings`` attribute that only raises on use.
        base = module.__dict__.get("BaseSettings")
        if isinstance(base, type) and all(base is not known for known in bases):
            bases.append(base)
    return tuple(bases)


SETTINGS_BASES: tuple[type[Any], ...] = _load_settings_bases()


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return true when candidate subclasses a supported pydantic settings base."""
    if not isinstance(candidate, type):
        return False
    return any(issubclass(candidate, base) for base in SETTINGS_BASES)


def bind_settings(
    context: Context,
    key: str,
    settings_cls: type[Any],
    **overrides: Any,
) -> Binding[Any]:
    """Bind ``key`` to a lazily built instance of ``settings_cls``.

    The binding is a locked singleton tagged ``"settings"``, so configuration
    cannot be swapped out once the application is wired.

    Args:
        context: Context that owns the binding, usually the application root.
        key: Binding key.
        settings_cls: ``BaseSettings`` subclass to instantiate.
        **overrides: Field values passed to the settings constructor; they
            take precedence over environment variables and dotenv files.

    Returns:
        The created binding.

    Raises:
        InvalidSettingsClassError: If ``settings_cls`` is not a settings model.

    """
    if not is_pydantic_settings_subclass(settings_cls):
        raise InvalidSettingsClassError(settings_cls)

    def load_settings() -> Any:
        logger.debug("Loading settings %s for '%s'", settings_cls.__name__, key)
        return settings_cls(**overrides)

    return (
        context.bind(key)
        .to_dynamic_value(load_settings)
        .in_scope(BindingScope.SINGLETON)
        .tag(SETTINGS_TAG)
        .lock()
    )


__all__ = [
    "SETTINGS_BASES",
    "SETTINGS_TAG",
    "bind_settings",
    "is_pydantic_settings_subclass",
]
