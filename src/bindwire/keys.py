"""Binding key validation and ``key#property.path`` handling."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from bindwire.defaults import OPTIONS_PATH_SEPARATOR, PROPERTY_SEPARATOR
from bindwire.exceptions import InvalidBindingKeyError


def validate_key(key: object) -> str:
    """Return ``key`` when it can be used to register a binding.

    Raises:
        InvalidBindingKeyError: If ``key`` is not a non-empty string or contains
            the property separator.

    """
    if not isinstance(key, str) or not key or PROPERTY_SEPARATOR in key:
        raise InvalidBindingKeyError(key)
    return key


def parse_key_with_path(key_with_path: str) -> tuple[str, str | None]:
    """Split ``"key#path"`` into the binding key and the property path.

    The path is ``None`` when the separator is absent.

    Examples:
        .. code-block:: python

            parse_key_with_path("config#db.url")  # ("config", "db.url")
            parse_key_with_path("config")  # ("config", None)

    """
    key, separator, path = key_with_path.partition(PROPERTY_SEPARATOR)
    if not separator:
        return key, None
    return key, path


def get_deep_property(value: Any, path: str) -> Any:
    """Read a nested property of ``value`` following a dotted ``path``.

    Mapping items are looked up by key and other objects by attribute. A
    missing segment yields ``None``; an empty path returns ``value`` itself.
    """
    if not path:
        return value
    for segment in path.split(OPTIONS_PATH_SEPARATOR):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(segment)
        else:
            value = getattr(value, segment, None)
    return value
