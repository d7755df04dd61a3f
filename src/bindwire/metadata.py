from __future__ import annotations

import inspect
import threading
from typing import Any
from weakref import WeakKeyDictionary

_CONSTRUCTOR_MEMBER = ""


class MetadataInspector:
    """Side table of metadata keyed by ``(key, target, member)``.

    Targets are classes. Entries live as long as the class does. Lookups walk
    the method resolution order unless ``own_only`` is set, so metadata defined
    on a base class is visible from subclasses.

    Examples:
        .. code-block:: python

            MetadataInspector.define_metadata("inject:parameters", (None,), Greeter, "greet")
            MetadataInspector.get_metadata("inject:parameters", Greeter, "greet")

    """

    _store: WeakKeyDictionary[type[Any], dict[tuple[str, str], Any]] = WeakKeyDictionary()
    _lock = threading.Lock()

    @classmethod
    def define_metadata(
        cls,
        key: str,
        value: Any,
        target: type[Any],
        member: str = _CONSTRUCTOR_MEMBER,
    ) -> None:
        """Store ``value`` for ``key`` on ``target``/``member``.

        Args:
            key: Metadata key, for example ``"inject:parameters"``.
            value: Metadata value.
            target: Class owning the metadata.
            member: Member name, ``""`` for the constructor or the class itself.

        """
        with cls._lock:
            cls._store.setdefault(target, {})[(key, member)] = value

    @classmethod
    def get_metadata(
        cls,
        key: str,
        target: type[Any],
        member: str = _CONSTRUCTOR_MEMBER,
        *,
        own_only: bool = False,
    ) -> Any | None:
        """Return the metadata stored for ``key`` on ``target``/``member``.

        Args:
            key: Metadata key.
            target: Class to inspect.
            member: Member name, ``""`` for the constructor or the class itself.
            own_only: Skip base classes when set.

        Returns:
            The stored value or ``None`` when nothing was defined.

        """
        owners = (target,) if own_only else inspect.getmro(target)
        for owner in owners:
            entries = cls._store.get(owner)
            if entries is not None and (key, member) in entries:
                return entries[(key, member)]
        return None

    @classmethod
    def delete_metadata(
        cls,
        key: str,
        target: type[Any],
        member: str = _CONSTRUCTOR_MEMBER,
    ) -> bool:
        """Remove own metadata of ``target``; return whether anything was removed."""
        with cls._lock:
            entries = cls._store.get(target)
            if entries is None:
                return False
            return entries.pop((key, member), None) is not None


def owner_class(target: object) -> type[Any]:
    """Return the class that holds metadata for ``target``.

    Classes are their own owners; instances use their type.
    """
    if inspect.isclass(target):
        return target
    return type(target)


def get_target_name(
    target: type[Any],
    member: str = _CONSTRUCTOR_MEMBER,
    index: int | None = None,
    *,
    static: bool = False,
) -> str:
    """Build a readable name for an injection point.

    Constructor parameters render as ``Class.constructor[0]``, instance
    members as ``Class.prototype.member`` and static or class members as
    ``Class.member``.

    Args:
        target: Class declaring the member.
        member: Member name, ``""`` for the constructor.
        index: Parameter position, ``None`` for properties.
        static: Whether the member is a static or class method.

    """
    if not member:
        name = f"{target.__name__}.constructor"
    elif static:
        name = f"{target.__name__}.{member}"
    else:
        name = f"{target.__name__}.prototype.{member}"
    if index is not None:
        name = f"{name}[{index}]"
    return name
