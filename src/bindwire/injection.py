"""Injection descriptors and the ``inject`` marker family.

Injection points are declared with ``typing.Annotated``:

.. code-block:: python

    class InfoController:
        user_name: Annotated[str, inject("authentication.user")]

        def __init__(self, app_name: Annotated[str, inject("application.name")]) -> None:
            self.app_name = app_name

Descriptors are extracted from annotations the first time a class member is
inspected and recorded in ``MetadataInspector``; later resolutions read them
back from there.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    ClassVar,
    Protocol,
    TypeAlias,
    TypeVar,
    get_args,
    get_origin,
    get_type_hints,
)

from bindwire.exceptions import InvalidInjectionError, MethodNotFoundError
from bindwire.keys import get_deep_property
from bindwire.metadata import MetadataInspector, get_target_name, owner_class
from bindwire.outcome import ValueOrAwaitable, then

if TYPE_CHECKING:
    from bindwire.context import Context
    from bindwire.session import ResolutionSession

T = TypeVar("T")

logger = logging.getLogger(__name__)

PARAMETERS_KEY = "inject:parameters"
"""Metadata key holding the per-parameter ``Injection | None`` tuple of a member."""

PROPERTIES_KEY = "inject:properties"
"""Metadata key holding the ``{property: Injection}`` mapping of a class."""

SIGNATURE_KEY = "inject:signature"
"""Metadata key holding the injectable ``inspect.Parameter`` tuple of a member."""

_VARIADIC_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class ResolverFunction(Protocol):
    """Custom resolution function attached to an injection point."""

    def __call__(
        self,
        ctx: Context,
        injection: Injection,
        session: ResolutionSession | None = None,
    ) -> ValueOrAwaitable[Any]: ...


Getter: TypeAlias = Callable[[], ValueOrAwaitable[T]]
"""The callable injected by ``inject.getter(key)``."""

Setter: TypeAlias = Callable[[T], None]
"""The callable injected by ``inject.setter(key)``."""


@dataclass(frozen=True, slots=True, eq=False)
class Injection:
    """Describe what to inject at one constructor parameter or property.

    ``target``, ``member`` and ``index`` identify the slot for diagnostics and
    are filled in when the descriptor is recorded for a class.
    """

    binding_key: str
    """Key resolved from the context; may be empty when ``resolve`` is set."""
    metadata: Mapping[str, Any] = field(default_factory=dict)
    """Free-form metadata passed along to custom resolvers."""
    resolve: ResolverFunction | None = None
    """Optional custom resolution function overriding the context lookup."""
    target: type[Any] | None = None
    member: str = ""
    index: int | None = None
    static: bool = False

    @property
    def target_name(self) -> str:
        if self.target is None:
            return f"<unbound injection {self.binding_key!r}>"
        return get_target_name(self.target, self.member, self.index, static=self.static)

    @property
    def is_injected(self) -> bool:
        """Whether the slot can be resolved without a caller-supplied value."""
        return bool(self.binding_key) or self.resolve is not None

    def describe(self) -> dict[str, Any]:
        return {
            "target_name": self.target_name,
            "binding_key": self.binding_key,
            "metadata": dict(self.metadata),
        }

    def __call__(self, obj: Any) -> Any:
        name = getattr(obj, "__qualname__", repr(obj))
        if inspect.isclass(obj):
            msg = f"inject can only be used on a property or a method parameter, not on class {name}."
        else:
            msg = f"inject cannot be used on a method: {name}."
        raise InvalidInjectionError(msg)


class _InjectFactory:
    """Build ``Injection`` markers for use inside ``typing.Annotated``."""

    def __call__(
        self,
        binding_key: str = "",
        metadata: Mapping[str, Any] | None = None,
        resolve: ResolverFunction | None = None,
    ) -> Injection:
        """Mark a parameter or property for injection.

        Args:
            binding_key: Key of the binding providing the value.
            metadata: Optional metadata to help the injection.
            resolve: Optional function resolving the value instead of the
                context lookup.

        """
        return Injection(
            binding_key=binding_key,
            metadata=MappingProxyType(dict(metadata or {})),
            resolve=resolve,
        )

    def getter(self, binding_key: str, metadata: Mapping[str, Any] | None = None) -> Injection:
        """Inject a function returning the value currently bound to ``binding_key``.

        Resolution is deferred until the function is called, so the binding
        does not need to exist while the owner is being constructed.
        """
        return self(binding_key, metadata, resolve_as_getter)

    def setter(self, binding_key: str, metadata: Mapping[str, Any] | None = None) -> Injection:
        """Inject a function binding ``binding_key`` to the value it receives.

        Only constant values are supported; a class or a provider cannot be
        bound through a setter.
        """
        return self(binding_key, metadata, resolve_as_setter)

    def options(self, path: str = "", metadata: Mapping[str, Any] | None = None) -> Injection:
        """Inject a value from the ``options`` of the binding being resolved.

        Examples:
            .. code-block:: python

                class Store:
                    def __init__(
                        self,
                        option_x: Annotated[int, inject.options("x")],
                        option_y: Annotated[str, inject.options("y")],
                    ) -> None:
                        self.option_x = option_x
                        self.option_y = option_y


                ctx.bind("store1").to_class(Store).with_options({"x": 1, "y": "a"})
                ctx.bind("store2").to_class(Store).with_options({"x": 2, "y": "b"})

        Args:
            path: Property path inside the options, ``#`` separated. An empty
                path injects the whole options object.
            metadata: Optional metadata to help the injection.

        """
        return self(path, metadata, resolve_as_options)


inject = _InjectFactory()
"""Create injection markers; see ``inject.getter``, ``inject.setter`` and ``inject.options``."""


def resolve_as_getter(
    ctx: Context,
    injection: Injection,
    session: ResolutionSession | None = None,
) -> Getter[Any]:
    # The session of the current resolution is not propagated into the getter.
    def getter() -> ValueOrAwaitable[Any]:
        return ctx.get_value(injection.binding_key)

    return getter


def resolve_as_setter(
    ctx: Context,
    injection: Injection,
    session: ResolutionSession | None = None,
) -> Setter[Any]:
    def setter(value: Any) -> None:
        ctx.bind(injection.binding_key).to(value)

    return setter


def resolve_as_options(
    ctx: Context,
    injection: Injection,
    session: ResolutionSession | None = None,
) -> ValueOrAwaitable[Any]:
    if session is None or session.binding is None:
        # Not resolved through a binding, e.g. instantiate_class(cls, ctx).
        return None

    path = injection.binding_key
    if path.startswith("#"):
        path = path[1:]
    path = path.replace("#", ".")
    return then(session.binding.options, lambda options: get_deep_property(options, path))


def find_injection(annotation: Any) -> Injection | None:
    """Return the ``Injection`` marker carried by an ``Annotated`` annotation."""
    if get_origin(annotation) is not Annotated:
        return None
    return next(
        (item for item in get_args(annotation)[1:] if isinstance(item, Injection)),
        None,
    )


def describe_injected_arguments(
    target: object,
    method: str = "",
) -> tuple[Injection | None, ...]:
    """Return the injection descriptors of a constructor or method's parameters.

    The tuple holds one entry per injectable parameter (``*args``/``**kwargs``
    excluded), ``None`` for parameters that are not decorated.

    Args:
        target: Class or instance.
        method: Method name; ``""`` selects the constructor.

    """
    owner = owner_class(target)
    injections = MetadataInspector.get_metadata(PARAMETERS_KEY, owner, method, own_only=True)
    if injections is None:
        _record_member(owner, method)
        injections = MetadataInspector.get_metadata(PARAMETERS_KEY, owner, method, own_only=True)
    return injections


def describe_parameters(target: object, method: str = "") -> tuple[inspect.Parameter, ...]:
    """Return the injectable parameters of a constructor or method in declared order."""
    owner = owner_class(target)
    parameters = MetadataInspector.get_metadata(SIGNATURE_KEY, owner, method, own_only=True)
    if parameters is None:
        _record_member(owner, method)
        parameters = MetadataInspector.get_metadata(SIGNATURE_KEY, owner, method, own_only=True)
    return parameters


def get_number_of_parameters(target: object, method: str = "") -> int:
    return len(describe_parameters(target, method))


def is_static_member(target: object, method: str) -> bool:
    """Return whether ``method`` is a static or class method of ``target``'s class."""
    if not method:
        return False
    raw = inspect.getattr_static(owner_class(target), method, None)
    return isinstance(raw, (staticmethod, classmethod))


def describe_injected_properties(target: object) -> Mapping[str, Injection]:
    """Return the injection descriptors of a class's instance properties.

    Properties are collected from class annotations (base classes first) and
    keyed by attribute name.

    Raises:
        InvalidInjectionError: If an injection marker sits on a ``ClassVar``.

    """
    owner = owner_class(target)
    properties = MetadataInspector.get_metadata(PROPERTIES_KEY, owner, own_only=True)
    if properties is None:
        properties = MappingProxyType(_inspect_properties(owner))
        MetadataInspector.define_metadata(PROPERTIES_KEY, properties, owner)
    return properties


def _record_member(owner: type[Any], method: str) -> None:
    function, skip_first, static = _unwrap_member(owner, method)
    try:
        signature_parameters = list(inspect.signature(function).parameters.values())
    except (TypeError, ValueError):
        # Builtin constructors without introspectable signatures take no injection.
        signature_parameters = []
    annotations = _resolved_annotations(function)

    parameters = [
        parameter for parameter in signature_parameters if parameter.kind not in _VARIADIC_KINDS
    ]
    if skip_first and parameters:
        parameters = parameters[1:]

    injections: list[Injection | None] = []
    for index, parameter in enumerate(parameters):
        marker = find_injection(annotations.get(parameter.name, parameter.annotation))
        if marker is None:
            injections.append(None)
            continue
        injections.append(
            dataclasses.replace(marker, target=owner, member=method, index=index, static=static),
        )

    if MetadataInspector.get_metadata(PARAMETERS_KEY, owner, method, own_only=True) is None:
        MetadataInspector.define_metadata(PARAMETERS_KEY, tuple(injections), owner, method)
    MetadataInspector.define_metadata(SIGNATURE_KEY, tuple(parameters), owner, method)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Recorded %d parameter injection(s) for %s",
            sum(injection is not None for injection in injections),
            get_target_name(owner, method, static=static),
        )


def _unwrap_member(owner: type[Any], method: str) -> tuple[Callable[..., Any], bool, bool]:
    """Return ``(function, skip_first_parameter, is_static)`` for a member."""
    if not method:
        return owner.__init__, True, False
    raw = inspect.getattr_static(owner, method, None)
    if isinstance(raw, staticmethod):
        return raw.__func__, False, True
    if isinstance(raw, classmethod):
        return raw.__func__, True, True
    if raw is None or not callable(raw):
        raise MethodNotFoundError(owner.__name__, method)
    return raw, inspect.isfunction(raw), False


def _resolved_annotations(function: Callable[..., Any]) -> dict[str, Any]:
    try:
        return get_type_hints(function, include_extras=True)
    except (AttributeError, NameError, TypeError):
        return {}


def _inspect_properties(owner: type[Any]) -> dict[str, Injection]:
    annotations = _class_annotations(owner)
    # Fields that are also constructor parameters (dataclasses) are injected once, by the constructor.
    constructor_names = {parameter.name for parameter in describe_parameters(owner)}
    properties: dict[str, Injection] = {}
    for name, annotation in annotations.items():
        if get_origin(annotation) is ClassVar:
            args = get_args(annotation)
            if args and find_injection(args[0]) is not None:
                msg = f"inject is not supported for a static property: {owner.__name__}.{name}."
                raise InvalidInjectionError(msg)
            continue
        marker = find_injection(annotation)
        if marker is None or name in constructor_names:
            continue
        if any(get_origin(item) is ClassVar or item is ClassVar for item in get_args(annotation)[:1]):
            msg = f"inject is not supported for a static property: {owner.__name__}.{name}."
            raise InvalidInjectionError(msg)
        properties[name] = dataclasses.replace(marker, target=owner, member=name)
    return properties


def _class_annotations(owner: type[Any]) -> dict[str, Any]:
    try:
        return get_type_hints(owner, include_extras=True)
    except (AttributeError, NameError, TypeError):
        annotations: dict[str, Any] = {}
        for klass in reversed(inspect.getmro(owner)):
            annotations.update(inspect.get_annotations(klass))
        return annotations
