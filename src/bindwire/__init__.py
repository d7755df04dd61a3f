from bindwire.binding import Binding, Provider
from bindwire.binding_scope import BindingScope, BindingType
from bindwire.context import Context
from bindwire.exceptions import (
    AsyncValueInSyncContextError,
    BindingNotFoundError,
    BindingValueNotConfiguredError,
    BindwireError,
    CircularDependencyError,
    InvalidBindingKeyError,
    InvalidInjectionError,
    InvalidSettingsClassError,
    LockedBindingError,
    MethodNotFoundError,
    MissingArgumentValueError,
)
from bindwire.injection import (
    Getter,
    Injection,
    Setter,
    describe_injected_arguments,
    describe_injected_properties,
    get_number_of_parameters,
    inject,
)
from bindwire.lock_mode import LockMode
from bindwire.metadata import MetadataInspector
from bindwire.outcome import Failure, ValueOrAwaitable, reject
from bindwire.resolver import instantiate_class, invoke_method
from bindwire.session import ResolutionSession

__all__ = [
    "AsyncValueInSyncContextError",
    "Binding",
    "BindingNotFoundError",
    "BindingScope",
    "BindingType",
    "BindingValueNotConfiguredError",
    "BindwireError",
    "CircularDependencyError",
    "Context",
    "Failure",
    "Getter",
    "Injection",
    "InvalidBindingKeyError",
    "InvalidInjectionError",
    "InvalidSettingsClassError",
    "LockMode",
    "LockedBindingError",
    "MetadataInspector",
    "MethodNotFoundError",
    "MissingArgumentValueError",
    "Provider",
    "ResolutionSession",
    "Setter",
    "ValueOrAwaitable",
    "describe_injected_arguments",
    "describe_injected_properties",
    "get_number_of_parameters",
    "inject",
    "instantiate_class",
    "invoke_method",
    "reject",
]
