from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from bindwire.exceptions import CircularDependencyError
from bindwire.outcome import ValueOrAwaitableWithFailure, on_settled

if TYPE_CHECKING:
    from bindwire.binding import Binding
    from bindwire.injection import Injection

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ResolutionSession:
    """Track the bindings and injections of one resolution call tree.

    ``bindings`` holds the bindings whose resolution is in progress, outermost
    first. Re-entering one of them means the graph is cyclic. ``injections``
    mirrors the injection points being resolved and only serves diagnostics.

    A session is created for each top-level ``instantiate_class``,
    ``invoke_method`` or context lookup and threaded through the nested
    resolutions it triggers, each injection slot working on its own ``fork``.
    It is never shared between call trees.
    """

    __slots__ = ("bindings", "injections")

    def __init__(self) -> None:
        self.bindings: list[Binding] = []
        self.injections: list[Injection] = []

    @staticmethod
    def run_with_binding(
        action: Callable[[ResolutionSession], ValueOrAwaitableWithFailure[T]],
        binding: Binding,
        session: ResolutionSession | None = None,
    ) -> ValueOrAwaitableWithFailure[T]:
        """Run ``action`` while ``binding`` is on the session's binding stack.

        The binding is released when the action returns, raises, or, for an
        awaitable result, inside the continuation that observes the result.

        Raises:
            CircularDependencyError: If ``binding`` is already being resolved.

        """
        session = session if session is not None else ResolutionSession()
        session.enter(binding)
        try:
            result = action(session)
        except BaseException:
            session.exit(binding)
            raise
        return on_settled(result, lambda: session.exit(binding))

    @staticmethod
    def run_with_injection(
        action: Callable[[ResolutionSession], ValueOrAwaitableWithFailure[T]],
        injection: Injection,
        session: ResolutionSession | None = None,
    ) -> ValueOrAwaitableWithFailure[T]:
        """Run ``action`` while ``injection`` is on the session's injection stack."""
        session = session if session is not None else ResolutionSession()
        session.enter_injection(injection)
        try:
            result = action(session)
        except BaseException:
            session.exit_injection(injection)
            raise
        return on_settled(result, lambda: session.exit_injection(injection))

    @property
    def binding(self) -> Binding | None:
        """The binding currently being resolved."""
        return self.bindings[-1] if self.bindings else None

    @property
    def injection(self) -> Injection | None:
        """The injection point currently being resolved."""
        return self.injections[-1] if self.injections else None

    def enter(self, binding: Binding) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Enter binding: %s", binding.to_json())
        if any(entry is binding for entry in self.bindings):
            raise CircularDependencyError(binding.key, self.get_binding_path())
        self.bindings.append(binding)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Binding path: %s", self.get_binding_path())

    def exit(self, binding: Binding | None = None) -> Binding | None:
        """Release ``binding``, or the innermost binding when none is given.

        Releasing a binding that is no longer on the stack is a no-op.
        """
        exited = _release(self.bindings, binding)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Exit binding: %s", exited.to_json() if exited is not None else None)
            logger.debug("Binding path: %s", self.get_binding_path() or "<empty>")
        return exited

    def enter_injection(self, injection: Injection) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Enter injection: %s", injection.describe())
        self.injections.append(injection)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Injection path: %s", self.get_injection_path())

    def exit_injection(self, injection: Injection | None = None) -> Injection | None:
        exited = _release(self.injections, injection)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Exit injection: %s", exited.describe() if exited is not None else None)
            logger.debug("Injection path: %s", self.get_injection_path() or "<empty>")
        return exited

    def fork(self) -> ResolutionSession:
        """Copy the session for one injection slot.

        Sibling slots settle concurrently once one of them is pending. Each
        slot resolves in its own fork, so a binding entered by one slot is never
        seen as an ancestor by another.
        """
        forked = ResolutionSession()
        forked.bindings = list(self.bindings)
        forked.injections = list(self.injections)
        return forked

    def get_binding_path(self) -> str:
        """Get the binding path as ``bindingA->bindingB->bindingC``."""
        return "->".join(binding.key for binding in self.bindings)

    def get_injection_path(self) -> str:
        """Get the injection path as ``injectionA->injectionB->injectionC``."""
        return "->".join(injection.target_name for injection in self.injections)

    def __repr__(self) -> str:
        return (
            f"ResolutionSession(bindings={self.get_binding_path()!r}, "
            f"injections={self.get_injection_path()!r})"
        )


def _release(stack: list[Any], entry: Any | None) -> Any | None:
    if not stack:
        return None
    if entry is None or stack[-1] is entry:
        return stack.pop()
    for index in range(len(stack) - 1, -1, -1):
        if stack[index] is entry:
            return stack.pop(index)
    return None
