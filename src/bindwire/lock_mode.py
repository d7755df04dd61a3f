from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for cached binding resolution.

    Singleton and context-scoped bindings write their cache at most once per
    owning context. In the single-threaded model nothing can run between the
    cache check and the cache write; hosts that resolve from several threads
    keep that guarantee by serializing first resolution per binding.
    """

    THREAD = "thread"
    """Guard cache reads/writes with a per-binding ``threading.RLock``."""

    NONE = "none"
    """Disable locking around cache reads/writes for this binding."""
