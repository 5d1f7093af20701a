"""Runtime session lifecycle utilities.

This module provides the explicit lifecycle events that invalidate handles
(ending a session) and context managers for scoping a session or isolating
the process-wide registries, the latter mainly for tests.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from ..interfaces import ForeignRuntime
from .handles import RUNTIME_LOCK, HandleRegistry
from .runtime_registry import RuntimeRegistry
from .stringifier_registry import StringifierRegistry


def end_session() -> int:
    """End the foreign runtime session and invalidate every tracked handle.

    Returns:
        The number of handles invalidated.
    """
    with RUNTIME_LOCK:
        swept = HandleRegistry.get_instance().invalidate_all()
        runtime = RuntimeRegistry.get()
        if runtime is not None:
            runtime.shutdown()
    return swept


@contextmanager
def runtime_session(runtime: ForeignRuntime | None = None) -> Generator[ForeignRuntime, None, None]:
    """Open a runtime session for the duration of the block.

    Example:
        >>> with runtime_session() as runtime:
        ...     json = LazyModuleProxy("json")
        ...     json.dumps([1])
        '[1]'
        >>> json.get("dumps")  # raises StaleHandleError
    """
    if runtime is not None:
        RuntimeRegistry.register(runtime)
    active = RuntimeRegistry.ensure()
    active.start()
    try:
        yield active
    finally:
        end_session()


@contextmanager
def registry_scope() -> Generator[None, None, None]:
    """Context manager for an isolated set of registries.

    Unlike restoring singleton state in place, the scope starts empty: no
    runtime, no handles and no stringifier overrides are visible inside it.
    On exit every handle created in the scope is invalidated, a runtime
    started in the scope is shut down, and the previous registries are
    restored.
    """
    previous = (
        RuntimeRegistry._instance,
        HandleRegistry._instance,
        StringifierRegistry._instance,
    )
    RuntimeRegistry._instance = None
    HandleRegistry._instance = None
    StringifierRegistry._instance = None
    try:
        yield
    finally:
        with RUNTIME_LOCK:
            if HandleRegistry._instance is not None:
                HandleRegistry._instance.invalidate_all()
            scoped_runtime = RuntimeRegistry._instance
            if scoped_runtime is not None and scoped_runtime is not previous[0]:
                scoped_runtime.shutdown()
            RuntimeRegistry._instance, HandleRegistry._instance, StringifierRegistry._instance = previous
