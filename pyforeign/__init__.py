"""
pyforeign - Lazily proxy modules from a foreign runtime with safe handle invalidation.

pyforeign lets a package declare the foreign modules it depends on at import
time without requiring the foreign runtime to be present. The real module is
resolved on first use, its handle is tracked by a registry, and every handle
is invalidated when the runtime session ends, so stale references fail loudly
instead of silently returning misleading values.

Key Features:
    - Delay-loaded module proxies with load hooks
    - Availability probes for test skip logic
    - Explicit handle invalidation on session end and after unpickling
    - Pluggable runtimes discovered through entry points
    - Type-tag keyed string conversion overrides

Basic Usage:
    >>> import pyforeign
    >>> np = pyforeign.import_module("numpy", delay_load=True)
    >>> if np.is_available():
    ...     np.array([1, 2, 3])
    >>> pyforeign.end_session()
    >>> pyforeign.is_null_handle(np)
    True
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ._internal.handles import NULL_HANDLE_REPR, RUNTIME_LOCK, ForeignHandle, HandleRegistry, HandleState, probe_module
from ._internal.lazy_module import LazyModuleProxy
from ._internal.loader import load_runtime
from ._internal.runtime_registry import RuntimeRegistry
from ._internal.session import end_session, registry_scope, runtime_session
from ._internal.stringifier_registry import StringifierRegistry
from .config import ModuleOptions, RuntimeConfig, load_runtime_config
from .errors import (
    ForeignError,
    ForeignModuleNotFoundError,
    IncompatibleModuleError,
    ResolutionError,
    StaleHandleError,
)
from .interfaces import ForeignRuntime

__version__ = "0.1.0"

__all__ = [
    "ForeignError",
    "ForeignHandle",
    "ForeignModuleNotFoundError",
    "ForeignRuntime",
    "HandleRegistry",
    "HandleState",
    "IncompatibleModuleError",
    "LazyModuleProxy",
    "ModuleOptions",
    "NULL_HANDLE_REPR",
    "ResolutionError",
    "RuntimeConfig",
    "StaleHandleError",
    "end_session",
    "get_runtime",
    "import_module",
    "is_null_handle",
    "load_runtime_config",
    "module_available",
    "register_stringifier",
    "registry_scope",
    "runtime_session",
    "to_str",
    "use_runtime",
]


def import_module(module_name: str, delay_load: bool = False, **options: Any) -> LazyModuleProxy:
    """Declare a foreign module.

    Keyword options are the keys of :class:`ModuleOptions`.
    """
    return LazyModuleProxy(module_name, delay_load=delay_load, options=ModuleOptions(**options))


def module_available(module_name: str, requirement: str | None = None) -> bool:
    """Return True if the foreign runtime can resolve *module_name*. Never raises for missing modules."""
    return probe_module(get_runtime(), module_name, requirement)


def is_null_handle(obj: LazyModuleProxy | ForeignHandle | None) -> bool:
    """Return True when *obj* has no usable foreign counterpart."""
    if obj is None:
        return True
    if isinstance(obj, LazyModuleProxy):
        return obj.handle is None
    if isinstance(obj, ForeignHandle):
        return not obj.valid
    raise TypeError(f"Expected LazyModuleProxy or ForeignHandle, got {type(obj).__name__}")


def to_str(obj: Any) -> str:
    """String conversion for proxies, handles and forwarded foreign values."""
    if obj is None:
        return NULL_HANDLE_REPR
    if isinstance(obj, LazyModuleProxy):
        return obj.registry.stringify(obj.handle)
    registry = HandleRegistry.get_instance()
    if isinstance(obj, ForeignHandle):
        return registry.stringify(obj)
    return registry.stringify_object(obj)


def register_stringifier(type_tag: str, stringifier: Callable[[Any], str]) -> None:
    """Override string conversion for foreign objects carrying *type_tag*."""
    StringifierRegistry.get_instance().register(type_tag, stringifier)


def use_runtime(runtime: ForeignRuntime | str, config: RuntimeConfig | None = None) -> ForeignRuntime:
    """Select the foreign runtime. Must happen before the runtime session starts.

    Declaring delayed proxies and checking availability without a requirement
    do not start a session, so the runtime can still be replaced afterwards.
    The first resolution (or a requirement check, which imports the module)
    starts it.

    Args:
        runtime: A runtime instance, or the name of one to discover.
        config: Configuration passed to a discovered runtime.
    """
    with RUNTIME_LOCK:
        if isinstance(runtime, str):
            loaded = load_runtime(runtime, config)
            if loaded is None:
                raise ValueError(f"Runtime '{runtime}' could not be loaded")
            runtime = loaded
        RuntimeRegistry.register(runtime)
    return runtime


def get_runtime() -> ForeignRuntime:
    """Return the active runtime, discovering the default one if none was selected."""
    return RuntimeRegistry.ensure()
