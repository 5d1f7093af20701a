"""Foreign handle tracking.

This module contains:
- ForeignHandle (opaque reference to a foreign object)
- HandleRegistry (arena of handles indexed by id, with an explicit invalidation sweep)
- RUNTIME_LOCK (serializes every call into the foreign runtime)

Handles are owned by the registry. Anything else (proxies in particular) only
keeps weak references, so clearing the arena on session end leaves no
dangling strong reference to a dead foreign object.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from typing import Any

from packaging.requirements import Requirement
from packaging.version import InvalidVersion, Version

from ..errors import IncompatibleModuleError, ResolutionError, StaleHandleError
from ..interfaces import ForeignRuntime, StringifierRegistryProtocol
from .runtime_registry import RuntimeRegistry
from .stringifier_registry import StringifierRegistry

logger = logging.getLogger(__name__)

# Foreign runtime calls are not reentrant from concurrent callers. The lock is
# reentrant so load hooks may resolve other proxies from the owning thread.
RUNTIME_LOCK = threading.RLock()

NULL_HANDLE_REPR = "<pointer: 0x0>"


class HandleState(enum.Enum):
    UNRESOLVED = "unresolved"
    VALID = "valid"
    INVALID = "invalid"


def _rehydrate_handle(handle_id: str, module_name: str, type_tag: str) -> ForeignHandle:
    handle = ForeignHandle(handle_id, module_name)
    handle.type_tag = type_tag
    handle._state = HandleState.INVALID
    return handle


class ForeignHandle:
    """Opaque reference correlating a host-side proxy with a foreign object.

    Attributes:
        id: Process-unique identifier.
        module_name: Name of the module the handle was produced for (diagnostics).
        type_tag: Tag selecting the string conversion for the foreign object.
        session_id: Runtime session that produced the handle.
    """

    __slots__ = ("id", "module_name", "type_tag", "session_id", "_state", "__weakref__")

    def __init__(self, handle_id: str, module_name: str) -> None:
        self.id = handle_id
        self.module_name = module_name
        self.type_tag = ""
        self.session_id: str | None = None
        self._state = HandleState.UNRESOLVED

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def valid(self) -> bool:
        return self._state is HandleState.VALID

    def _mark_valid(self, type_tag: str, session_id: str | None) -> None:
        if self._state is not HandleState.UNRESOLVED:
            raise RuntimeError(f"Handle {self.id} cannot become valid from state {self._state.value}")
        self.type_tag = type_tag
        self.session_id = session_id
        self._state = HandleState.VALID

    def _invalidate(self) -> None:
        self._state = HandleState.INVALID

    def __reduce__(self) -> tuple[Any, ...]:
        # A handle never survives persistence: it comes back invalid.
        return (_rehydrate_handle, (self.id, self.module_name, self.type_tag))

    def __repr__(self) -> str:
        return f"<ForeignHandle id={self.id} module={self.module_name} state={self._state.value}>"


def check_requirement(runtime: ForeignRuntime, module_name: str, module: Any, requirement: str) -> None:
    """Check the module's ``__version__`` against a PEP 508 requirement.

    Raises:
        IncompatibleModuleError: If the version is missing, unparsable or out of range.
    """
    req = Requirement(requirement)
    if not req.specifier:
        return
    try:
        raw_version = runtime.get_attribute(module, "__version__")
    except AttributeError:
        raise IncompatibleModuleError(module_name, requirement, None) from None

    found = str(raw_version)
    try:
        version = Version(found)
    except InvalidVersion:
        raise IncompatibleModuleError(module_name, requirement, found) from None
    if not req.specifier.contains(version, prereleases=True):
        raise IncompatibleModuleError(module_name, requirement, found)


def probe_module(runtime: ForeignRuntime, module_name: str, requirement: str | None = None) -> bool:
    """Return True if *module_name* resolves (and satisfies *requirement*).

    Every resolution failure is reported as False. No handle is produced.
    """
    with RUNTIME_LOCK:
        try:
            if not runtime.find_module(module_name):
                return False
            if requirement:
                module = runtime.import_module(module_name)
                check_requirement(runtime, module_name, module, requirement)
        except Exception as exc:
            logger.debug("Availability probe for %s failed: %s", module_name, exc)
            return False
    return True


class HandleRegistry:
    """Arena of live foreign handles.

    Supports an explicit runtime and stringifier table for tests; by default
    both are taken from their process-wide registries on first use, so
    creating the registry never touches the foreign runtime.
    """

    _instance: HandleRegistry | None = None
    _lock = threading.Lock()

    def __init__(
        self,
        runtime: ForeignRuntime | None = None,
        stringifiers: StringifierRegistryProtocol | None = None,
    ) -> None:
        self._runtime = runtime
        self._stringifiers = stringifiers
        self._handles: dict[str, ForeignHandle] = {}
        self._objects: dict[str, Any] = {}

    @classmethod
    def get_instance(cls) -> HandleRegistry:
        """Return the singleton instance, creating it if necessary."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def runtime(self) -> ForeignRuntime:
        if self._runtime is not None:
            return self._runtime
        return RuntimeRegistry.ensure()

    @property
    def stringifiers(self) -> StringifierRegistryProtocol:
        if self._stringifiers is not None:
            return self._stringifiers
        return StringifierRegistry.get_instance()

    def __len__(self) -> int:
        return len(self._handles)

    def register(self, module_name: str, requirement: str | None = None) -> ForeignHandle:
        """Resolve *module_name* through the runtime and track a new handle.

        Raises:
            ResolutionError: If the runtime cannot produce the module. The
                runtime's exception is chained as ``__cause__``.
        """
        handle = ForeignHandle(uuid.uuid4().hex, module_name)
        with RUNTIME_LOCK:
            runtime = self.runtime
            try:
                module = runtime.import_module(module_name)
                if requirement:
                    check_requirement(runtime, module_name, module, requirement)
            except Exception as exc:
                handle._invalidate()
                logger.debug("Resolution of %s failed: %s", module_name, exc)
                raise ResolutionError(module_name, str(exc)) from exc

            handle._mark_valid(runtime.type_tag(module), runtime.session_id)
            self._handles[handle.id] = handle
            self._objects[handle.id] = module

        logger.debug("Registered handle %s for %s (session %s)", handle.id, module_name, handle.session_id)
        return handle

    def is_valid(self, handle: ForeignHandle | None) -> bool:
        if handle is None or not handle.valid:
            return False
        return self._handles.get(handle.id) is handle

    def resolve(self, handle: ForeignHandle) -> Any:
        """Return the foreign object behind *handle*.

        Raises:
            StaleHandleError: If the handle has been invalidated.
        """
        with RUNTIME_LOCK:
            if not self.is_valid(handle):
                raise StaleHandleError(handle.module_name, handle.id)
            return self._objects[handle.id]

    def release(self, handle_id: str) -> None:
        """Invalidate and drop a single handle (no-op if already gone)."""
        with RUNTIME_LOCK:
            handle = self._handles.pop(handle_id, None)
            self._objects.pop(handle_id, None)
            if handle is not None:
                handle._invalidate()
                logger.debug("Released handle %s for %s", handle_id, handle.module_name)

    def invalidate_all(self) -> int:
        """Mark every tracked handle invalid and clear the arena.

        Returns:
            The number of handles invalidated.
        """
        with RUNTIME_LOCK:
            handles = list(self._handles.values())
            for handle in handles:
                handle._invalidate()
            self._handles.clear()
            self._objects.clear()
        if handles:
            logger.info("[PyForeign][Handles] Invalidated %d handle(s)", len(handles))
        return len(handles)

    def stringify(self, handle: ForeignHandle | None) -> str:
        """Return the foreign string form of *handle*, or the null sentinel if invalid."""
        with RUNTIME_LOCK:
            if handle is None or not self.is_valid(handle):
                return NULL_HANDLE_REPR
            return self.stringify_object(self._objects[handle.id], handle.type_tag)

    def stringify_object(self, obj: Any, type_tag: str | None = None) -> str:
        """Convert a foreign object to a string using the override for its type tag."""
        with RUNTIME_LOCK:
            runtime = self.runtime
            tag = type_tag or runtime.type_tag(obj)
            stringifier = self.stringifiers.get(tag)
            if stringifier is not None:
                return stringifier(obj)
            return runtime.to_string(obj)
