"""Lazily resolved proxy for a foreign module."""

from __future__ import annotations

import logging
import weakref
from time import monotonic
from typing import Any

from ..config import ModuleOptions, picklable_options, validate_module_options
from ..errors import ForeignModuleNotFoundError, ResolutionError, StaleHandleError
from .handles import RUNTIME_LOCK, ForeignHandle, HandleRegistry, probe_module

logger = logging.getLogger(__name__)


class LazyModuleProxy:
    """Proxy for a named foreign module.

    With ``delay_load=True`` nothing touches the foreign runtime until the first
    :meth:`get`, which lets a dependent package import cleanly where the
    runtime is missing and lets callers relocate the runtime before first use.
    With ``delay_load=False`` the module is resolved during construction.

    Public attribute access is forwarded, so ``proxy.bar`` is ``proxy.get("bar")``.
    Names starting with an underscore must go through :meth:`get`.

    Raises:
        ForeignModuleNotFoundError: From construction (eager) or first ``get``
            (delayed) when the module cannot be located.
    """

    def __init__(
        self,
        module_name: str,
        delay_load: bool = False,
        options: ModuleOptions | None = None,
        *,
        registry: HandleRegistry | None = None,
    ) -> None:
        if not module_name:
            raise ValueError("module_name must be a non-empty string")
        self._module_name = module_name
        self._delay_load = bool(delay_load)
        self._options: ModuleOptions = validate_module_options(ModuleOptions(**(options or {})))
        self._registry = registry
        self._reset_state(loaded=False)

        if not self._delay_load:
            with RUNTIME_LOCK:
                self._load()

    def _reset_state(self, loaded: bool) -> None:
        self._loaded = loaded
        self._handle_ref: weakref.ref[ForeignHandle] | None = None
        self._handle_id: str | None = None
        self._negative_probe_until: float | None = None

    @property
    def module_name(self) -> str:
        return self._module_name

    @property
    def delay_load(self) -> bool:
        return self._delay_load

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def options(self) -> ModuleOptions:
        return ModuleOptions(**self._options)

    @property
    def registry(self) -> HandleRegistry:
        if self._registry is not None:
            return self._registry
        return HandleRegistry.get_instance()

    @property
    def handle(self) -> ForeignHandle | None:
        """The valid handle backing this proxy, or None (never an invalidated handle)."""
        if self._handle_ref is None:
            return None
        handle = self._handle_ref()
        if handle is None or not self.registry.is_valid(handle):
            return None
        return handle

    def get(self, attribute_name: str) -> Any:
        """Resolve the module if needed and forward the attribute lookup.

        Raises:
            ForeignModuleNotFoundError: If the module cannot be located.
            ResolutionError: If resolution fails for another reason.
            StaleHandleError: If the handle was invalidated after a successful load.
            AttributeError: If the foreign module has no such attribute.
        """
        with RUNTIME_LOCK:
            handle = self._ensure_loaded()
            registry = self.registry
            module = registry.resolve(handle)
            return registry.runtime.get_attribute(module, attribute_name)

    def is_available(self) -> bool:
        """Probe whether the module can be used, without raising or loading it."""
        with RUNTIME_LOCK:
            if self._loaded:
                return self.handle is not None

            now = monotonic()
            if self._negative_probe_until is not None and now < self._negative_probe_until:
                logger.debug("Using cached negative probe for %s", self._module_name)
                return False

            runtime = self.registry.runtime
            available = probe_module(runtime, self._module_name, self._options.get("requirement"))
            if available:
                self._negative_probe_until = None
            else:
                ttl = self._probe_ttl(runtime)
                self._negative_probe_until = now + ttl if ttl > 0 else None
            return available

    def reload(self) -> ForeignHandle:
        """Explicitly resolve the module again, producing a fresh handle.

        The previous handle (if any) is released and stays invalid.
        """
        with RUNTIME_LOCK:
            if self._handle_id is not None:
                self.registry.release(self._handle_id)
            self._reset_state(loaded=False)
            self._load()
            handle = self.handle
            if handle is None:
                raise StaleHandleError(self._module_name, self._handle_id)
            return handle

    def _probe_ttl(self, runtime: Any) -> float:
        if "probe_cache_seconds" in self._options:
            return float(self._options["probe_cache_seconds"])
        config = getattr(runtime, "config", None) or {}
        return float(config.get("probe_cache_seconds", 0))

    def _ensure_loaded(self) -> ForeignHandle:
        if not self._loaded:
            self._load()
        handle = self.handle
        if handle is None:
            raise StaleHandleError(self._module_name, self._handle_id)
        return handle

    def _load(self) -> None:
        before_load = self._options.get("before_load")
        if before_load is not None:
            before_load()

        registry = self.registry
        try:
            handle = registry.register(self._module_name, requirement=self._options.get("requirement"))
        except ResolutionError as exc:
            cause = exc.__cause__
            if isinstance(cause, ModuleNotFoundError):
                message = None
                if cause.name and cause.name != self._module_name:
                    message = f"Foreign module '{self._module_name}' could not be loaded: {cause}"
                error = ForeignModuleNotFoundError(self._module_name, message)
                self._notify_error(error)
                raise error from exc
            self._notify_error(exc)
            raise

        self._handle_ref = weakref.ref(handle)
        self._handle_id = handle.id
        self._loaded = True
        self._negative_probe_until = None
        logger.debug("Loaded foreign module %s (handle %s)", self._module_name, handle.id)

        on_load = self._options.get("on_load")
        if on_load is not None:
            on_load(self)

    def _notify_error(self, error: BaseException) -> None:
        on_error = self._options.get("on_error")
        if on_error is not None:
            on_error(error)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __getstate__(self) -> dict[str, Any]:
        return {
            "module_name": self._module_name,
            "delay_load": self._delay_load,
            "options": picklable_options(self._options),
            "was_loaded": self._loaded,
        }

    def __setstate__(self, state: dict[str, Any]) -> None:
        self._module_name = state["module_name"]
        self._delay_load = state["delay_load"]
        self._options = validate_module_options(ModuleOptions(**state["options"]))
        self._registry = None
        # A proxy loaded in a previous process comes back loaded but with a
        # null handle, so the next get() reports it as stale.
        self._reset_state(loaded=state["was_loaded"])

    def __repr__(self) -> str:
        if not self._loaded:
            state = "delayed"
        elif self.handle is None:
            state = "stale"
        else:
            state = "loaded"
        return f"<LazyModuleProxy module={self._module_name!r} state={state}>"
