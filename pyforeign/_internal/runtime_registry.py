"""Registry for the single active foreign runtime."""

from __future__ import annotations

import logging

from ..config import RuntimeConfig, load_runtime_config
from ..interfaces import ForeignRuntime

logger = logging.getLogger(__name__)


class RuntimeRegistry:
    """Singleton registry for the active foreign runtime."""

    _instance: ForeignRuntime | None = None  # noqa: UP045

    @classmethod
    def register(cls, runtime: ForeignRuntime) -> None:
        """Register runtime instance.

        The runtime can only be replaced before its session has started,
        which is what allows relocating the foreign runtime before first use.

        Raises:
            RuntimeError: If a different runtime is registered and already started.
        """
        current = cls._instance
        if current is not None:
            if current is runtime:
                return
            if current.is_started():
                raise RuntimeError(
                    f"Runtime '{current.identifier}' already started (session {current.session_id}). "
                    "End the session with pyforeign.end_session() before switching runtimes."
                )
            logger.info(
                "[PyForeign][Runtime] Replacing unstarted runtime %s with %s",
                current.identifier,
                runtime.identifier,
            )
        cls._instance = runtime

    @classmethod
    def get(cls) -> ForeignRuntime | None:
        """Get registered runtime. Returns None if no runtime registered."""
        return cls._instance

    @classmethod
    def get_required(cls) -> ForeignRuntime:
        """Get runtime, raising if not registered."""
        if cls._instance is None:
            raise RuntimeError(
                "No foreign runtime registered. Call pyforeign.use_runtime() "
                "or pyforeign._internal.runtime_registry.RuntimeRegistry.ensure() first."
            )
        return cls._instance

    @classmethod
    def ensure(cls, config: RuntimeConfig | None = None) -> ForeignRuntime:
        """Return the registered runtime, discovering and registering one if needed."""
        if cls._instance is not None:
            return cls._instance

        from .loader import load_runtime

        if config is None:
            config = load_runtime_config()
        runtime = load_runtime(config.get("runtime"), config)
        if runtime is None:
            raise RuntimeError("No foreign runtime could be discovered")
        cls._instance = runtime
        return runtime

    @classmethod
    def unregister(cls) -> None:
        """Clear registered runtime (for testing/cleanup)."""
        cls._instance = None
