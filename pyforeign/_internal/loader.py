"""Runtime discovery via Python entry points with fallback to built-in runtimes.

This module loads ForeignRuntime implementations registered under the
``pyforeign.runtimes`` entry point group. When no entry point is installed it
falls back to the runtimes shipped with pyforeign.
"""
from __future__ import annotations

import importlib
import logging
import os
from importlib.metadata import entry_points
from typing import Any, cast

from ..config import RuntimeConfig
from ..interfaces import ForeignRuntime

logger = logging.getLogger(__name__)

OVERRIDE_ENV_VAR = "PYFOREIGN_RUNTIME_OVERRIDE"

# Format: {"name": "module.path:ClassName"}
_FALLBACK_RUNTIMES = {
    "importlib": "pyforeign._internal.importlib_runtime:ImportlibRuntime",
}


def _instantiate(runtime_cls: Any, config: RuntimeConfig | None) -> ForeignRuntime:
    return cast(ForeignRuntime, runtime_cls(config or RuntimeConfig()))


def _try_direct_import(module_class: str, config: RuntimeConfig | None) -> ForeignRuntime | None:
    """Attempt to import a runtime directly by module:class path."""
    try:
        module_path, class_name = module_class.rsplit(":", 1)
        module = importlib.import_module(module_path)
        runtime_cls = getattr(module, class_name)
    except (ImportError, AttributeError, ValueError) as exc:
        logger.debug("Direct import failed for %s: %s", module_class, exc)
        return None
    logger.info("[PyForeign][Loader] Direct import succeeded: %s", module_class)
    return _instantiate(runtime_cls, config)


def load_runtime(name: str | None = None, config: RuntimeConfig | None = None) -> ForeignRuntime | None:
    """Load a foreign runtime by name using entry points.

    Discovery order:
    1. PYFOREIGN_RUNTIME_OVERRIDE environment variable (debug override)
    2. Explicit ``name`` argument
    3. Auto-detect via entry points if exactly one runtime is installed
    4. Fallback: runtimes shipped with pyforeign

    Returns:
        The loaded runtime instance, or None if no runtime found.

    Raises:
        ValueError: If the requested runtime is not found or discovery is ambiguous.
    """
    override = os.environ.get(OVERRIDE_ENV_VAR)
    if override:
        logger.debug("Using runtime override: %s", override)
        name = override

    eps_list = list(entry_points().select(group="pyforeign.runtimes"))

    if eps_list:
        if name:
            matches = [ep for ep in eps_list if ep.name == name]
            if len(matches) > 1:
                raise ValueError(f"Multiple runtimes registered as '{name}'")
            if matches:
                runtime_cls = matches[0].load()
                logger.info("[PyForeign][Loader] Loaded runtime via entry point: %s", name)
                return _instantiate(runtime_cls, config)
            if name not in _FALLBACK_RUNTIMES:
                available = [ep.name for ep in eps_list] + list(_FALLBACK_RUNTIMES)
                raise ValueError(f"Runtime '{name}' not found. Available: {available}")
        elif len(eps_list) == 1:
            ep = eps_list[0]
            logger.info("[PyForeign][Loader] Auto-detected runtime: %s", ep.name)
            return _instantiate(ep.load(), config)
        else:
            available = [ep.name for ep in eps_list]
            raise ValueError(f"Multiple runtimes found, specify one: {available}")

    logger.debug("No matching entry points, trying built-in runtimes...")

    if name:
        if name in _FALLBACK_RUNTIMES:
            runtime = _try_direct_import(_FALLBACK_RUNTIMES[name], config)
            if runtime:
                return runtime
        raise ValueError(f"Runtime '{name}' not found via entry points or fallback.")

    for fallback_name, module_class in _FALLBACK_RUNTIMES.items():
        runtime = _try_direct_import(module_class, config)
        if runtime:
            logger.info("[PyForeign][Loader] Using built-in runtime: %s", fallback_name)
            return runtime

    logger.debug("No runtimes found via entry points or fallback")
    return None
