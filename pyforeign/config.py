"""Configuration types and loading for pyforeign.

``RuntimeConfig`` describes the foreign runtime (which implementation to use
and where it looks for modules). ``ModuleOptions`` configures a single
:class:`~pyforeign.LazyModuleProxy`. Runtime configuration can be read from a
YAML file, either passed explicitly or named by ``PYFOREIGN_CONFIG``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypedDict

import yaml
from packaging.requirements import InvalidRequirement, Requirement

if TYPE_CHECKING:
    from ._internal.lazy_module import LazyModuleProxy

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PYFOREIGN_CONFIG"

_RUNTIME_CONFIG_KEYS = frozenset({"runtime", "search_paths", "preferred_root", "probe_cache_seconds"})
_PICKLABLE_OPTION_KEYS = ("requirement", "probe_cache_seconds")


class RuntimeConfig(TypedDict, total=False):
    """Configuration for the foreign runtime."""

    runtime: str
    """Name of the runtime implementation (entry point name or ``"importlib"``)."""

    search_paths: list[str]
    """Directories searched for foreign modules before the default locations."""

    preferred_root: str
    """Optional root placed ahead of every other search path."""

    probe_cache_seconds: float
    """Default negative-probe cache duration for proxies that do not set one."""


class ModuleOptions(TypedDict, total=False):
    """Per-proxy options for a lazily loaded foreign module."""

    requirement: str
    """PEP 508 requirement checked against the module's ``__version__``."""

    before_load: Callable[[], None]
    """Called right before the module is resolved."""

    on_load: Callable[[LazyModuleProxy], None]
    """Called with the proxy after a successful resolution."""

    on_error: Callable[[BaseException], None]
    """Called with the failure when resolution fails. The failure is still raised."""

    probe_cache_seconds: float
    """How long ``is_available()`` remembers a negative result. ``0`` disables caching."""


def validate_module_options(options: ModuleOptions) -> ModuleOptions:
    """Check option values up front so misconfiguration fails at declaration time."""
    unknown = set(options) - (ModuleOptions.__required_keys__ | ModuleOptions.__optional_keys__)
    if unknown:
        raise ValueError(f"Unknown module options: {sorted(unknown)}")

    requirement = options.get("requirement")
    if requirement is not None:
        try:
            Requirement(requirement)
        except InvalidRequirement as exc:
            raise ValueError(f"Invalid requirement '{requirement}': {exc}") from exc

    for hook in ("before_load", "on_load", "on_error"):
        if hook in options and not callable(options[hook]):  # type: ignore[literal-required]
            raise ValueError(f"Option '{hook}' must be callable")

    ttl = options.get("probe_cache_seconds")
    if ttl is not None and ttl < 0:
        raise ValueError("probe_cache_seconds must be >= 0")
    return options


def picklable_options(options: ModuleOptions) -> dict[str, Any]:
    """Return the subset of options that survives pickling (hooks are dropped)."""
    return {key: options[key] for key in _PICKLABLE_OPTION_KEYS if key in options}  # type: ignore[literal-required]


def load_runtime_config(path: str | os.PathLike[str] | None = None) -> RuntimeConfig:
    """Load a :class:`RuntimeConfig` from YAML.

    When ``path`` is omitted the ``PYFOREIGN_CONFIG`` environment variable is
    consulted; with neither set an empty config is returned.

    Raises:
        ValueError: If the file is not a mapping or contains unknown keys.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return RuntimeConfig()
        path = env_path

    config_path = Path(path)
    with config_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return RuntimeConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Runtime config {config_path} must be a mapping, got {type(data).__name__}")

    unknown = set(data) - _RUNTIME_CONFIG_KEYS
    if unknown:
        raise ValueError(f"Unknown keys in runtime config {config_path}: {sorted(unknown)}")

    search_paths = data.get("search_paths", [])
    if not isinstance(search_paths, list) or not all(isinstance(p, str) for p in search_paths):
        raise ValueError("search_paths must be a list of strings")

    # Relative search paths are resolved against the config file location.
    base = config_path.parent
    data["search_paths"] = [str((base / p).resolve()) if not os.path.isabs(p) else p for p in search_paths]
    if "preferred_root" in data and not os.path.isabs(data["preferred_root"]):
        data["preferred_root"] = str((base / data["preferred_root"]).resolve())

    logger.debug("Loaded runtime config from %s: %s", config_path, data)
    return RuntimeConfig(**data)  # type: ignore[typeddict-item]
