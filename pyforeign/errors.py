"""Error types raised by pyforeign."""

from __future__ import annotations


class ForeignError(Exception):
    """Base class for all pyforeign errors."""


class ForeignModuleNotFoundError(ForeignError, ModuleNotFoundError):
    """Raised when the foreign runtime cannot locate a module.

    Subclasses the builtin ``ModuleNotFoundError`` so dependent code can keep
    its ordinary ``except ModuleNotFoundError`` handling.
    """

    def __init__(self, module_name: str, message: str | None = None) -> None:
        super().__init__(message or f"No foreign module named '{module_name}'", name=module_name)
        self.module_name = module_name


class ResolutionError(ForeignError):
    """Raised when the handle registry fails to produce a handle.

    The underlying runtime failure is available as ``__cause__``.
    """

    def __init__(self, module_name: str, reason: str) -> None:
        super().__init__(f"Failed to resolve foreign module '{module_name}': {reason}")
        self.module_name = module_name
        self.reason = reason


class IncompatibleModuleError(ForeignError, ImportError):
    """Raised when a resolved module does not satisfy the configured requirement."""

    def __init__(self, module_name: str, requirement: str, found_version: str | None) -> None:
        found = found_version if found_version is not None else "unknown"
        super().__init__(
            f"Foreign module '{module_name}' version {found} does not satisfy '{requirement}'",
            name=module_name,
        )
        self.module_name = module_name
        self.requirement = requirement
        self.found_version = found_version


class StaleHandleError(ForeignError):
    """Raised when a handle invalidated by a session end is used again."""

    def __init__(self, module_name: str, handle_id: str | None = None) -> None:
        detail = f" (handle {handle_id})" if handle_id else ""
        super().__init__(
            f"Handle for foreign module '{module_name}'{detail} is stale: "
            "the foreign runtime session it belonged to has ended"
        )
        self.module_name = module_name
        self.handle_id = handle_id
