"""Public runtime and registry protocols for pyforeign.

These interfaces define the contract between pyforeign and the foreign
runtime it proxies. They enable structural typing so runtimes can be
implemented without inheriting from concrete base classes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StringifierRegistryProtocol(Protocol):
    """Interface for the type-tag keyed string conversion table."""

    def register(self, type_tag: str, stringifier: Callable[[Any], str]) -> None:
        """Register a string conversion for foreign objects carrying *type_tag*."""

    def get(self, type_tag: str) -> Callable[[Any], str] | None:
        """Return the override for *type_tag*, if any."""

    def has_handler(self, type_tag: str) -> bool:
        """Return True if an override exists for *type_tag*."""


@runtime_checkable
class ForeignRuntime(Protocol):
    """A foreign runtime whose modules are proxied into this process."""

    @property
    def identifier(self) -> str:
        """Unique runtime identifier (e.g., "importlib")."""

    @property
    def session_id(self) -> str | None:
        """Identifier of the current session, or None when no session is open."""

    def is_started(self) -> bool:
        """Return True while a session is open."""

    def start(self) -> None:
        """Open a session. Starting an already started runtime is a no-op."""

    def shutdown(self) -> None:
        """End the current session. Objects handed out earlier must not be used again."""

    def find_module(self, module_name: str) -> bool:
        """Return True if *module_name* can be resolved, without loading it."""

    def import_module(self, module_name: str) -> Any:
        """Resolve and return the foreign module.

        Raises:
            ModuleNotFoundError: If the module cannot be located.
        """

    def get_attribute(self, obj: Any, name: str) -> Any:
        """Look up *name* on a foreign object.

        Raises:
            AttributeError: If the object has no such attribute.
        """

    def type_tag(self, obj: Any) -> str:
        """Return the tag used to select a string conversion for *obj*."""

    def to_string(self, obj: Any) -> str:
        """Default string conversion for a foreign object."""
