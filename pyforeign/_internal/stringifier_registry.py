"""Type-tag keyed string conversion overrides."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class StringifierRegistry:
    """Singleton table of string conversions keyed by foreign type tag.

    Dependent code registers overrides for the tags it cares about; every
    other tag falls back to the runtime's default ``to_string``.
    """

    _instance: StringifierRegistry | None = None

    def __init__(self) -> None:
        self._stringifiers: dict[str, Callable[[Any], str]] = {}

    @classmethod
    def get_instance(cls) -> StringifierRegistry:
        """Return the singleton instance, creating it if necessary."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, type_tag: str, stringifier: Callable[[Any], str]) -> None:
        """Register the string conversion for *type_tag*."""
        if type_tag in self._stringifiers:
            logger.debug("Overwriting existing stringifier for %s", type_tag)
        self._stringifiers[type_tag] = stringifier
        logger.debug("Registered stringifier for type tag: %s", type_tag)

    def unregister(self, type_tag: str) -> None:
        self._stringifiers.pop(type_tag, None)

    def get(self, type_tag: str) -> Callable[[Any], str] | None:
        """Return the override for *type_tag*, or None if not registered."""
        return self._stringifiers.get(type_tag)

    def has_handler(self, type_tag: str) -> bool:
        """Return True if *type_tag* has a registered override."""
        return type_tag in self._stringifiers

    def clear(self) -> None:
        """Remove all registered overrides (useful for tests)."""
        self._stringifiers.clear()
