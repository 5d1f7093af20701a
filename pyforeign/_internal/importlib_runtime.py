"""Built-in foreign runtime backed by ``importlib``.

Modules are resolved in the current interpreter. A session controls the module
search location: ``start()`` prepends the configured search paths to
``sys.path`` and ``shutdown()`` removes exactly those entries again, leaving
whatever the host changed in the meantime. Availability probes install the
paths only for the duration of the lookup and never open a session. Modules
already imported stay in ``sys.modules`` after shutdown, but every handle
produced during the session is invalidated by :func:`pyforeign.end_session`.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
import types
import uuid
from typing import Any

from typing_extensions import override

from ..config import RuntimeConfig
from ..path_helpers import build_search_prefix

logger = logging.getLogger(__name__)


class _RuntimeBase:
    """Shared session bookkeeping for runtimes shipped with pyforeign."""

    def __init__(self) -> None:
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def is_started(self) -> bool:
        return self._session_id is not None

    def start(self) -> None:
        if self._session_id is not None:
            return
        self._session_id = uuid.uuid4().hex
        logger.info("[PyForeign][Runtime] %s session %s started", self.identifier, self._session_id)

    def shutdown(self) -> None:
        if self._session_id is None:
            return
        logger.info("[PyForeign][Runtime] %s session %s ended", self.identifier, self._session_id)
        self._session_id = None

    @property
    def identifier(self) -> str:
        raise NotImplementedError


class ImportlibRuntime(_RuntimeBase):
    """Foreign runtime that resolves modules through ``importlib``."""

    def __init__(self, config: RuntimeConfig | None = None) -> None:
        super().__init__()
        self.config: RuntimeConfig = config or RuntimeConfig()
        self._inserted_paths: list[str] = []

    @property
    @override
    def identifier(self) -> str:
        return "importlib"

    @override
    def start(self) -> None:
        if self.is_started():
            return
        self._inserted_paths = self._install_search_paths()
        if self._inserted_paths:
            logger.debug("Module search path for session: %s", self._inserted_paths)
        super().start()

    @override
    def shutdown(self) -> None:
        if not self.is_started():
            return
        self._remove_search_paths(self._inserted_paths)
        self._inserted_paths = []
        super().shutdown()

    def _install_search_paths(self) -> list[str]:
        prefix = build_search_prefix(
            self.config.get("search_paths", []),
            self.config.get("preferred_root"),
        )
        if prefix:
            sys.path[:0] = prefix
            importlib.invalidate_caches()
        return prefix

    @staticmethod
    def _remove_search_paths(paths: list[str]) -> None:
        for path in paths:
            # Removes the first occurrence, which is the entry inserted at the front.
            if path in sys.path:
                sys.path.remove(path)
        if paths:
            importlib.invalidate_caches()

    def find_module(self, module_name: str) -> bool:
        temporary = [] if self.is_started() else self._install_search_paths()
        try:
            return importlib.util.find_spec(module_name) is not None
        except (ModuleNotFoundError, ValueError):
            # find_spec imports parent packages; a missing parent lands here.
            return False
        finally:
            self._remove_search_paths(temporary)

    def import_module(self, module_name: str) -> Any:
        self.start()
        return importlib.import_module(module_name)

    def get_attribute(self, obj: Any, name: str) -> Any:
        return getattr(obj, name)

    def type_tag(self, obj: Any) -> str:
        if isinstance(obj, types.ModuleType):
            return "module"
        cls = type(obj)
        return f"{cls.__module__}.{cls.__qualname__}"

    def to_string(self, obj: Any) -> str:
        return str(obj)
