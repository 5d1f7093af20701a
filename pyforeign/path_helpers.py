"""Utilities for computing the module search location of the importlib runtime.

``build_search_prefix`` works out which configured directories are placed in
front of the host ``sys.path`` while a session is open: an optional preferred
root first, then the configured search paths. The host list itself is never
rebuilt, so entries such as ``""`` (the current directory) and entries added
during the session keep their place.
"""

from __future__ import annotations

import os
from typing import List, Sequence


def normalize_path(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


def build_search_prefix(extra_paths: Sequence[str], preferred_root: str | None = None) -> List[str]:
    """Return the entries to prepend to ``sys.path``, in order.

    Empty entries and duplicates (compared after normalization) are skipped.
    """
    result: List[str] = []
    seen: set[str] = set()

    candidates = [preferred_root] if preferred_root else []
    candidates.extend(extra_paths)
    for path in candidates:
        if not path:
            continue
        key = normalize_path(path)
        if key in seen:
            continue
        seen.add(key)
        result.append(path)

    return result
