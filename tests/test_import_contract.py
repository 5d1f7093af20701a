"""Declaring delay-loaded modules must not require the foreign module to exist."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run_python_snippet(snippet: str) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env.pop("PYFOREIGN_CONFIG", None)
    env.pop("PYFOREIGN_RUNTIME_OVERRIDE", None)
    existing_pythonpath = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = (
        str(REPO_ROOT) if not existing_pythonpath else f"{REPO_ROOT}{os.pathsep}{existing_pythonpath}"
    )
    return subprocess.run(
        [sys.executable, "-c", snippet],
        cwd=str(REPO_ROOT),
        capture_output=True,
        text=True,
        env=env,
        timeout=60,
        check=False,
    )


def test_package_with_delayed_missing_dependency_imports() -> None:
    result = _run_python_snippet(
        """
import pyforeign
from pyforeign._internal.runtime_registry import RuntimeRegistry

missing = pyforeign.import_module("pyforeign_not_installed_anywhere", delay_load=True)
assert RuntimeRegistry.get() is None
print("IMPORT_OK", missing.is_available())
"""
    )
    assert result.returncode == 0, result.stderr
    assert "IMPORT_OK False" in result.stdout


def test_eager_missing_dependency_fails_at_import() -> None:
    result = _run_python_snippet(
        """
import pyforeign

try:
    pyforeign.import_module("pyforeign_not_installed_anywhere")
except ModuleNotFoundError as exc:
    print("EAGER_FAILED", type(exc).__name__)
    raise SystemExit(0)

raise SystemExit("Expected ModuleNotFoundError")
"""
    )
    assert result.returncode == 0, result.stderr
    assert "EAGER_FAILED ForeignModuleNotFoundError" in result.stdout


def test_stdlib_module_through_default_runtime() -> None:
    result = _run_python_snippet(
        """
import pyforeign

json = pyforeign.import_module("json", delay_load=True)
print("DUMPS", json.dumps([1, 2]))
pyforeign.end_session()
print("NULL", pyforeign.is_null_handle(json))
"""
    )
    assert result.returncode == 0, result.stderr
    assert "DUMPS [1, 2]" in result.stdout
    assert "NULL True" in result.stdout
