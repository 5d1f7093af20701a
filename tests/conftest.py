"""
Pytest configuration and fixtures.

Every test runs inside an isolated registry scope so runtimes, handles and
stringifier overrides never leak between tests.
"""

import logging
import sys

import pytest

import pyforeign

from .fixtures.reference_runtime import CountingRuntime


def pytest_configure(config):
    """Configure pytest with custom settings."""
    log_level = logging.DEBUG if config.getoption("--debug-pyforeign") else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("pyforeign").setLevel(log_level)

    custom_log_file = config.getoption("--pyforeign-log-file")
    if custom_log_file:
        file_handler = logging.FileHandler(custom_log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )
        )
        logging.getLogger().addHandler(file_handler)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--debug-pyforeign",
        action="store_true",
        default=False,
        help="Enable debug logging for pyforeign (shows resolution and invalidation flow)",
    )
    parser.addoption(
        "--pyforeign-log-file",
        action="store",
        default=None,
        help="Log pyforeign debug output to specified file",
    )


@pytest.fixture(autouse=True)
def isolated_registries(monkeypatch):
    monkeypatch.delenv("PYFOREIGN_CONFIG", raising=False)
    monkeypatch.delenv("PYFOREIGN_RUNTIME_OVERRIDE", raising=False)
    with pyforeign.registry_scope():
        yield


@pytest.fixture
def runtime():
    """A registered CountingRuntime providing module ``foo`` with ``bar == 42``."""
    counting = CountingRuntime({"foo": {"bar": 42, "_private": "hidden", "__version__": "1.4.2"}})
    pyforeign.use_runtime(counting)
    return counting
