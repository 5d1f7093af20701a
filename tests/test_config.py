"""Tests for RuntimeConfig loading and ModuleOptions validation."""

from pathlib import Path

import pytest

from pyforeign.config import (
    ModuleOptions,
    RuntimeConfig,
    load_runtime_config,
    picklable_options,
    validate_module_options,
)


class TestLoadRuntimeConfig:
    def test_no_path_and_no_env_gives_empty_config(self):
        assert load_runtime_config() == {}

    def test_absolute_and_relative_search_paths(self, tmp_path: Path):
        config_file = tmp_path / "conf" / "pyforeign.yaml"
        config_file.parent.mkdir()
        config_file.write_text(
            "runtime: importlib\n"
            "search_paths:\n"
            "  - /opt/foreign/lib\n"
            "  - ../modules\n"
            "probe_cache_seconds: 2.5\n",
            encoding="utf-8",
        )

        config = load_runtime_config(config_file)

        assert config["runtime"] == "importlib"
        assert config["search_paths"] == ["/opt/foreign/lib", str((tmp_path / "modules").resolve())]
        assert config["probe_cache_seconds"] == 2.5

    def test_env_var_is_used(self, tmp_path: Path, monkeypatch):
        config_file = tmp_path / "pyforeign.yaml"
        config_file.write_text("preferred_root: root\n", encoding="utf-8")
        monkeypatch.setenv("PYFOREIGN_CONFIG", str(config_file))

        config = load_runtime_config()

        assert config["preferred_root"] == str((tmp_path / "root").resolve())

    def test_empty_file_is_empty_config(self, tmp_path: Path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")

        assert load_runtime_config(config_file) == RuntimeConfig()

    @pytest.mark.parametrize(
        "body, message",
        [
            ("- just\n- a list\n", "must be a mapping"),
            ("runtime: importlib\ncolour: blue\n", "Unknown keys"),
            ("search_paths: /not/a/list\n", "search_paths"),
        ],
    )
    def test_invalid_files(self, tmp_path: Path, body, message):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text(body, encoding="utf-8")

        with pytest.raises(ValueError, match=message):
            load_runtime_config(config_file)


class TestModuleOptions:
    def test_valid_options_pass_through(self):
        options: ModuleOptions = {"requirement": "numpy>=1.20", "probe_cache_seconds": 0}

        assert validate_module_options(options) is options

    def test_picklable_subset(self):
        options: ModuleOptions = {
            "requirement": "numpy",
            "before_load": print,
            "on_error": print,
            "probe_cache_seconds": 1,
        }

        assert picklable_options(options) == {"requirement": "numpy", "probe_cache_seconds": 1}

    def test_non_callable_hook_rejected(self):
        with pytest.raises(ValueError, match="on_error"):
            validate_module_options({"on_error": 3})  # type: ignore[typeddict-item]
