"""Tests for config/sources.py - layered YAML loading."""

import pathlib as _pathlib

import pydantic_settings as _pydantic_settings
import pytest as _pytest

import skald.config.sources as sources


class _Minimal(_pydantic_settings.BaseSettings):
    """Stand-in settings class for exercising the source directly."""


def _write(path: _pathlib.Path, content: str) -> _pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestDeepMerge:
    def test_nested_mappings_merge(self) -> None:
        base = {"agent": {"name": "a", "max_iters": 5}, "version": 1}
        override = {"agent": {"max_iters": 9}}
        assert sources.deep_merge(base, override) == {
            "agent": {"name": "a", "max_iters": 9},
            "version": 1,
        }

    def test_lists_and_scalars_replace(self) -> None:
        merged = sources.deep_merge({"x": [1, 2], "y": {"z": 1}}, {"x": [3], "y": 5})
        assert merged == {"x": [3], "y": 5}

    def test_inputs_not_mutated(self) -> None:
        base = {"a": {"b": 1}}
        override = {"a": {"c": 2}}
        merged = sources.deep_merge(base, override)
        merged["a"]["b"] = 99
        assert base == {"a": {"b": 1}}
        assert override == {"a": {"c": 2}}


class TestLoadYamlFile:
    def test_mapping(self, tmp_path: _pathlib.Path) -> None:
        path = _write(tmp_path / "c.yaml", "agent:\n  name: x\n")
        assert sources.load_yaml_file(path) == {"agent": {"name": "x"}}

    def test_empty_is_none(self, tmp_path: _pathlib.Path) -> None:
        assert sources.load_yaml_file(_write(tmp_path / "c.yaml", "")) is None

    def test_invalid_yaml(self, tmp_path: _pathlib.Path) -> None:
        path = _write(tmp_path / "c.yaml", "agent: [oops")
        with _pytest.raises(sources.ConfigFileError, match="invalid YAML") as exc_info:
            sources.load_yaml_file(path)
        assert exc_info.value.path == path

    def test_non_mapping(self, tmp_path: _pathlib.Path) -> None:
        path = _write(tmp_path / "c.yaml", "- a\n- b\n")
        with _pytest.raises(sources.ConfigFileError, match="got list"):
            sources.load_yaml_file(path)

    def test_missing_file(self, tmp_path: _pathlib.Path) -> None:
        with _pytest.raises(sources.ConfigFileError, match="cannot read"):
            sources.load_yaml_file(tmp_path / "missing.yaml")


class TestPaths:
    def test_user_config_dir_env(
        self, monkeypatch: _pytest.MonkeyPatch, tmp_path: _pathlib.Path
    ) -> None:
        monkeypatch.setenv(sources.ENV_CONFIG_DIR, str(tmp_path))
        assert sources.get_user_config_dir() == tmp_path
        assert sources.get_user_config_path() == tmp_path / "config.yaml"

    def test_user_config_dir_default(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(sources.ENV_CONFIG_DIR, raising=False)
        assert sources.get_user_config_dir() == _pathlib.Path.home() / ".config" / "skald"

    def test_project_config_path(self, tmp_path: _pathlib.Path) -> None:
        assert sources.get_project_config_path(tmp_path) == tmp_path / ".skald" / "config.yaml"


class TestLayeredYamlSettingsSource:
    def test_project_overrides_user(self, tmp_path: _pathlib.Path) -> None:
        user = _write(
            tmp_path / "user" / "config.yaml",
            "agent:\n  name: user-agent\n  max_iters: 3\nmodel:\n  temperature: 0.5\n",
        )
        project = tmp_path / "project"
        _write(project / ".skald" / "config.yaml", "agent:\n  max_iters: 7\n")

        source = sources.LayeredYamlSettingsSource(
            _Minimal, project, user_config_path=user
        )

        assert source() == {
            "agent": {"name": "user-agent", "max_iters": 7},
            "model": {"temperature": 0.5},
        }
        assert [name for name, _ in source.get_loaded_layers()] == ["project", "user"]

    def test_missing_files_skipped(self, tmp_path: _pathlib.Path) -> None:
        source = sources.LayeredYamlSettingsSource(
            _Minimal, tmp_path, user_config_path=tmp_path / "nope.yaml"
        )
        assert source() == {}
        assert source.get_loaded_layers() == []
        layers = source.get_layer_paths()
        assert [(name, exists) for name, _, exists in layers] == [
            ("project", False),
            ("user", False),
        ]

    def test_no_project_root(self, tmp_path: _pathlib.Path) -> None:
        source = sources.LayeredYamlSettingsSource(
            _Minimal, user_config_path=tmp_path / "nope.yaml"
        )
        assert [name for name, _, _ in source.get_layer_paths()] == ["user"]

    def test_malformed_layer_raises(self, tmp_path: _pathlib.Path) -> None:
        user = _write(tmp_path / "config.yaml", "just a string")
        with _pytest.raises(sources.ConfigFileError):
            sources.LayeredYamlSettingsSource(_Minimal, user_config_path=user)

    def test_call_returns_copy(self, tmp_path: _pathlib.Path) -> None:
        user = _write(tmp_path / "config.yaml", "agent:\n  name: a\n")
        source = sources.LayeredYamlSettingsSource(_Minimal, user_config_path=user)
        source()["agent"]["name"] = "mutated"
        assert source()["agent"]["name"] == "a"
