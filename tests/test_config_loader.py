"""Tests for difync.config_loader -- YAML discovery, sections and merge."""

import textwrap

import pytest
import yaml

from difync.config_loader import (
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
    read_config_file,
)
from difync.config_schema import build_config


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with CWD and HOME inside tmp_path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _project_config(root, text, name="config.yml"):
    path = root / ".difync" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def _global_config(root, text):
    path = root / "home" / ".config" / "difync" / "config.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestInterpolateEnvVars:
    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("DIFY_HOST", "dify.local")
        assert interpolate_env_vars("https://${DIFY_HOST}") == "https://dify.local"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${EMPTY_VAR:-dsl}") == "dsl"

    def test_unclosed_left_alone(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"


class TestReadConfigFile:
    def test_known_sections(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "dify:\n  url: https://dify.example.com\nsync:\n  mode: bidirectional\n"
        )
        assert read_config_file(path) == {
            "dify": {"url": "https://dify.example.com"},
            "sync": {"mode": "bidirectional"},
        }

    def test_unknown_section_ignored(self, tmp_path, caplog):
        path = tmp_path / "config.yml"
        path.write_text("trac:\n  url: x\nlogging:\n  level: DEBUG\n")
        assert read_config_file(path) == {"logging": {"level": "DEBUG"}}
        assert "unknown section 'trac'" in caplog.text

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")
        assert read_config_file(path) == {}

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("- a\n- b\n")
        assert read_config_file(path) == {}

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("sync: flows\n")
        with pytest.raises(ValueError, match="'sync'"):
            read_config_file(path)

    def test_include_tag_not_supported(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("dify: !include secrets.yml\n")
        with pytest.raises(yaml.YAMLError):
            read_config_file(path)


class TestDiscoverConfigFiles:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_env_var_first(self, isolated, monkeypatch):
        custom = isolated / "custom.yml"
        custom.write_text("sync: {}\n")
        monkeypatch.setenv("DIFYNC_CONFIG", str(custom))
        project = _project_config(isolated, "sync: {}\n")

        result = discover_config_files()
        assert result == [custom.resolve(), project.resolve()]

    def test_project_before_global(self, isolated):
        project = _project_config(isolated, "sync: {}\n")
        global_cfg = _global_config(isolated, "sync: {}\n")

        result = discover_config_files()
        assert result.index(project.resolve()) < result.index(
            global_cfg.resolve()
        )

    def test_yaml_extension(self, isolated):
        alt = _project_config(isolated, "sync: {}\n", name="config.yaml")
        assert discover_config_files() == [alt.resolve()]

    def test_missing_env_path_ignored(self, isolated, monkeypatch):
        monkeypatch.setenv("DIFYNC_CONFIG", str(isolated / "nope.yml"))
        assert discover_config_files() == []


class TestLoadHierarchicalConfig:
    def test_zero_config(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_section_replaces_global(self, isolated):
        _global_config(
            isolated,
            """\
            dify:
              url: https://global.example.com
              email: global@example.com
            logging:
              level: DEBUG
            """,
        )
        _project_config(
            isolated,
            """\
            dify:
              url: https://project.example.com
            """,
        )

        result = load_hierarchical_config()
        assert result["dify"] == {"url": "https://project.example.com"}
        assert result["logging"] == {"level": "DEBUG"}

    def test_password_from_environment(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_DIFY_PASSWORD", "s3cret")
        _project_config(
            isolated,
            """\
            dify:
              password: "${MY_DIFY_PASSWORD}"
              timeout: 10
            """,
        )
        assert load_hierarchical_config()["dify"] == {
            "password": "s3cret",
            "timeout": 10,
        }

    def test_result_feeds_schema(self, isolated):
        _project_config(
            isolated,
            """\
            sync:
              dsl_directory: ${FLOWS_DIR:-flows}
              mode: bidirectional
            """,
        )
        config = build_config(load_hierarchical_config())
        assert config.sync.dsl_directory == "flows"
        assert config.sync.mode == "bidirectional"

    def test_invalid_yaml_raises(self, isolated):
        _project_config(isolated, "dify: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()
