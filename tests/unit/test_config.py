"""Tests for configuration loading and validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from toolgate.config.loader import config_layers, load_config, merge_tables
from toolgate.config.schema import (
    CacheConfig,
    ExecutionConfig,
    SessionConfig,
    ToolgateConfig,
)
from toolgate.core.errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

# ─── Schema Defaults ──────────────────────────────────────────


class TestSchemaDefaults:
    def test_toolgate_config_all_defaults(self):
        cfg = ToolgateConfig()
        assert cfg.execution.default_timeout == 60.0
        assert cfg.execution.max_output_bytes is None
        assert cfg.execution.env == {}
        assert cfg.state.url == "sqlite+aiosqlite:///~/.local/share/toolgate/state.db"
        assert cfg.cache.enabled is True
        assert cfg.cache.default_ttl == 300
        assert cfg.session.profile == "generator"
        assert cfg.session.extra_groups == []
        assert cfg.logging.level == "INFO"
        assert cfg.logging.structured is False

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError, match="default_timeout must be positive"):
            ExecutionConfig(default_timeout=0)

    def test_cache_and_session_sections(self):
        assert CacheConfig(default_ttl=10).default_ttl == 10
        assert SessionConfig(extra_groups=["k8s"]).extra_groups == ["k8s"]


# ─── Merge ────────────────────────────────────────────────────


class TestDeepMerge:
    def test_nested_override(self):
        base = {"execution": {"default_timeout": 60, "env": {"A": "1"}}}
        over = {"execution": {"env": {"B": "2"}}}
        assert merge_tables(base, over) == {
            "execution": {"default_timeout": 60, "env": {"A": "1", "B": "2"}}
        }

    def test_scalar_replaces_dict(self):
        assert merge_tables({"a": {"b": 1}}, {"a": 2}) == {"a": 2}

    def test_base_not_mutated(self):
        base = {"a": {"b": 1}}
        merge_tables(base, {"a": {"c": 2}})
        assert base == {"a": {"b": 1}}


# ─── Loading ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_without_files(self):
        cfg = load_config()
        assert cfg.session.profile == "generator"

    def test_explicit_path(self, tmp_path: Path):
        path = tmp_path / "custom.toml"
        path.write_text('[session]\nprofile = "review"\n[execution]\ndefault_timeout = 5\n')
        cfg = load_config(path=path)
        assert cfg.session.profile == "review"
        assert cfg.execution.default_timeout == 5.0

    def test_missing_explicit_path(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(path=tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[session\nprofile = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path=path)

    def test_validation_failure(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[execution]\ndefault_timeout = -1\n")
        with pytest.raises(ConfigError, match="validation failed"):
            load_config(path=path)

    def test_project_file_discovered(self, tmp_path: Path):
        # The autouse fixture chdirs into tmp_path.
        (tmp_path / "toolgate.toml").write_text('[cache]\ndefault_ttl = 42\n')
        assert load_config().cache.default_ttl == 42

    def test_user_file_then_project_file(self, tmp_path: Path):
        user_dir = tmp_path / "xdg" / "toolgate"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text(
            '[cache]\ndefault_ttl = 1\n[session]\nprofile = "docs"\n'
        )
        (tmp_path / "toolgate.toml").write_text("[cache]\ndefault_ttl = 2\n")
        cfg = load_config()
        assert cfg.cache.default_ttl == 2
        assert cfg.session.profile == "docs"

    def test_env_config_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "env.toml"
        path.write_text('[logging]\nlevel = "DEBUG"\n')
        monkeypatch.setenv("TOOLGATE_CONFIG", str(path))
        assert load_config().logging.level == "DEBUG"

    def test_env_config_path_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_CONFIG", str(tmp_path / "gone.toml"))
        with pytest.raises(ConfigError, match="non-existent"):
            load_config()

    def test_env_profile_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_PROFILE", "dev-deploy")
        assert load_config().session.profile == "dev-deploy"

    def test_overrides_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_PROFILE", "dev-deploy")
        cfg = load_config(overrides={"session": {"profile": "full"}})
        assert cfg.session.profile == "full"

    def test_validation_error_names_layers(self, tmp_path: Path):
        (tmp_path / "toolgate.toml").write_text("[cache]\ndefault_ttl = 5\n")
        path = tmp_path / "bad.toml"
        path.write_text("[execution]\ndefault_timeout = 0\n")
        with pytest.raises(ConfigError, match=r"validation failed \(project=.*explicit="):
            load_config(path=path)


# ─── Layers ───────────────────────────────────────────────────


class TestConfigLayers:
    def test_none_when_nothing_configured(self):
        assert list(config_layers()) == []

    def test_order_lowest_priority_first(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "toolgate.toml").write_text("[cache]\ndefault_ttl = 2\n")
        env_file = tmp_path / "env.toml"
        env_file.write_text("[cache]\ndefault_ttl = 3\n")
        explicit = tmp_path / "explicit.toml"
        explicit.write_text("[cache]\ndefault_ttl = 4\n")
        monkeypatch.setenv("TOOLGATE_CONFIG", str(env_file))
        monkeypatch.setenv("TOOLGATE_PROFILE", "docs")

        layers = list(config_layers(explicit, {"cache": {"enabled": False}}))

        assert [layer.source for layer in layers] == [
            "project",
            "env-file",
            "explicit",
            "env",
            "overrides",
        ]
        assert layers[2].path == explicit
        assert layers[3].data == {"session": {"profile": "docs"}}
        assert layers[3].path is None

    def test_explicit_path_beats_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        env_file = tmp_path / "env.toml"
        env_file.write_text('[session]\nprofile = "docs"\n')
        explicit = tmp_path / "explicit.toml"
        explicit.write_text('[session]\nprofile = "review"\n')
        monkeypatch.setenv("TOOLGATE_CONFIG", str(env_file))
        assert load_config(path=explicit).session.profile == "review"

    def test_env_profile_beats_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        explicit = tmp_path / "explicit.toml"
        explicit.write_text('[session]\nprofile = "review"\n')
        monkeypatch.setenv("TOOLGATE_PROFILE", "full")
        assert load_config(path=explicit).session.profile == "full"

    def test_non_utf8_file_is_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "latin1.toml"
        path.write_bytes(b'[session]\nprofile = "\xe9"\n')
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path=path)
