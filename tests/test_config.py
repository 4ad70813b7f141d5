"""Tests for dashlink.config -- XDG paths, atomic writes, precedence, credentials."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from dashlink.config import (
    _atomic_write,
    auth_headers,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    require_base_url,
    resolve_config,
    resolve_credential,
    save_global_config,
)
from dashlink.exceptions import ConfigError
from dashlink.models import AuthConfig, GlobalConfig


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestPaths:
    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dashlink.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        assert get_config_dir() == tmp_path / "cfg" / "dashlink"
        assert get_config_dir().is_dir()

    def test_cache_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dashlink.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_cache_dir() == tmp_path / ".cache" / "dashlink"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dashlink.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".dashlink"
        assert get_cache_dir() == tmp_path / ".dashlink" / "cache"
        assert get_data_dir() == tmp_path / ".dashlink" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        target.write_text("old", encoding="utf-8")
        _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [target]

    def test_failure_keeps_original_and_cleans_up(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        target.write_text("original", encoding="utf-8")
        with patch("dashlink.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert target.read_text(encoding="utf-8") == "original"
        assert [f for f in tmp_path.iterdir() if ".tmp" in f.name] == []


# ---------------------------------------------------------------------------
# Global and project config files
# ---------------------------------------------------------------------------


class TestConfigFiles:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.base_url is None
        assert config.supervisor.interval_seconds == 30
        assert config.cache.dashboard_ttl_seconds == 300
        assert config.cache.plugin_ttl_seconds == 1800
        assert config.cache.default_ttl_seconds == 3600

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(base_url="https://dash.example.com/", auth=AuthConfig(source="env:T"))
        save_global_config(config)
        loaded = load_global_config()
        assert loaded.base_url == "https://dash.example.com"
        assert loaded.auth.source == "env:T"

    def test_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "dashlink" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_project_config_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_project_config_must_be_object(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "dashlink.json", ["nope"])
        with pytest.raises(ConfigError, match="JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture(autouse=True)
    def _setup(self, isolated_config: Path) -> None:
        self.root = isolated_config
        save_global_config(
            GlobalConfig(base_url="https://global.example.com", probes={"timeout": 2})
        )

    def test_global_only(self) -> None:
        config = resolve_config()
        assert config.base_url == "https://global.example.com"
        assert config.probes.timeout == 2

    def test_project_overrides_global_deeply(self) -> None:
        _write_json(
            self.root / "dashlink.json",
            {"base_url": "https://project.example.com", "probes": {"health_path": "/ping"}},
        )
        config = resolve_config()
        assert config.base_url == "https://project.example.com"
        assert config.probes.health_path == "/ping"
        assert config.probes.timeout == 2

    def test_env_overrides_project(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(self.root / "dashlink.json", {"base_url": "https://project.example.com"})
        monkeypatch.setenv("DASHLINK_BASE_URL", "https://env.example.com")
        monkeypatch.setenv("DASHLINK_AUTH_SOURCE", "env:TOKEN")
        config = resolve_config()
        assert config.base_url == "https://env.example.com"
        assert config.auth.source == "env:TOKEN"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DASHLINK_BASE_URL", "https://env.example.com")
        config = resolve_config(cli_base_url="https://cli.example.com", cli_format="json")
        assert config.base_url == "https://cli.example.com"
        assert config.output.format == "json"

    def test_invalid_base_url_raises_config_error(self) -> None:
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config(cli_base_url="dash.example.com")

    def test_require_base_url(self) -> None:
        with pytest.raises(ConfigError, match="No backend configured"):
            require_base_url(GlobalConfig())
        assert require_base_url(resolve_config()) == "https://global.example.com"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DASH_TOKEN", "secret")
        assert resolve_credential("env:DASH_TOKEN") == "secret"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DASH_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="DASH_TOKEN"):
            resolve_credential("env:DASH_TOKEN")

    def test_file_source_is_stripped(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("  file-secret\n", encoding="utf-8")
        assert resolve_credential(f"file:{token_file}") == "file-secret"

    def test_file_source_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'absent'}")

    def test_unknown_source_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("keyring:dashlink")

    def test_auth_headers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DASH_TOKEN", "abc")
        assert auth_headers(GlobalConfig()) == {}
        config = GlobalConfig(auth=AuthConfig(source="env:DASH_TOKEN", scheme="Token"))
        assert auth_headers(config) == {"Authorization": "Token abc"}
