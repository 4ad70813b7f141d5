"""Where dashlink keeps its settings, and how the effective settings are built.

Files:

* ``<config dir>/config.json`` -- the user's :class:`~dashlink.models.GlobalConfig`.
* ``./dashlink.json`` -- optional per-project overrides (any subset of keys).
* ``<cache dir>`` -- the response cache; safe to delete at any time.
* ``<data dir>/logs`` -- crash logs written by :mod:`dashlink.app`.

On Linux and the BSDs the directories follow the XDG base directory
variables; elsewhere everything lives under ``~/.dashlink``.

:func:`resolve_config` layers defaults, the user file, the project file,
``DASHLINK_*`` environment variables and CLI flags, in that order. The
backend session token is never stored in the config itself: ``auth.source``
points at it (``env:NAME`` or ``file:PATH``) and :func:`resolve_credential`
reads it when a request is made.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from dashlink.exceptions import ConfigError
from dashlink.models import GlobalConfig

_APP_NAME = "dashlink"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "dashlink.json"

ENV_BASE_URL = "DASHLINK_BASE_URL"
ENV_AUTH_SOURCE = "DASHLINK_AUTH_SOURCE"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.dashlink)
_DIR_LAYOUT: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback_sub = _DIR_LAYOUT[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*home_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/dashlink`` (or ``~/.dashlink``), created on demand."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """``$XDG_CACHE_HOME/dashlink`` (or ``~/.dashlink/cache``), created on demand."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    """``$XDG_DATA_HOME/dashlink`` (or ``~/.dashlink/logs``), created on demand."""
    return _app_dir("data")


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers see either the old or the new file.

    The temp file lives next to *path* so that ``os.replace`` stays on one
    filesystem. If anything fails, the temp file is removed and the
    exception propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read the user config file, or return defaults when there is none.

    Raises:
        ConfigError: The file is not JSON or does not validate.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    payload = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    _atomic_write(_global_config_path(), payload)


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./dashlink.json`` if present.

    The file is a partial config, typically just ``base_url`` pointing at a
    staging backend, and is merged over the user config key by key.

    Returns:
        The parsed object, or ``None`` if there is no project file.

    Raises:
        ConfigError: The file is not JSON or not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Build the effective configuration.

    Later layers win: defaults, ``config.json``, ``./dashlink.json``,
    ``DASHLINK_BASE_URL`` / ``DASHLINK_AUTH_SOURCE``, then the CLI flags.

    Raises:
        ConfigError: A layer is malformed or the merged result is invalid.
    """
    data = load_global_config().model_dump(mode="json")
    data = _deep_merge(data, load_project_config() or {})

    env = os.environ
    overrides: dict[str, Any] = {}
    if env.get(ENV_BASE_URL):
        overrides["base_url"] = env[ENV_BASE_URL]
    if env.get(ENV_AUTH_SOURCE):
        overrides["auth"] = {"source": env[ENV_AUTH_SOURCE]}
    if cli_base_url is not None:
        overrides["base_url"] = cli_base_url
    if cli_format is not None:
        overrides["output"] = {"format": cli_format}
    data = _deep_merge(data, overrides)

    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def require_base_url(config: GlobalConfig) -> str:
    if not config.base_url:
        raise ConfigError(
            "No backend configured. Run 'dashlink config set base_url https://...' "
            f"or set {ENV_BASE_URL}."
        )
    return config.base_url


def _credential_from_env(name: str, source: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise ConfigError(f"Environment variable '{name}' is not set (source: {source})")
    return value


def _credential_from_file(location: str, source: str) -> str:
    path = Path(location).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file not found: {path} (source: {source})")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


_CREDENTIAL_READERS = {"env": _credential_from_env, "file": _credential_from_file}


def resolve_credential(source: str) -> str:
    """Read the session token named by *source*.

    ``env:NAME`` reads an environment variable; ``file:PATH`` reads a file
    and strips surrounding whitespace.

    Raises:
        ConfigError: Unknown scheme, unset variable, or unreadable file.
    """
    scheme, sep, target = source.partition(":")
    reader = _CREDENTIAL_READERS.get(scheme) if sep else None
    if reader is None:
        raise ConfigError(f"Unknown credential source format: {source}")
    return reader(target, source)


def auth_headers(config: GlobalConfig) -> dict[str, str]:
    """The ``Authorization`` header for *config*, or ``{}`` when auth is off."""
    if not config.auth.source:
        return {}
    token = resolve_credential(config.auth.source)
    return {"Authorization": f"{config.auth.scheme} {token}"}
