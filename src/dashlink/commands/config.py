"""Config commands -- view and modify the dashlink configuration.

Provides the ``dashlink config`` sub-command group. ``show`` prints either
the stored global config or, with ``--effective``, the result of the full
precedence chain (flags, environment, ``./dashlink.json``, global file).
``set`` edits one field by dotted path, ``reset`` restores the defaults.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from dashlink.commands import runtime
from dashlink.exit_codes import EXIT_INVALID_USAGE
from dashlink.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)

_NULL_WORDS = ("", "none", "null")


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    effective: bool = typer.Option(
        False, "--effective", help="Show the merged config after all overrides."
    ),
) -> None:
    """Show the configuration.

    Example::

        dashlink config show
        dashlink --base-url https://staging.example.com config show --effective
    """
    from dashlink.config import get_config_dir, load_global_config

    config = runtime.context_config(ctx) if effective else load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.dashboard_ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set ('none' clears optional keys)."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the field it replaces (bool, int,
    float or str). Optional fields that are currently unset accept any
    string; ``none``/``null`` clears them again. The result is validated
    before it is saved.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        dashlink config set base_url https://dash.example.com
        dashlink config set auth.source env:DASHLINK_TOKEN
        dashlink config set supervisor.interval_seconds 15
    """
    from dashlink.config import load_global_config, save_global_config
    from dashlink.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[part]

    field = parts[-1]
    if field not in target or isinstance(target[field], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        coerced = _coerce(target[field], value)
    except ValueError:
        error(f"Expected {type(target[field]).__name__} for {key}, got: {value}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    target[field] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults. Asks first unless ``--force`` is given."""
    from dashlink.config import save_global_config
    from dashlink.models import GlobalConfig

    if not runtime.context_options(ctx).get("force", False):
        if not typer.confirm("Reset all config to defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


def _coerce(current: Any, value: str) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if value.strip().lower() in _NULL_WORDS:
        return None
    return value
