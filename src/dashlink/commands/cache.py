"""Cache commands -- inspect and maintain the on-disk response cache."""

from __future__ import annotations

import typer

from dashlink.commands import runtime
from dashlink.exit_codes import EXIT_GENERIC_FAILURE
from dashlink.output import error, format_response, info, success, warning


cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the cache location, size, TTL table and fault count."""
    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache:
        format_response(cache.stats())


@cache_app.command("get")
def cache_get(
    ctx: typer.Context,
    key: str = typer.Argument(help="Cache key, e.g. 'dashboard-data' or 'plugin-42'."),
) -> None:
    """Print a cached value. Exits with 1 on a miss.

    An expired entry counts as a miss and is evicted by the lookup.
    """
    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache:
        missing = object()
        value = cache.get(key, missing)
    if value is missing:
        error(f"No fresh cache entry for {key}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    format_response(value)


@cache_app.command("sweep")
def cache_sweep(ctx: typer.Context) -> None:
    """Evict every expired entry."""
    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache:
        removed = cache.sweep_expired()
    success(f"Removed {removed} expired entr{'y' if removed == 1 else 'ies'}.")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every cached entry. Asks first unless ``--force`` is given.

    Example::

        dashlink cache clear
        dashlink --force cache clear
    """
    force = runtime.context_options(ctx).get("force", False)
    if not force:
        if not typer.confirm("Remove all cached data?"):
            info("Cancelled.")
            raise typer.Exit()

    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache:
        if cache.clear():
            success("Cache cleared.")
        elif not config.cache.enabled:
            warning("Caching is disabled; nothing to clear.")
        else:
            error("The cache could not be cleared; see the log for details.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)
