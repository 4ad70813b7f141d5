"""Data commands -- fetch backend payloads from the command line.

``dashlink fetch`` sends one uncached request to any endpoint.
``dashlink dashboard`` and ``dashlink plugin`` go through the response
cache exactly like the application does, so they are also a quick way to
see whether cached data is being served.

Every failure is raised as :class:`~dashlink.exceptions.FetchError`; the
entry point prints its diagnosis and exits with the matching code.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from dashlink.commands import runtime
from dashlink.data import DataSource
from dashlink.exceptions import InvalidUsageError
from dashlink.output import format_response


def fetch_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Endpoint path, e.g. '/api/v1/dashboard'."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Query parameter as KEY=VALUE (repeatable)."
    ),
) -> None:
    """Fetch an endpoint and print the JSON body.

    Example::

        dashlink fetch /api/v1/dashboard
        dashlink fetch /api/v1/plugins -p page=2 --json
    """
    if not endpoint.startswith("/"):
        endpoint = "/" + endpoint
    params = _parse_params(param or [])

    config = runtime.context_config(ctx)
    with runtime.create_fetcher(config) as fetcher:
        data = fetcher.fetch_json(endpoint, params=params)
    format_response(data)


def dashboard_command(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the cache."),
) -> None:
    """Print the dashboard data, served from cache while fresh.

    Example::

        dashlink dashboard
        dashlink dashboard --refresh
    """
    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache, runtime.create_fetcher(config) as fetcher:
        data = DataSource(fetcher, cache).dashboard(refresh=refresh)
    format_response(data)


def plugin_command(
    ctx: typer.Context,
    plugin_id: str = typer.Argument(help="Plugin identifier."),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the cache."),
) -> None:
    """Print the data of one plugin, served from cache while fresh.

    Example::

        dashlink plugin weather
    """
    config = runtime.context_config(ctx)
    with runtime.open_cache(config) as cache, runtime.create_fetcher(config) as fetcher:
        data = DataSource(fetcher, cache).plugin(plugin_id, refresh=refresh)
    format_response(data)


def _parse_params(pairs: list[str]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected KEY=VALUE, got: {pair}")
        params[key] = value
    return params
