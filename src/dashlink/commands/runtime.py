"""Shared wiring between the Typer context and the library objects.

Commands never build a :class:`~dashlink.diagnostics.ConnectivityDiagnostician`,
:class:`~dashlink.client.ResilientFetcher` or
:class:`~dashlink.cache.ResponseCache` directly; they go through the
factories below so that tests can swap in fakes with ``monkeypatch``.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from dashlink.cache import ResponseCache
from dashlink.client import ResilientFetcher
from dashlink.config import get_cache_dir, resolve_config
from dashlink.diagnostics import ConnectivityDiagnostician
from dashlink.models import GlobalConfig


def context_options(ctx: typer.Context) -> dict[str, Any]:
    """Return the options stored by the root callback (empty when run standalone)."""
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def context_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config, honouring the root ``--base-url`` flag."""
    return resolve_config(cli_base_url=context_options(ctx).get("base_url"))


def create_diagnostician(config: GlobalConfig) -> ConnectivityDiagnostician:
    return ConnectivityDiagnostician(config)


def create_fetcher(
    config: GlobalConfig,
    diagnostician: Optional[ConnectivityDiagnostician] = None,
) -> ResilientFetcher:
    return ResilientFetcher(config, diagnostician=diagnostician or create_diagnostician(config))


def open_cache(config: GlobalConfig) -> ResponseCache:
    return ResponseCache(get_cache_dir(), config.cache)
