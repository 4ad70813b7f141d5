"""Shared test fixtures for dashlink.

Provides isolated config environments, fake socket primitives for the
diagnosis cascade, output state management and a CLI runner. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from dashlink.models import AuthConfig, GlobalConfig, ProbeConfig, RequestConfig
from dashlink.output import reset_output


BASE_URL = "https://dash.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use. Log
    handlers installed by the CLI callback hold the same stale streams and
    are removed as well.
    """
    yield
    reset_output()
    logger = logging.getLogger("dashlink")
    for handler in list(logger.handlers):
        if getattr(handler, "_dashlink_handler", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------


def make_config(
    base_url: Optional[str] = BASE_URL,
    auth_source: Optional[str] = None,
    max_retries: int = 0,
    **overrides: Any,
) -> GlobalConfig:
    """Build a GlobalConfig with short probe timeouts suitable for tests."""
    return GlobalConfig(
        base_url=base_url,
        auth=AuthConfig(source=auth_source),
        request=RequestConfig(timeout=5, max_retries=max_retries),
        probes=ProbeConfig(timeout=1),
        **overrides,
    )


def backend(routes: dict[str, Any], calls: Optional[list[str]] = None) -> httpx.MockTransport:
    """MockTransport answering by path.

    Each route maps to a status code, an ``httpx.Response``, or an
    exception instance to raise. Unknown paths answer 404. Every requested
    path is appended to *calls* when given.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        answer = routes.get(request.url.path, 404)
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(answer, json={})

    return httpx.MockTransport(handler)


class FakeSocket:
    """Stands in for the resolver and connector primitives of the cascade.

    Records every call; raises *error* (an ``OSError``) when set.
    """

    def __init__(self, error: Optional[BaseException] = None) -> None:
        self.error = error
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)
        if self.error is not None:
            raise self.error


@pytest.fixture
def resolver() -> FakeSocket:
    return FakeSocket()


@pytest.fixture
def connector() -> FakeSocket:
    return FakeSocket()


@pytest.fixture
def fake_clock() -> Callable[[], float]:
    """A controllable clock: call it for the time, set ``.now`` to move it."""

    class _Clock:
        now = 1_000_000.0

        def __call__(self) -> float:
            return self.now

    return _Clock()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all DASHLINK_* environment variables and changes the
    working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("dashlink.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["DASHLINK_BASE_URL", "DASHLINK_AUTH_SOURCE"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
