"""The ``dashlink`` command line.

Commands:

* ``check`` / ``watch`` -- run the connectivity diagnosis once, or keep
  supervising the connection (:mod:`dashlink.commands.connection`).
* ``fetch`` / ``dashboard`` / ``plugin`` -- authenticated reads, the last
  two through the response cache (:mod:`dashlink.commands.data`).
* ``cache ...`` / ``config ...`` -- maintenance groups.

:func:`main` is the console-script entry point. Library errors are turned
into exit codes here: a :class:`~dashlink.exceptions.DashlinkError` prints
its message (plus troubleshooting hints when it carries a diagnosis) and
exits with its ``exit_code``; anything else is written to a crash log.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from dashlink import __version__
from dashlink.exit_codes import EXIT_GENERIC_FAILURE

_EXIT_CANCELLED = 130

app = typer.Typer(
    name="dashlink",
    help="Diagnose and supervise the connection to a dashboard backend.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

from dashlink.commands.cache import cache_app  # noqa: E402
from dashlink.commands.config import config_app  # noqa: E402
from dashlink.commands.connection import check_command, watch_command  # noqa: E402
from dashlink.commands.data import (  # noqa: E402
    dashboard_command,
    fetch_command,
    plugin_command,
)

app.command("check")(check_command)
app.command("watch")(watch_command)
app.command("fetch")(fetch_command)
app.command("dashboard")(dashboard_command)
app.command("plugin")(plugin_command)
app.add_typer(cache_app, name="cache", help="Inspect and maintain the response cache.")
app.add_typer(config_app, name="config", help="View and change saved settings.")


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"dashlink {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Print the version."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-u", help="Backend base URL for this run."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write data as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="No ANSI colours."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only data, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug messages and logs."),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask before destructive actions."),
    no_input: bool = typer.Option(
        False, "--no-input", help="Never prompt; answer 'quit' to reconnect prompts."
    ),
) -> None:
    """Set up output and logging, and share the global flags via ``ctx.obj``.

    ``ctx.obj`` carries ``base_url``, ``force``, ``no_input`` and
    ``verbose`` for the sub-commands (see :mod:`dashlink.commands.runtime`).
    """
    from dashlink.output import OutputFormat, OutputManager, configure_logging, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging(verbose=verbose, no_color=no_color)

    ctx.obj = {
        "base_url": base_url,
        "force": force,
        "no_input": no_input,
        "verbose": verbose,
    }


def _cancel() -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(_EXIT_CANCELLED)


def _setup_signal_handlers() -> None:
    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        _cancel()

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: Exception) -> str:
    """Dump the active traceback to ``<data dir>/logs/crash-<time>.log``."""
    from dashlink.config import get_data_dir

    log_dir = get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(
        f"dashlink {__version__}\n{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}",
        encoding="utf-8",
    )
    return str(log_path)


def report_error(exc: Exception) -> int:
    """Tell the user about *exc* and return the exit code to use.

    Errors carrying a diagnosis (:class:`~dashlink.exceptions.FetchError`,
    :class:`~dashlink.exceptions.ConnectionAbandoned`) print the diagnosis
    headline and detail, then each hint as a suggestion.
    """
    from dashlink.exceptions import DashlinkError
    from dashlink.output import error, suggest

    if not isinstance(exc, DashlinkError):
        error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
        return EXIT_GENERIC_FAILURE

    diagnosis = getattr(exc, "diagnosis", None)
    if diagnosis is None:
        error(str(exc))
    else:
        error(f"{diagnosis.message}: {diagnosis.detail}")
        for hint in diagnosis.hints:
            suggest(hint)
    return exc.exit_code


def main() -> None:
    """Console-script entry point; always ends in :class:`SystemExit`."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        _cancel()
    except Exception as exc:
        sys.exit(report_error(exc))
