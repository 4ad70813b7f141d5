"""Connection commands -- run the diagnosis cascade and supervise the link.

``dashlink check`` runs the four-probe cascade once and exits with the
code that matches the diagnosis, which makes it usable from scripts and
health checks. ``dashlink watch`` performs the interactive startup check
(retry or quit) and then keeps re-probing in the background, reporting
every connected/disconnected transition until interrupted.
"""

from __future__ import annotations

import threading
from typing import Optional

import typer

from dashlink.commands import runtime
from dashlink.exceptions import exit_code_for
from dashlink.models import Diagnosis, ProbeResult
from dashlink.output import (
    get_output,
    info,
    print_diagnosis,
    print_table,
    success,
    warning,
)
from dashlink.supervisor import ReconnectSupervisor


def check_command(
    ctx: typer.Context,
    probes: bool = typer.Option(
        False, "--probes", help="Also print the result of every probe that ran."
    ),
) -> None:
    """Diagnose the connection to the backend once.

    Prints the diagnosis to stdout. With ``--probes`` (or ``--verbose``)
    a table of the probes that ran and their timings follows. Exits with
    0 when healthy, otherwise with the code for the diagnosis kind.

    Example::

        dashlink check
        dashlink --json check
        dashlink check --probes
    """
    config = runtime.context_config(ctx)
    diagnostician = runtime.create_diagnostician(config)

    diagnosis = diagnostician.diagnose()
    print_diagnosis(diagnosis)

    if probes or get_output().is_verbose:
        rows = [
            [result.probe, _outcome(result), f"{result.elapsed_ms:.0f}"]
            for result in diagnostician.last_results
        ]
        print_table(["Probe", "Result", "Time (ms)"], rows, title="Probes")

    if not diagnosis.ok:
        raise typer.Exit(code=exit_code_for(diagnosis))


def watch_command(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.1,
        help="Seconds between background checks (default: supervisor.interval_seconds).",
    ),
    duration: float = typer.Option(
        0.0,
        "--duration",
        min=0.0,
        help="Stop watching after this many seconds (0 watches until Ctrl-C).",
    ),
) -> None:
    """Wait for a usable connection, then keep monitoring it.

    On startup the cascade runs until it is healthy. Every failure shows
    the diagnosis and asks whether to retry; declining exits with the
    code for the diagnosis. Once connected, the backend is re-probed in
    the background and transitions are reported on stderr. Expired cache
    entries are swept on every background check.

    Example::

        dashlink watch
        dashlink watch --interval 10
        dashlink --no-input watch      # fail instead of prompting
    """
    options = runtime.context_options(ctx)
    config = runtime.context_config(ctx)
    no_input = bool(options.get("no_input", False))

    def prompt(diagnosis: Diagnosis) -> bool:
        print_diagnosis(diagnosis)
        if no_input:
            return False
        return typer.confirm("Retry the connection?", default=True)

    diagnostician = runtime.create_diagnostician(config)
    with runtime.open_cache(config) as cache:
        supervisor = ReconnectSupervisor(
            diagnostician,
            interval=interval or config.supervisor.interval_seconds,
            cache=cache,
        )
        supervisor.startup_check(prompt)
        success("Connected")

        def report(connected: bool) -> None:
            if connected:
                success("Connection restored")
                return
            diagnosis = supervisor.state.last_diagnosis
            if diagnosis is not None:
                warning(f"Connection lost: {diagnosis.message}. {diagnosis.detail}")
            else:
                warning("Connection lost")

        supervisor.on_connection_change(report)

        info("Watching the connection, press Ctrl-C to stop.")
        with supervisor:
            threading.Event().wait(duration or None)


def _outcome(result: ProbeResult) -> str:
    if result.ok:
        return "ok"
    return result.diagnosis.kind.value if result.diagnosis else "failed"
