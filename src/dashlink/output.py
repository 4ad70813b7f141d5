"""Terminal output and log routing for the dashlink CLI.

Data (fetched JSON, diagnosis records, cache stats, probe tables) goes to
stdout so it can be piped; status lines, warnings, errors, troubleshooting
hints and library log records go to stderr. Rich styling is only used when
stdout is a terminal and neither ``NO_COLOR``, ``TERM=dumb`` nor
``--no-color`` asks otherwise (see https://clig.dev/#output).

The CLI callback builds one :class:`OutputManager` and installs it with
:func:`set_output`; command code then uses the module-level helpers
(:func:`info`, :func:`error`, :func:`format_response`, ...).
:func:`configure_logging` attaches a stderr handler to the ``dashlink``
logger, which the cache, the diagnostician and the supervisor log through.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Iterator, NamedTuple, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from dashlink.models import Diagnosis


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` picks ``RICH`` on a colour TTY."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Channel(NamedTuple):
    prefix: str
    prefix_style: Optional[str]
    body_style: Optional[str]
    quiet_hides: bool


_CHANNELS = {
    "info": _Channel("", None, None, True),
    "success": _Channel("", None, "green", True),
    "suggest": _Channel("→ ", "dim", "dim", True),
    "warning": _Channel("Warning: ", "yellow", None, False),
    "error": _Channel("Error: ", "bold red", None, False),
    "debug": _Channel("[debug] ", "dim", "dim", False),
}


class OutputManager:
    """Routes data to stdout and status messages to stderr.

    Args:
        format: Rendering for stdout data. ``AUTO`` is resolved once, here.
        no_color: Never emit ANSI styling.
        quiet: Hide info, success and suggestion lines. Warnings and
            errors are always shown.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout ------------------------------------------------------------

    def print_data(self, text: str) -> None:
        """Write one raw line to stdout."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render a decoded backend payload (or any JSON-like value) to stdout.

        JSON mode pretty-prints it, plain mode writes ``key<TAB>value``
        lines for objects and one line per element for arrays, and rich
        mode syntax-highlights the JSON.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), soft_wrap=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
        else:
            table = Table(*headers, title=title, header_style="bold cyan")
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    def print_diagnosis(self, diagnosis: Diagnosis) -> None:
        """Print a diagnosis: its kind and message, the detail, then numbered hints."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(diagnosis.model_dump(mode="json")))
            return

        headline = f"{diagnosis.kind.value}: {diagnosis.message}"
        body = [diagnosis.detail] if diagnosis.detail else []
        body += [f"  {n}. {hint}" for n, hint in enumerate(diagnosis.hints, start=1)]

        if self._format == OutputFormat.PLAIN:
            for line in [headline, *body]:
                self.print_data(line)
            return
        self._stdout.print(Text(headline, style="green" if diagnosis.ok else "bold red"))
        for line in body:
            self._stdout.print(Text(line))

    # -- stderr ------------------------------------------------------------

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def suggest(self, message: str) -> None:
        """A next step for the user, e.g. one troubleshooting hint."""
        self._emit("suggest", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit("debug", message)

    def _emit(self, channel_name: str, message: str) -> None:
        channel = _CHANNELS[channel_name]
        if channel.quiet_hides and self._quiet:
            return
        if self._no_color:
            print(f"{channel.prefix}{message}", file=sys.stderr, flush=True)
            return
        line = Text.assemble((channel.prefix, channel.prefix_style or ""), message)
        if channel.body_style:
            line.stylize(channel.body_style)
        self._stderr.print(line, soft_wrap=True)


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> Iterator[str]:
    if isinstance(data, dict):
        for key, value in data.items():
            yield f"{key}\t{value}"
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                yield "\t".join(str(v) for v in item.values())
            else:
                yield str(item)
    else:
        yield str(data)


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def configure_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Send ``dashlink.*`` log records to stderr.

    Library modules only create loggers; nothing is shown until the CLI
    calls this. Calling it again swaps the handler rather than stacking a
    second one.

    Args:
        verbose: Log at DEBUG instead of WARNING.
        no_color: Use a plain :class:`logging.StreamHandler` instead of Rich.
    """
    logger = logging.getLogger("dashlink")
    for existing in list(logger.handlers):
        if getattr(existing, "_dashlink_handler", False):
            logger.removeHandler(existing)

    handler: logging.Handler
    if no_color or _should_disable_color():
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler._dashlink_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


# Process-wide manager, installed by the CLI callback.
_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager so the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def print_diagnosis(diagnosis: Diagnosis) -> None:
    get_output().print_diagnosis(diagnosis)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
