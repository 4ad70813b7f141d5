"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- Diagnosis rendering in JSON and plain modes
- Logging setup for the dashlink logger hierarchy
"""

from __future__ import annotations

import json
import logging

import pytest

from dashlink import output as output_module
from dashlink.diagnostics import diagnosis_for
from dashlink.models import Diagnosis, DiagnosisKind
from dashlink.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("dashlink.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("dashlink.output._is_tty", lambda: True)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert OutputManager(format=OutputFormat.AUTO, no_color=True).format == OutputFormat.PLAIN


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStreams:
    def test_data_goes_to_stdout(self, capsys):
        OutputManager(format=OutputFormat.JSON).format_response({"a": 1})
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"a": 1}
        assert captured.err == ""

    def test_plain_dict_is_tab_separated(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).format_response({"size": 3})
        assert capsys.readouterr().out == "size\t3\n"

    def test_quiet_suppresses_info_but_not_errors(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hello")
        mgr.success("done")
        mgr.error("broken")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "Error: broken\n"

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("shown")
        assert capsys.readouterr().err == "[debug] shown\n"


class TestPrintDiagnosis:
    def test_json_diagnosis(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.print_diagnosis(diagnosis_for(DiagnosisKind.AUTH_EXPIRED))
        data = json.loads(capsys.readouterr().out)
        assert data["kind"] == "auth_expired"
        assert data["message"] == "Authentication error"
        assert len(data["hints"]) == 3

    def test_plain_diagnosis_lists_hints(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN)
        mgr.print_diagnosis(
            Diagnosis(kind=DiagnosisKind.UNKNOWN, message="Oops", detail="Bad.", hints=("a", "b"))
        )
        assert capsys.readouterr().out.splitlines() == [
            "unknown: Oops",
            "Bad.",
            "  1. a",
            "  2. b",
        ]


class TestConfigureLogging:
    def test_levels_and_single_handler(self):
        logger = logging.getLogger("dashlink")
        configure_logging(verbose=False, no_color=True)
        assert logger.level == logging.WARNING
        configure_logging(verbose=True, no_color=True)
        assert logger.level == logging.DEBUG
        marked = [h for h in logger.handlers if getattr(h, "_dashlink_handler", False)]
        assert len(marked) == 1
        logger.removeHandler(marked[0])
        logger.setLevel(logging.NOTSET)


class TestGlobalInstance:
    def test_get_output_is_lazy_and_resettable(self):
        reset_output()
        first = get_output()
        assert get_output() is first
        custom = OutputManager(format=OutputFormat.JSON)
        set_output(custom)
        assert output_module.get_output() is custom
        reset_output()
        assert get_output() is not custom
