"""Tests for the output and logging setup.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline and quiet rules
- print_bytes and print_table in all three modes
- configure_logging handler installation
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from jsloader import output as output_module
from jsloader.output import (
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
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("jsloader.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("jsloader.output._is_tty", lambda: True)


@pytest.fixture()
def color_env(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("TERM", "xterm-256color")


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, color_env):
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_resolves_to_plain_when_no_color(self, tty, color_env):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, color_env):
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr
# ------------------------------------------------------------------ #


class TestStreams:
    @pytest.mark.parametrize("method", ["info", "success", "warning", "error"])
    def test_diagnostics_go_to_stderr(self, capsys, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("diagnostic")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "diagnostic" in captured.err

    def test_print_data_goes_to_stdout(self, capsys, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("hello")
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == ""

    def test_print_bytes_writes_raw_bytes(self, capfdbinary, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_bytes(b"a\x00\xffb")
        assert capfdbinary.readouterr().out == b"a\x00\xffb"

    @pytest.mark.parametrize(
        "method,shown",
        [("info", False), ("success", False), ("warning", True), ("error", True)],
    )
    def test_quiet_rules(self, capsys, non_tty, method, shown):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        getattr(mgr, method)("message")
        assert ("message" in capsys.readouterr().err) is shown


# ------------------------------------------------------------------ #
# Tables
# ------------------------------------------------------------------ #


class TestPrintTable:
    HEADERS = ["Check", "Result"]
    ROWS = [["Connect", "OK"], ["Download", "ERROR"]]

    def test_json(self, capsys, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(self.HEADERS, self.ROWS)
        records = json.loads(capsys.readouterr().out)
        assert records == [
            {"Check": "Connect", "Result": "OK"},
            {"Check": "Download", "Result": "ERROR"},
        ]

    def test_plain(self, capsys, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_table(self.HEADERS, self.ROWS)
        assert capsys.readouterr().out.splitlines() == [
            "Check\tResult",
            "Connect\tOK",
            "Download\tERROR",
        ]

    def test_rich(self, capsys, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).print_table(
            self.HEADERS, self.ROWS, title="Self-test"
        )
        out = capsys.readouterr().out
        assert "Self-test" in out
        assert "Download" in out


# ------------------------------------------------------------------ #
# Logging
# ------------------------------------------------------------------ #


class TestConfigureLogging:
    def _rich_handlers(self) -> list[logging.Handler]:
        return [h for h in logging.getLogger("jsloader").handlers if isinstance(h, RichHandler)]

    @pytest.mark.parametrize(
        "verbose,quiet,level",
        [(False, False, logging.INFO), (True, False, logging.DEBUG), (False, True, logging.WARNING)],
    )
    def test_levels(self, verbose, quiet, level):
        configure_logging(verbose=verbose, quiet=quiet, no_color=True)
        assert logging.getLogger("jsloader").level == level

    def test_reconfigure_replaces_handler(self):
        configure_logging(no_color=True)
        configure_logging(verbose=True, no_color=True)
        assert len(self._rich_handlers()) == 1

    def test_records_go_to_stderr(self, capsys):
        configure_logging(no_color=True)
        logging.getLogger("jsloader.loader").warning("cache unreadable")
        captured = capsys.readouterr()
        assert "cache unreadable" in captured.err
        assert captured.out == ""


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_and_get(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr

    def test_convenience_functions_use_global(self, capsys, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.print_table(["Field"], [["data"]])
        output_module.warning("careful")
        captured = capsys.readouterr()
        assert captured.out == "Field\ndata\n"
        assert "Warning: careful" in captured.err
