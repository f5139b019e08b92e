"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- format_response in JSON and plain modes
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from idplogin import output as output_module
from idplogin.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture(autouse=True)
def _reset_global_output():
    reset_output()
    yield
    reset_output()


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("idplogin.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("idplogin.output._is_tty", lambda: True)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_forces_plain_on_tty(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_wins(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_default(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStreams:
    def test_data_goes_to_stdout(self, capsys):
        OutputManager(no_color=True).print_data("eyJ.token")
        captured = capsys.readouterr()
        assert captured.out == "eyJ.token\n"
        assert captured.err == ""

    def test_diagnostics_go_to_stderr(self, capsys):
        mgr = OutputManager(no_color=True)
        mgr.info("waiting")
        mgr.success("signed in")
        mgr.warning("careful")
        mgr.error("broken")
        mgr.suggest("try again")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "waiting" in captured.err
        assert "signed in" in captured.err
        assert "Warning: careful" in captured.err
        assert "Error: broken" in captured.err
        assert "→ try again" in captured.err

    def test_quiet_keeps_warnings_and_errors(self, capsys):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.suggest("hidden")
        mgr.warning("shown")
        mgr.error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert err.count("shown") == 2

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(no_color=True).debug("quiet debug")
        OutputManager(no_color=True, verbose=True).debug("loud debug")
        err = capsys.readouterr().err
        assert "quiet debug" not in err
        assert "[debug] loud debug" in err


class TestFormatResponse:
    def test_json(self, capsys):
        OutputManager(format=OutputFormat.JSON).format_response({"id_token": "X"})
        assert json.loads(capsys.readouterr().out) == {"id_token": "X"}

    def test_plain_dict_is_tab_separated(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).format_response({"a": 1, "b": "two"})
        assert capsys.readouterr().out == "a\t1\nb\ttwo\n"

    def test_plain_scalar(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).format_response("hello")
        assert capsys.readouterr().out == "hello\n"


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        assert isinstance(get_output(), OutputManager)
        assert get_output() is get_output()

    def test_set_and_reset(self):
        mgr = OutputManager(quiet=True)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr

    def test_module_helpers_delegate(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.print_data("data")
        output_module.error("oops")
        captured = capsys.readouterr()
        assert captured.out == "data\n"
        assert "Error: oops" in captured.err
