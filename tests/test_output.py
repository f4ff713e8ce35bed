"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet mode suppression rules
- print_result in all three formats
- Markup escaping of provider-supplied error text
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from tokget import output as output_module
from tokget.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True)
def _reset_global_output():
    """Ensure the global output instance is reset between tests."""
    reset_output()
    yield
    reset_output()


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("tokget.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("tokget.output._is_tty", lambda: True)


TOKENS = {"access_token": "access_token_value", "id_token": "id_token_value"}


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    """Test that AUTO format resolves correctly based on environment."""

    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.RICH

    def test_auto_resolves_to_plain_when_tty_but_no_color(self, tty, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        assert mgr.format == OutputFormat.JSON


# ------------------------------------------------------------------ #
# Color disabling
# ------------------------------------------------------------------ #


class TestColorDisabling:
    def test_no_color_env_disables_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False

    def test_no_color_flag_overrides(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(no_color=True)
        assert mgr.no_color is True


# ------------------------------------------------------------------ #
# stdout / stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    """Data goes to stdout; everything else goes to stderr."""

    def test_print_result_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_result(TOKENS)
        captured = capfd.readouterr()
        assert json.loads(captured.out) == TOKENS
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        getattr(OutputManager(no_color=True), method)("hello")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "hello" in captured.err

    def test_error_prefix_in_no_color(self, capfd, non_tty):
        OutputManager(no_color=True).error("invalid password")
        assert capfd.readouterr().err == "Error: invalid password\n"


class TestQuietMode:
    def test_quiet_suppresses_info_and_success(self, capfd, non_tty):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.info("info")
        mgr.success("done")
        assert capfd.readouterr().err == ""

    def test_quiet_does_not_suppress_errors(self, capfd, non_tty):
        OutputManager(no_color=True, quiet=True).error("broken")
        assert capfd.readouterr().err == "Error: broken\n"

    def test_quiet_does_not_suppress_result(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, quiet=True).print_result(TOKENS)
        assert "access_token_value" in capfd.readouterr().out


# ------------------------------------------------------------------ #
# Result formats
# ------------------------------------------------------------------ #


class TestPrintResult:
    def test_plain_is_tab_separated(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_result(TOKENS)
        assert capfd.readouterr().out.splitlines() == [
            "access_token\taccess_token_value",
            "id_token\tid_token_value",
        ]

    def test_plain_nested_values_are_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_result({"login": {"scopes": "openid"}})
        assert capfd.readouterr().out == 'login\t{"scopes": "openid"}\n'

    def test_json_is_indented(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_result(TOKENS)
        out = capfd.readouterr().out
        assert out.startswith("{\n  ")

    def test_rich_prints_json_document(self, capfd, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        OutputManager(format=OutputFormat.RICH).print_result(TOKENS)
        out = capfd.readouterr().out
        assert "access_token_value" in out
        assert "id_token_value" in out


class TestMarkupEscaping:
    def test_error_text_is_not_markup(self, capfd, non_tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        OutputManager().error("unexpected page [bold]Sign in[/bold]")
        assert "[bold]Sign in[/bold]" in capfd.readouterr().err


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self, non_tty):
        assert isinstance(get_output(), OutputManager)

    def test_set_output_is_used_by_helpers(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.JSON, no_color=True))
        output_module.print_result(TOKENS)
        output_module.error("oops")
        captured = capfd.readouterr()
        assert json.loads(captured.out) == TOKENS
        assert "Error: oops" in captured.err

    def test_reset_output_forgets_instance(self, non_tty):
        mgr = OutputManager()
        set_output(mgr)
        reset_output()
        assert get_output() is not mgr
