"""Tests for exitguard.cli — command smoke tests via CliRunner.

``configure_logging`` is patched out so structlog keeps its default,
uncached configuration while the runner swaps stdout.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from exitguard.authority import SYSTEM_AUTHORITY, get_current_authority
from exitguard.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("exitguard.cli.configure_logging") as mocked:
        yield mocked


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "exitguard" in result.output


class TestCheck:
    def test_default_scenario_passes(self):
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0, result.output
        assert "wrapped_failure" in result.output
        assert "PASS" in result.output
        assert get_current_authority() is SYSTEM_AUTHORITY

    def test_json_output(self):
        result = runner.invoke(app, ["check", "--json", "--master", "local[3]"])
        assert result.exit_code == 0, result.output
        assert '"kind": "wrapped_failure"' in result.output
        assert '"passed": true' in result.output
        assert '"cause_type": "FatalLinkageError"' in result.output

    def test_no_fault_completes(self):
        result = runner.invoke(app, ["check", "--fault", "none"])
        assert result.exit_code == 0, result.output
        assert "completed" in result.output

    def test_exit_on_fatal_fails(self):
        result = runner.invoke(app, ["check", "--exit-on-fatal"])
        assert result.exit_code == 1
        assert get_current_authority() is SYSTEM_AUTHORITY

    def test_exit_fault_fails(self):
        result = runner.invoke(app, ["check", "--fault", "exit", "--target", "Two"])
        assert result.exit_code == 1

    def test_unsupported_master_is_a_config_error(self):
        result = runner.invoke(app, ["check", "--master", "yarn"])
        assert result.exit_code == 2
        assert "PASS" not in result.output
        assert get_current_authority() is SYSTEM_AUTHORITY

    def test_unknown_log_level_is_a_config_error(self, no_logging_setup):
        result = runner.invoke(app, ["check", "--log-level", "verbose"])
        assert result.exit_code == 2
        assert not isinstance(result.exception, AttributeError)
        no_logging_setup.assert_not_called()

    def test_log_level_passed_to_logging(self, no_logging_setup):
        runner.invoke(app, ["check", "--log-level", "debug"])
        no_logging_setup.assert_called_once()
        assert no_logging_setup.call_args.kwargs["level"] == "DEBUG"
