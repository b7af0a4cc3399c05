"""Tests for stowctl CLI commands."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from stowctl.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


# =============================================================================
# Basic CLI Tests
# =============================================================================


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_cli_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "stowctl" in result.output
        assert "upload" in result.output
        assert "config" in result.output
        assert "auth" in result.output

    def test_cli_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "stowctl" in result.output
        assert "0.1.0" in result.output

    def test_config_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["config", "--help"])
        assert result.exit_code == 0
        assert "init" in result.output
        assert "show" in result.output
        assert "use-context" in result.output

    def test_auth_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["auth", "--help"])
        assert result.exit_code == 0
        assert "login" in result.output
        assert "logout" in result.output
        assert "status" in result.output

    def test_upload_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["upload", "--help"])
        assert result.exit_code == 0
        assert "--chunk-size" in result.output
        assert "--meta" in result.output
        assert "--dry-run" in result.output
        assert "--profile" in result.output

    def test_unknown_command(self, runner: CliRunner):
        result = runner.invoke(cli, ["download"])
        assert result.exit_code != 0
