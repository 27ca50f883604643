"""Tests for the recall entry point."""

from __future__ import annotations

from typer.testing import CliRunner

from recall.cli.main import app

runner = CliRunner()


def test_version_flag(cli_env):
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("recall ")


def test_version_command(cli_env):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("recall ")


def test_help_lists_commands(cli_env):
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("init", "import", "index", "search", "status", "forget", "reindex"):
        assert command in result.output
