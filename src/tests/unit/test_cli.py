"""Tests for the command line entry point that need no database."""
from click.testing import CliRunner

from quire.cli.main import cli
from quire.config import get_settings


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("schema", "user", "sync"):
        assert command in result.output


def test_sync_needs_credentials(monkeypatch):
    monkeypatch.setattr(get_settings(), "loader_email", None)
    monkeypatch.setattr(get_settings(), "loader_password", None)

    result = CliRunner().invoke(cli, ["sync", "content"])

    assert result.exit_code == 1
    assert "LOADER_EMAIL" in result.output
