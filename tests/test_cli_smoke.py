from __future__ import annotations

from typer.testing import CliRunner

from fixture_sync.cli.app import app


def test_cli_help_smoke() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    # Basic sanity checks that the command groups are registered.
    assert "sync" in result.stdout
    assert "jobs" in result.stdout


def test_sync_group_lists_commands(tmp_path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--log-dir", str(tmp_path), "sync", "--help"])
    assert result.exit_code == 0
    for command in ("leagues", "fixtures", "live", "fetch-fixtures"):
        assert command in result.stdout


def test_jobs_run_rejects_unknown_job(tmp_path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--log-dir", str(tmp_path), "jobs", "run", "Odds Sync"])
    assert result.exit_code != 0
