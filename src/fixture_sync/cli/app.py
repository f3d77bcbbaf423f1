from __future__ import annotations

import typer

from fixture_sync.cli.jobs import app as jobs_app
from fixture_sync.cli.sync import app as sync_app
from fixture_sync.core.config import settings
from fixture_sync.core.logging import setup_logging

app = typer.Typer(no_args_is_help=True)
app.add_typer(sync_app, name="sync")
app.add_typer(jobs_app, name="jobs")


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Minimum log level."),
    log_dir: str = typer.Option(settings.log_dir, "--log-dir", help="Directory for log files."),
) -> None:
    """Keep a local store of API-Sports football leagues and fixtures in sync."""
    setup_logging(level=log_level.upper(), log_dir=log_dir)
