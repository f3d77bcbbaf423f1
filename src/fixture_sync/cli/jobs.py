from __future__ import annotations

import asyncio

import typer

from fixture_sync.cli.common import api_client, make_session_factory
from fixture_sync.core.config import settings
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.jobs.runner import result_details
from fixture_sync.jobs.scheduler import SyncScheduler
from fixture_sync.jobs.sync_jobs import JOB_NAMES, SyncContext, build_runner
from fixture_sync.jobs.tracker import DbExecutionTracker

app = typer.Typer(help="Scheduled jobs and their execution history.")


@app.command("history")
def history_cmd(
    job_name: str | None = typer.Option(
        None, "--job-name", help=f"Only this job ({', '.join(JOB_NAMES)})."
    ),
    limit: int = typer.Option(10, "--limit", help="Most recent executions to show."),
) -> None:
    """Show recent job executions, newest first."""

    tracker = DbExecutionTracker(make_session_factory())
    rows = tracker.history(job_name, limit=limit)
    if not rows:
        typer.echo("No executions recorded.")
        return
    for row in rows:
        duration = f"{row.duration_ms / 1000:.1f}s" if row.duration_ms is not None else "-"
        line = f"{row.started_at.isoformat()}  {row.job_name:<20} {row.status.value:<8} {duration}"
        if row.error:
            line += f"  {row.error}"
        typer.echo(line)


@app.command("cleanup")
def cleanup_cmd(
    older_than_days: int = typer.Option(
        settings.execution_retention_days,
        "--older-than-days",
        help="Delete executions that started before this many days ago.",
    ),
) -> None:
    """Delete old job execution records."""

    deleted = DbExecutionTracker(make_session_factory()).cleanup(older_than_days)
    typer.echo(f"Deleted {deleted} job executions older than {older_than_days} days.")


@app.command("run")
def run_cmd(
    job_name: str = typer.Argument(..., help=f"One of: {', '.join(JOB_NAMES)}."),
) -> None:
    """Run one job now, with tracking, retries and the job timeout."""

    if job_name not in JOB_NAMES:
        raise typer.BadParameter(f"expected one of {', '.join(JOB_NAMES)}", param_hint="JOB_NAME")

    async def run():
        async with api_client() as client:
            ctx = SyncContext(session_factory=make_session_factory(), client=client)
            return await build_runner(job_name, ctx).run()

    result = asyncio.run(run())
    for key, value in result_details(result).items():
        typer.echo(f"{key}={value}")


@app.command("schedule")
def schedule_cmd() -> None:
    """Run the recurring sync schedule in the foreground until interrupted."""

    async def run() -> None:
        ctx = SyncContext(
            session_factory=make_session_factory(),
            client=ApiSportsClient.from_settings(settings),
        )
        scheduler = SyncScheduler(ctx)
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()
            await ctx.client.aclose()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("Scheduler stopped.")
