"""
Recurring sync schedule (all times UTC).

- League Sync: daily 00:10
- Fixture Update: daily 01:30
- Live Match Update: every 2 minutes
- Execution Cleanup: Mondays 06:00

Every tick goes through `JobRunner`, so each run is tracked, retried and bounded
by the job timeout. A failed run is logged and waits for the next tick.
"""

from __future__ import annotations

from dataclasses import dataclass

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fixture_sync.core.logging import get_logger
from fixture_sync.jobs.sync_jobs import (
    EXECUTION_CLEANUP,
    FIXTURE_UPDATE,
    LEAGUE_SYNC,
    LIVE_MATCH_UPDATE,
    SyncContext,
    build_runner,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScheduledJob:
    job_id: str
    job_name: str
    trigger: BaseTrigger


def default_schedule() -> list[ScheduledJob]:
    return [
        ScheduledJob("league_sync", LEAGUE_SYNC, CronTrigger(hour=0, minute=10, timezone="UTC")),
        ScheduledJob(
            "fixture_update", FIXTURE_UPDATE, CronTrigger(hour=1, minute=30, timezone="UTC")
        ),
        ScheduledJob("live_match_update", LIVE_MATCH_UPDATE, IntervalTrigger(minutes=2)),
        ScheduledJob(
            "execution_cleanup",
            EXECUTION_CLEANUP,
            CronTrigger(day_of_week="mon", hour=6, minute=0, timezone="UTC"),
        ),
    ]


class SyncScheduler:
    """Owns the APScheduler instance and the quota gate's refill timers."""

    def __init__(self, ctx: SyncContext, jobs: list[ScheduledJob] | None = None) -> None:
        self.ctx = ctx
        self.jobs = jobs if jobs is not None else default_schedule()
        self.scheduler: AsyncIOScheduler | None = None
        self.running = False

    async def run_job(self, job_name: str) -> None:
        runner = build_runner(job_name, self.ctx)
        try:
            await runner.run()
        except Exception as exc:
            logger.error("Scheduled job {} failed: {}", job_name, exc)

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.ctx.client.gate.start()
        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        for job in self.jobs:
            self.scheduler.add_job(
                self.run_job,
                trigger=job.trigger,
                args=[job.job_name],
                id=job.job_id,
                name=job.job_name,
                replace_existing=True,
            )
        self.scheduler.start()
        self.running = True

        logger.info("Scheduler started with {} jobs", len(self.scheduler.get_jobs()))
        for scheduled in self.scheduler.get_jobs():
            logger.info("  {} -> next run {}", scheduled.name, scheduled.next_run_time)

    async def stop(self) -> None:
        if not self.running or self.scheduler is None:
            return
        self.scheduler.shutdown(wait=False)
        await self.ctx.client.gate.stop()
        self.running = False
        logger.info("Scheduler stopped (quota: {})", self.ctx.client.gate.snapshot())
