from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import fixture_sync.db.models  # noqa: F401
from fixture_sync.core.config import Settings, settings
from fixture_sync.db.base import Base
from fixture_sync.db.engine import create_session_factory
from fixture_sync.db.enums import JobStatusEnum
from fixture_sync.db.models.jobs.job_execution import JobExecution
from fixture_sync.ingestion.providers.api_sports.quota import QuotaBucket, QuotaGate
from fixture_sync.jobs import sync_jobs
from fixture_sync.jobs.scheduler import SyncScheduler, default_schedule
from fixture_sync.jobs.sync_jobs import (
    EXECUTION_CLEANUP,
    JOB_NAMES,
    LEAGUE_SYNC,
    SyncContext,
    build_runner,
)
from fixture_sync.jobs.tracker import DbExecutionTracker

NOW = datetime(2025, 9, 10, 12, 0, tzinfo=UTC)


def _make_session_factory() -> sessionmaker[Session]:
    engine = sa.create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return create_session_factory(engine)


def _clock(*values: float):
    ticks = iter(values)
    return lambda: next(ticks)


def _context(session_factory: sessionmaker[Session]) -> SyncContext:
    gate = QuotaGate(
        minute=QuotaBucket(name="minute", capacity=10, refill_interval_s=60),
        day=QuotaBucket(name="day", capacity=100, refill_interval_s=86400),
    )
    return SyncContext(
        session_factory=session_factory,
        client=SimpleNamespace(gate=gate),  # type: ignore[arg-type]
        cfg=Settings(_env_file=None, job_retries=0, execution_retention_days=30),
    )


def test_tracker_records_success_with_duration_and_details() -> None:
    factory = _make_session_factory()
    tracker = DbExecutionTracker(factory, now=lambda: NOW, monotonic=_clock(100.0, 101.5))

    handle = tracker.start("League Sync")
    started = tracker.history("League Sync")
    assert [row.status for row in started] == [JobStatusEnum.STARTED]

    handle.success({"created": 2, "errors": 0})

    row = tracker.history("League Sync")[0]
    assert row.status is JobStatusEnum.SUCCESS
    assert row.duration_ms == 1500
    assert row.details_json == {"created": 2, "errors": 0}
    assert row.error is None
    assert tracker.last_success("League Sync") is not None


def test_tracker_records_failure_message() -> None:
    factory = _make_session_factory()
    tracker = DbExecutionTracker(factory, now=lambda: NOW, monotonic=_clock(0.0, 2.0))

    tracker.start("Fixture Update").fail(RuntimeError("provider down"))

    row = tracker.history()[0]
    assert row.status is JobStatusEnum.FAILED
    assert row.error == "RuntimeError: provider down"
    assert row.duration_ms == 2000
    assert tracker.last_success("Fixture Update") is None


def test_history_is_newest_first_and_filtered() -> None:
    factory = _make_session_factory()
    with factory() as session:
        for hours, name in [(3, "League Sync"), (2, "Fixture Update"), (1, "League Sync")]:
            session.add(
                JobExecution(
                    job_name=name,
                    started_at=NOW - timedelta(hours=hours),
                    status=JobStatusEnum.SUCCESS,
                )
            )
        session.commit()

    tracker = DbExecutionTracker(factory, now=lambda: NOW)
    rows = tracker.history("League Sync")
    assert [r.job_name for r in rows] == ["League Sync", "League Sync"]
    assert rows[0].started_at > rows[1].started_at
    assert len(tracker.history(limit=2)) == 2


def test_cleanup_deletes_old_executions() -> None:
    factory = _make_session_factory()
    with factory() as session:
        session.add_all(
            [
                JobExecution(
                    job_name="League Sync",
                    started_at=NOW - timedelta(days=45),
                    status=JobStatusEnum.SUCCESS,
                ),
                JobExecution(
                    job_name="League Sync",
                    started_at=NOW - timedelta(days=3),
                    status=JobStatusEnum.FAILED,
                ),
            ]
        )
        session.commit()

    tracker = DbExecutionTracker(factory, now=lambda: NOW)
    assert tracker.cleanup(older_than_days=30) == 1
    assert len(tracker.history()) == 1


async def test_cleanup_job_runs_through_tracked_runner() -> None:
    factory = _make_session_factory()
    ctx = _context(factory)

    result = await build_runner(EXECUTION_CLEANUP, ctx).run()

    assert result == {"deleted": 0}
    rows = ctx.tracker.history(EXECUTION_CLEANUP)
    assert [r.status for r in rows] == [JobStatusEnum.SUCCESS]
    assert rows[0].details_json == {"deleted": 0}


def test_build_runner_rejects_unknown_job() -> None:
    ctx = _context(_make_session_factory())
    with pytest.raises(KeyError, match="Odds Sync"):
        build_runner("Odds Sync", ctx)


def test_context_defaults_to_process_settings() -> None:
    factory = _make_session_factory()
    ctx = SyncContext(session_factory=factory, client=SimpleNamespace())  # type: ignore[arg-type]

    assert ctx.cfg is settings
    runner = build_runner(LEAGUE_SYNC, ctx, tracked=False)
    assert runner.retries == settings.job_retries
    assert runner.tracker is None


def test_default_schedule_covers_every_job() -> None:
    schedule = default_schedule()
    assert sorted(job.job_name for job in schedule) == sorted(JOB_NAMES)
    assert len({job.job_id for job in schedule}) == len(schedule)


async def test_scheduler_registers_jobs_and_arms_gate() -> None:
    ctx = _context(_make_session_factory())
    scheduler = SyncScheduler(ctx)

    scheduler.start()
    try:
        assert ctx.client.gate.started
        assert scheduler.scheduler is not None
        ids = {job.id for job in scheduler.scheduler.get_jobs()}
        assert ids == {"league_sync", "fixture_update", "live_match_update", "execution_cleanup"}
    finally:
        await scheduler.stop()

    assert not ctx.client.gate.started
    assert not scheduler.running


async def test_scheduled_failure_is_tracked_and_swallowed(monkeypatch, log_messages) -> None:
    async def failing_body(ctx: SyncContext) -> None:
        raise RuntimeError("provider unavailable")

    monkeypatch.setitem(sync_jobs.JOB_BODIES, LEAGUE_SYNC, failing_body)
    ctx = _context(_make_session_factory())

    await SyncScheduler(ctx).run_job(LEAGUE_SYNC)

    rows = ctx.tracker.history(LEAGUE_SYNC)
    assert [r.status for r in rows] == [JobStatusEnum.FAILED]
    assert rows[0].error == "RuntimeError: provider unavailable"
    assert any("Scheduled job League Sync failed" in m for m in log_messages)
