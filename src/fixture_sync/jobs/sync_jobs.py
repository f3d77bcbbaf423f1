from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from fixture_sync.core.config import Settings, settings
from fixture_sync.db.engine import session_scope
from fixture_sync.ingestion.predictions import PredictionGenerator
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.ingestion.providers.api_sports.ingest.current_fixtures import (
    CurrentFixtureResolver,
)
from fixture_sync.ingestion.providers.api_sports.ingest.fixtures import (
    FixtureSyncResult,
    sync_fixtures_for_leagues,
)
from fixture_sync.ingestion.providers.api_sports.ingest.leagues import (
    LeagueSyncResult,
    sync_leagues,
)
from fixture_sync.ingestion.providers.api_sports.ingest.live import (
    LiveRefreshResult,
    refresh_live_matches,
)
from fixture_sync.jobs.runner import JobRunner
from fixture_sync.jobs.tracker import DbExecutionTracker

LEAGUE_SYNC = "League Sync"
FIXTURE_UPDATE = "Fixture Update"
LIVE_MATCH_UPDATE = "Live Match Update"
EXECUTION_CLEANUP = "Execution Cleanup"

JOB_NAMES = (LEAGUE_SYNC, FIXTURE_UPDATE, LIVE_MATCH_UPDATE, EXECUTION_CLEANUP)


@dataclass
class SyncContext:
    """Long-lived collaborators shared by every scheduled job in a process."""

    session_factory: sessionmaker[Session]
    client: ApiSportsClient
    predictions: PredictionGenerator | None = None
    cfg: Settings = field(default_factory=lambda: settings)

    @property
    def tracker(self) -> DbExecutionTracker:
        return DbExecutionTracker(self.session_factory)


async def run_league_sync(ctx: SyncContext) -> LeagueSyncResult:
    with session_scope(ctx.session_factory) as session:
        return await sync_leagues(session, ctx.client, batch_size=ctx.cfg.batch_size)


async def run_fixture_update(ctx: SyncContext) -> FixtureSyncResult:
    with session_scope(ctx.session_factory) as session:
        return await sync_fixtures_for_leagues(
            session,
            ctx.client,
            window_days=ctx.cfg.fixture_window_days,
            predictions=ctx.predictions,
            cfg=ctx.cfg,
        )


async def run_live_match_update(ctx: SyncContext) -> LiveRefreshResult:
    with session_scope(ctx.session_factory) as session:
        resolver = CurrentFixtureResolver.from_settings(ctx.client, ctx.cfg)
        return await refresh_live_matches(session, resolver)


async def run_execution_cleanup(ctx: SyncContext) -> dict[str, int]:
    deleted = ctx.tracker.cleanup(older_than_days=ctx.cfg.execution_retention_days)
    return {"deleted": deleted}


JOB_BODIES: dict[str, Callable[[SyncContext], Awaitable[Any]]] = {
    LEAGUE_SYNC: run_league_sync,
    FIXTURE_UPDATE: run_fixture_update,
    LIVE_MATCH_UPDATE: run_live_match_update,
    EXECUTION_CLEANUP: run_execution_cleanup,
}


def build_runner(job_name: str, ctx: SyncContext, *, tracked: bool = True) -> JobRunner[Any]:
    try:
        body = JOB_BODIES[job_name]
    except KeyError as e:
        raise KeyError(f"Unknown job {job_name!r}; expected one of {list(JOB_BODIES)}") from e
    return JobRunner.from_settings(
        job_name,
        lambda: body(ctx),
        tracker=ctx.tracker if tracked else None,
        cfg=ctx.cfg,
    )
