from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from sqlalchemy.orm import Session

from fixture_sync.core.logging import get_logger
from fixture_sync.db.enums import (
    FINISHED_STATUSES,
    IN_PLAY_STATUSES,
    INTERRUPTED_STATUSES,
    LIVE_STATUSES,
)
from fixture_sync.db.models.core.match import Match
from fixture_sync.db.repos.core.match_repo import MatchRepository
from fixture_sync.ingestion.dates import as_utc, utc_now
from fixture_sync.ingestion.providers.api_sports.ingest.current_fixtures import (
    CurrentFixtureResolver,
)
from fixture_sync.ingestion.providers.api_sports.ingest.fixtures import (
    match_fields,
    raise_league_seasons,
)
from fixture_sync.ingestion.providers.api_sports.schemas import ApiFixture

logger = get_logger(__name__)

LIVE_TRACKING_WINDOW = timedelta(hours=24)
STARTED_TRACKING_WINDOW = timedelta(hours=6)


@dataclass(frozen=True)
class LiveRefreshResult:
    candidates: int
    fetched: int
    updated: int
    finished: int
    resumed: int
    not_found: int
    errors: int
    league_seasons_raised: int
    failure_reasons: dict[str, int]


def select_live_candidates(matches: list[Match], *, now: datetime) -> list[Match]:
    """Stored matches worth polling right now.

    Live (or interrupted) matches are followed for 24 hours after kickoff. Any
    other unfinished match is polled once it has kicked off, while kickoff is
    still today or within the last 6 hours.
    """
    today_start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    picked: list[Match] = []
    for match in matches:
        if match.status_short in FINISHED_STATUSES:
            continue
        kickoff = as_utc(match.kickoff_at)
        if match.status_short in LIVE_STATUSES:
            if kickoff >= now - LIVE_TRACKING_WINDOW:
                picked.append(match)
            continue
        if kickoff < now and (kickoff >= today_start or kickoff >= now - STARTED_TRACKING_WINDOW):
            picked.append(match)
    return picked


def _apply(match: Match, fixture: ApiFixture) -> tuple[bool, bool]:
    previous = match.status_short
    fields = match_fields(fixture)
    for name, value in fields.items():
        setattr(match, name, value)

    status = match.status_short
    if status != previous:
        logger.info("Fixture {}: status {} -> {}", match.provider_fixture_id, previous, status)
    finished = status in FINISHED_STATUSES and previous not in FINISHED_STATUSES
    resumed = previous in INTERRUPTED_STATUSES and status in IN_PLAY_STATUSES
    if finished:
        logger.info(
            "Fixture {} finished {}-{}",
            match.provider_fixture_id,
            match.home_goals,
            match.away_goals,
        )
    return finished, resumed


async def refresh_live_matches(
    session: Session,
    resolver: CurrentFixtureResolver,
    *,
    now: datetime | None = None,
) -> LiveRefreshResult:
    """Poll the provider for every live or recently started stored match."""
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)

    candidates = select_live_candidates(
        repo.started_unfinished_since(now - LIVE_TRACKING_WINDOW), now=now
    )
    if not candidates:
        logger.info("No live matches to refresh")
        return LiveRefreshResult(0, 0, 0, 0, 0, 0, 0, 0, {})

    by_fixture_id = {m.provider_fixture_id: m for m in candidates}
    ledger = await resolver.fetch_by_identifiers(sorted(by_fixture_id))

    updated = finished = resumed = 0
    for fixture in ledger.values:
        match = by_fixture_id.get(fixture.fixture_id)
        if match is None:
            continue
        if fixture.fixture.status is None or fixture.goals is None or fixture.score is None:
            logger.warning("Fixture {} missing status/goals/score, skipping", fixture.fixture_id)
            continue
        did_finish, did_resume = _apply(match, fixture)
        updated += 1
        finished += int(did_finish)
        resumed += int(did_resume)
    seasons_raised = raise_league_seasons(session, ledger.values)
    session.flush()

    logger.info(
        "Live refresh: {} candidates, {} updated, {} finished, {} resumed, {} errors",
        len(candidates),
        updated,
        finished,
        resumed,
        ledger.errored,
    )
    return LiveRefreshResult(
        candidates=len(candidates),
        fetched=len(ledger.values),
        updated=updated,
        finished=finished,
        resumed=resumed,
        not_found=ledger.skip_reasons.get("not_found", 0),
        errors=ledger.errored,
        league_seasons_raised=seasons_raised,
        failure_reasons=dict(ledger.failure_reasons),
    )
