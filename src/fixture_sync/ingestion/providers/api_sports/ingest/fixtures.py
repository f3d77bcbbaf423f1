from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from sqlalchemy.orm import Session

from fixture_sync.core.config import Settings, settings
from fixture_sync.core.logging import get_logger
from fixture_sync.db.models.core.league import League
from fixture_sync.db.models.core.match import Match
from fixture_sync.db.models.core.team import Team
from fixture_sync.db.models.core.team_season_statistics import TeamSeasonStatistics
from fixture_sync.db.repos.core.league_repo import LeagueRepository
from fixture_sync.db.repos.core.match_repo import MatchRepository
from fixture_sync.db.repos.core.team_repo import TeamRepository
from fixture_sync.db.repos.core.team_season_statistics_repo import TeamSeasonStatisticsRepository
from fixture_sync.ingestion.batching import ItemOutcome, format_failure_reason, run_batches
from fixture_sync.ingestion.dates import fixture_window, parse_api_sports_fixture_datetime, utc_now
from fixture_sync.ingestion.predictions import PredictionGenerator
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.ingestion.providers.api_sports.ingest.current_fixtures import (
    CurrentFixtureResolver,
    FixtureWindow,
    LeagueRef,
)
from fixture_sync.ingestion.providers.api_sports.schemas import (
    ApiFixture,
    FixtureStatus,
    FixtureTeam,
    Goals,
    Score,
)

logger = get_logger(__name__)

TeamSeasonKey = tuple[int, int, int]


@dataclass(frozen=True)
class FixtureSyncResult:
    leagues: int
    fixtures_seen: int
    created: int
    updated: int
    skipped: int
    errors: int
    match_ids: list[int]
    recovered_by_id: int
    bulk_failures: int
    teams_created: int
    league_seasons_raised: int
    team_stats_updated: int
    team_stats_failed: int
    predictions_generated: int
    failed_fixture_ids_sample: list[int]
    failure_reasons: dict[str, int]


def _empty_result(leagues: int = 0) -> FixtureSyncResult:
    return FixtureSyncResult(
        leagues=leagues,
        fixtures_seen=0,
        created=0,
        updated=0,
        skipped=0,
        errors=0,
        match_ids=[],
        recovered_by_id=0,
        bulk_failures=0,
        teams_created=0,
        league_seasons_raised=0,
        team_stats_updated=0,
        team_stats_failed=0,
        predictions_generated=0,
        failed_fixture_ids_sample=[],
        failure_reasons={},
    )


def match_fields(fixture: ApiFixture) -> dict[str, Any]:
    """Columns refreshed on every sync of a fixture."""
    status = fixture.fixture.status or FixtureStatus()
    goals = fixture.goals or Goals()
    score = fixture.score or Score()
    return {
        "kickoff_at": parse_api_sports_fixture_datetime(
            fixture.fixture.date,
            timestamp=fixture.fixture.timestamp,
            provider_fixture_id=fixture.fixture_id,
        ),
        "status_short": status.short or "NS",
        "status_long": status.long or "Not Started",
        "status_elapsed": status.elapsed or 0,
        "home_goals": goals.home or 0,
        "away_goals": goals.away or 0,
        "score_json": score.model_dump(mode="json"),
    }


def _teams_of(fixture: ApiFixture) -> list[FixtureTeam]:
    teams = (fixture.teams.home, fixture.teams.away)
    return [t for t in teams if t is not None and t.id is not None]


def _day_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    start = datetime.combine(date_from, time.min, tzinfo=UTC)
    end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=UTC)
    return start, end


async def _ensure_teams(
    session: Session,
    client: ApiSportsClient,
    fixtures: Sequence[ApiFixture],
    *,
    batch_size: int,
) -> int:
    team_repo = TeamRepository(session)
    refs: dict[int, FixtureTeam] = {}
    for fixture in fixtures:
        for team in _teams_of(fixture):
            refs.setdefault(int(team.id), team)  # type: ignore[arg-type]

    missing = [ref for team_id, ref in refs.items() if team_repo.by_provider_id(team_id) is None]
    if not missing:
        return 0

    async def create_team(ref: FixtureTeam) -> ItemOutcome:
        details = await client.get_team(int(ref.id))  # type: ignore[arg-type]
        info = details.team if details else None
        venue = details.venue if details else None
        team_repo.add(
            Team(
                provider_team_id=int(ref.id),  # type: ignore[arg-type]
                name=(info.name if info else None) or ref.name or str(ref.id),
                code=info.code if info else None,
                country=info.country if info else None,
                logo_url=(info.logo if info else None) or ref.logo,
                venue_name=venue.name if venue else None,
                venue_city=venue.city if venue else None,
                venue_capacity=venue.capacity if venue else None,
                venue_surface=venue.surface if venue else None,
            )
        )
        return ItemOutcome.created(key=ref.id)

    ledger = await run_batches(
        missing,
        operation=create_team,
        batch_size=batch_size,
        inter_batch_delay_s=0.0,
        key=lambda ref: ref.id,
        label="teams",
    )
    return ledger.created


def raise_league_seasons(session: Session, fixtures: Sequence[ApiFixture]) -> int:
    newest: dict[int, int] = {}
    for fixture in fixtures:
        league_id, season = fixture.league.id, fixture.league.season
        if league_id is None or season is None:
            continue
        newest[league_id] = max(season, newest.get(league_id, season))

    league_repo = LeagueRepository(session)
    raised = 0
    for league_id, season in newest.items():
        if league_repo.raise_season(league_id, season):
            logger.info("League {} season moved forward to {}", league_id, season)
            raised += 1
    return raised


async def refresh_team_statistics(
    session: Session,
    client: ApiSportsClient,
    keys: Sequence[TeamSeasonKey],
    *,
    batch_size: int = 10,
    inter_batch_delay_s: float = 0.5,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Re-fetch `/teams/statistics` for (team, league, season) triples.

    Returns (updated, failed).
    """
    repo = TeamSeasonStatisticsRepository(session)
    fetched_at = now or utc_now()

    async def refresh(key: TeamSeasonKey) -> ItemOutcome:
        team_id, league_id, season = key
        payload = await client.get_team_statistics(
            team_id=team_id, league_id=league_id, season=season
        )
        if payload is None:
            return ItemOutcome.skipped("no_statistics", key=key)

        existing = repo.for_team(
            provider_team_id=team_id, provider_league_id=league_id, season=season
        )
        if existing is None:
            repo.add(
                TeamSeasonStatistics(
                    provider_team_id=team_id,
                    provider_league_id=league_id,
                    season=season,
                    fetched_at=fetched_at,
                    payload_json=payload,
                )
            )
            return ItemOutcome.created(key=key)
        repo.patch(existing, {"payload_json": payload, "fetched_at": fetched_at})
        return ItemOutcome.updated(key=key)

    ledger = await run_batches(
        list(keys),
        operation=refresh,
        batch_size=batch_size,
        inter_batch_delay_s=inter_batch_delay_s,
        label="team statistics",
    )
    return ledger.created + ledger.updated, ledger.skipped + ledger.errored


async def _generate_predictions(
    session: Session, generator: PredictionGenerator | None, match_ids: Sequence[int]
) -> int:
    if generator is None or not match_ids:
        return 0
    pending = MatchRepository(session).without_predictions(match_ids)
    if not pending:
        logger.info("All {} matches already have predictions", len(match_ids))
        return 0
    try:
        generated = await generator.generate(pending)
    except Exception as exc:
        logger.error("Prediction generation failed for {} matches: {}", len(pending), exc)
        return 0
    logger.info("Generated {} predictions for {} matches", generated, len(pending))
    return generated


async def sync_fixtures_for_leagues(
    session: Session,
    client: ApiSportsClient,
    *,
    leagues: Sequence[League] | None = None,
    window_days: int | None = None,
    include_live: bool = False,
    resolver: CurrentFixtureResolver | None = None,
    predictions: PredictionGenerator | None = None,
    fixture_batch_size: int = 20,
    team_stats_batch_size: int = 10,
    team_stats_delay_s: float = 0.5,
    now: datetime | None = None,
    cfg: Settings = settings,
) -> FixtureSyncResult:
    """Upsert the upcoming fixtures of `leagues` (default: every active league).

    Steps: resolve fixtures (bulk per season, then by id for tracked gaps),
    upsert matches, create unknown teams, move league seasons forward, refresh
    team season statistics, then hand matches without predictions to the
    prediction generator. Statistics and prediction failures never fail the sync.
    """
    league_repo = LeagueRepository(session)
    match_repo = MatchRepository(session)

    leagues = list(leagues) if leagues is not None else league_repo.active()
    if not leagues:
        logger.warning("No active leagues, nothing to sync")
        return _empty_result()

    now = now or utc_now()
    if window_days is None:
        window_days = cfg.fixture_window_days
    date_from, date_to = fixture_window(window_days, now=now)
    window = FixtureWindow(date_from=date_from, date_to=date_to, include_live=include_live)
    league_ids = [league.provider_league_id for league in leagues]

    start, end = _day_bounds(date_from, date_to)
    tracked_ids = [
        m.provider_fixture_id
        for m in match_repo.unfinished_in_window(
            provider_league_ids=league_ids, start=start, end=end
        )
    ]

    resolver = resolver or CurrentFixtureResolver.from_settings(
        client, cfg, season_lookup=match_repo.seasons_for_league
    )
    resolved = await resolver.resolve(
        [LeagueRef(league.provider_league_id, league.season) for league in leagues],
        tracked_ids,
        window,
    )
    fixtures = list(resolved.fixtures.values())
    logger.info(
        "{} fixtures for {} leagues between {} and {}",
        len(fixtures),
        len(leagues),
        date_from,
        date_to,
    )

    teams_created = await _ensure_teams(
        session, client, fixtures, batch_size=cfg.batch_size
    )
    seasons_raised = raise_league_seasons(session, fixtures)

    existing = match_repo.by_provider_ids(resolved.fixtures.keys())

    async def upsert(fixture: ApiFixture) -> ItemOutcome:
        fixture_id = fixture.fixture_id
        teams = fixture.teams
        home, away = teams.home, teams.away
        if home is None or home.id is None or away is None or away.id is None:
            return ItemOutcome.skipped("no_teams", key=fixture_id)
        if fixture.fixture.date is None and fixture.fixture.timestamp is None:
            return ItemOutcome.skipped("no_date", key=fixture_id)

        fields = match_fields(fixture)
        match = existing.get(fixture_id)  # type: ignore[arg-type]
        if match is None:
            match = match_repo.add(
                Match(
                    provider_fixture_id=fixture_id,
                    provider_league_id=fixture.league.id or 0,
                    season=fixture.league.season or now.year,
                    home_team_id=home.id,
                    away_team_id=away.id,
                    **fields,
                )
            )
            return ItemOutcome.created(key=fixture_id, value=match.id)

        if fixture.league.season is not None:
            fields["season"] = fixture.league.season
        match_repo.patch(match, fields)
        return ItemOutcome.updated(key=fixture_id, value=match.id)

    ledger = await run_batches(
        fixtures,
        operation=upsert,
        batch_size=fixture_batch_size,
        inter_batch_delay_s=0.0,
        key=lambda f: f.fixture_id,
        label="fixtures",
    )
    match_ids = [int(v) for v in ledger.values]

    stats_keys: set[TeamSeasonKey] = set()
    touched = match_repo.list_where(Match.id.in_(match_ids)) if match_ids else []
    for match in touched:
        stats_keys.add((match.home_team_id, match.provider_league_id, match.season))
        stats_keys.add((match.away_team_id, match.provider_league_id, match.season))

    stats_updated, stats_failed = 0, 0
    if stats_keys:
        try:
            stats_updated, stats_failed = await refresh_team_statistics(
                session,
                client,
                sorted(stats_keys),
                batch_size=team_stats_batch_size,
                inter_batch_delay_s=team_stats_delay_s,
                now=now,
            )
        except Exception as exc:
            logger.error("Team statistics refresh failed: {}", format_failure_reason(exc))
            stats_failed = len(stats_keys)

    predictions_generated = await _generate_predictions(session, predictions, match_ids)

    failure_reasons = dict(resolved.failure_reasons)
    for reason, count in ledger.failure_reasons.items():
        failure_reasons[reason] = failure_reasons.get(reason, 0) + count

    logger.info(
        "Fixture sync: created={} updated={} skipped={} errors={} teams_created={} "
        "team_stats={}/{} predictions={}",
        ledger.created,
        ledger.updated,
        ledger.skipped,
        ledger.errored,
        teams_created,
        stats_updated,
        stats_updated + stats_failed,
        predictions_generated,
    )

    return FixtureSyncResult(
        leagues=len(leagues),
        fixtures_seen=len(fixtures),
        created=ledger.created,
        updated=ledger.updated,
        skipped=ledger.skipped,
        errors=ledger.errored,
        match_ids=match_ids,
        recovered_by_id=resolved.recovered_by_fallback,
        bulk_failures=resolved.bulk_failures,
        teams_created=teams_created,
        league_seasons_raised=seasons_raised,
        team_stats_updated=stats_updated,
        team_stats_failed=stats_failed,
        predictions_generated=predictions_generated,
        failed_fixture_ids_sample=[int(i) for i in ledger.failed_ids_sample],
        failure_reasons=failure_reasons,
    )
