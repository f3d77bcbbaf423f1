from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Session

import fixture_sync.db.models  # noqa: F401
from fixture_sync.db.base import Base
from fixture_sync.db.models.core.league import League
from fixture_sync.db.models.core.match import Match
from fixture_sync.db.repos.core.league_repo import LeagueRepository
from fixture_sync.db.repos.core.match_repo import MatchRepository
from fixture_sync.ingestion.providers.api_sports.ingest.current_fixtures import (
    CurrentFixtureResolver,
)
from fixture_sync.ingestion.providers.api_sports.ingest.live import (
    refresh_live_matches,
    select_live_candidates,
)
from fixture_sync.ingestion.providers.api_sports.schemas import ApiFixture

from api_payloads import make_fixture

NOW = datetime(2025, 9, 10, 5, 0, tzinfo=UTC)


def _make_session() -> Session:
    engine = sa.create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    return Session(engine)


def _match(fixture_id: int, status: str, kickoff: datetime) -> Match:
    return Match(
        provider_fixture_id=fixture_id,
        provider_league_id=39,
        season=2025,
        kickoff_at=kickoff,
        status_short=status,
        status_long=status,
        home_team_id=1,
        away_team_id=2,
    )


class DummyFixtureClient:
    def __init__(self, by_id: dict[int, ApiFixture]) -> None:
        self.by_id = by_id
        self.lookups: list[int] = []

    async def get_fixture(self, fixture_id: int) -> ApiFixture | None:
        self.lookups.append(fixture_id)
        return self.by_id.get(fixture_id)


def _seed(session: Session) -> None:
    session.add_all(
        [
            _match(2001, "1H", datetime(2025, 9, 10, 4, 0, tzinfo=UTC)),
            _match(2002, "PST", datetime(2025, 9, 10, 2, 0, tzinfo=UTC)),
            _match(2003, "NS", datetime(2025, 9, 10, 4, 30, tzinfo=UTC)),
            _match(2004, "FT", datetime(2025, 9, 10, 1, 0, tzinfo=UTC)),
            _match(2005, "NS", datetime(2025, 9, 10, 7, 0, tzinfo=UTC)),
            _match(2006, "1H", datetime(2025, 9, 8, 23, 0, tzinfo=UTC)),
            _match(2007, "NS", datetime(2025, 9, 9, 20, 0, tzinfo=UTC)),
        ]
    )
    session.commit()


async def test_refresh_live_matches_updates_status_and_score(fake_sleep) -> None:
    session = _make_session()
    _seed(session)
    client = DummyFixtureClient(
        {
            2001: make_fixture(2001, status="FT", elapsed=90, goals=(2, 1)),
            2002: make_fixture(2002, status="2H", elapsed=50, goals=(0, 0)),
        }
    )
    resolver = CurrentFixtureResolver(client, sleep=fake_sleep)  # type: ignore[arg-type]

    result = await refresh_live_matches(session, resolver, now=NOW)

    assert client.lookups == [2001, 2002, 2003]
    assert result.candidates == 3
    assert result.fetched == 2
    assert result.updated == 2
    assert result.finished == 1
    assert result.resumed == 1
    assert result.not_found == 1
    assert result.errors == 0

    repo = MatchRepository(session)
    finished = repo.by_provider_id(2001)
    assert finished is not None
    assert finished.status_short == "FT"
    assert (finished.home_goals, finished.away_goals) == (2, 1)
    assert finished.score_json is not None
    assert finished.score_json["fulltime"] == {"home": 2, "away": 1}

    resumed = repo.by_provider_id(2002)
    assert resumed is not None and resumed.status_short == "2H"


async def test_refresh_skips_fixtures_without_score(fake_sleep) -> None:
    session = _make_session()
    session.add(_match(3001, "1H", datetime(2025, 9, 10, 4, 0, tzinfo=UTC)))
    session.commit()

    partial = ApiFixture.model_validate(
        {"fixture": {"id": 3001, "status": {"short": "2H"}}, "goals": {"home": 1, "away": 1}}
    )
    resolver = CurrentFixtureResolver(
        DummyFixtureClient({3001: partial}), sleep=fake_sleep  # type: ignore[arg-type]
    )

    result = await refresh_live_matches(session, resolver, now=NOW)

    assert result.fetched == 1
    assert result.updated == 0
    match = MatchRepository(session).by_provider_id(3001)
    assert match is not None and match.status_short == "1H"


async def test_nothing_to_refresh(fake_sleep) -> None:
    session = _make_session()
    client = DummyFixtureClient({})
    resolver = CurrentFixtureResolver(client, sleep=fake_sleep)  # type: ignore[arg-type]

    result = await refresh_live_matches(session, resolver, now=NOW)

    assert result.candidates == 0
    assert client.lookups == []


def test_select_live_candidates_windows() -> None:
    matches = [
        _match(1, "HT", datetime(2025, 9, 9, 6, 0, tzinfo=UTC)),
        _match(2, "HT", datetime(2025, 9, 9, 4, 0, tzinfo=UTC)),
        _match(3, "NS", datetime(2025, 9, 9, 23, 30, tzinfo=UTC)),
        _match(4, "NS", datetime(2025, 9, 9, 22, 0, tzinfo=UTC)),
        _match(5, "AET", datetime(2025, 9, 10, 1, 0, tzinfo=UTC)),
    ]
    picked = select_live_candidates(matches, now=NOW)
    assert [m.provider_fixture_id for m in picked] == [1, 3]


async def test_refresh_moves_league_season_forward(fake_sleep) -> None:
    session = _make_session()
    session.add_all(
        [
            League(provider_league_id=39, name="Premier League", season=2024, is_active=True),
            League(provider_league_id=140, name="La Liga", season=2026, is_active=True),
            _match(4001, "1H", datetime(2025, 9, 10, 4, 0, tzinfo=UTC)),
            _match(4002, "HT", datetime(2025, 9, 10, 4, 15, tzinfo=UTC)),
        ]
    )
    session.commit()
    client = DummyFixtureClient(
        {
            4001: make_fixture(4001, status="2H", elapsed=60, goals=(1, 0)),
            4002: make_fixture(4002, league_id=140, status="2H", elapsed=50, goals=(0, 0)),
        }
    )
    resolver = CurrentFixtureResolver(client, sleep=fake_sleep)  # type: ignore[arg-type]

    result = await refresh_live_matches(session, resolver, now=NOW)

    assert result.updated == 2
    assert result.league_seasons_raised == 1
    repo = LeagueRepository(session)
    premier = repo.by_provider_id(39)
    assert premier is not None and premier.season == 2025
    la_liga = repo.by_provider_id(140)
    assert la_liga is not None and la_liga.season == 2026
