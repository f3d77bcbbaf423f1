from __future__ import annotations

from sqlalchemy.orm import Session

from fixture_sync.db.models.core.team_season_statistics import TeamSeasonStatistics
from fixture_sync.db.repos.base import BaseRepository


class TeamSeasonStatisticsRepository(BaseRepository[TeamSeasonStatistics]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=TeamSeasonStatistics)

    def for_team(
        self, *, provider_team_id: int, provider_league_id: int, season: int
    ) -> TeamSeasonStatistics | None:
        return self.first_where(
            TeamSeasonStatistics.provider_team_id == provider_team_id,
            TeamSeasonStatistics.provider_league_id == provider_league_id,
            TeamSeasonStatistics.season == season,
        )
