from __future__ import annotations

from sqlalchemy.orm import Session

from fixture_sync.db.models.core.league import League
from fixture_sync.db.repos.base import BaseRepository


class LeagueRepository(BaseRepository[League]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=League)

    def by_provider_id(self, provider_league_id: int) -> League | None:
        return self.first_where(League.provider_league_id == provider_league_id)

    def active(self) -> list[League]:
        return self.list_where(League.is_active.is_(True))

    def raise_season(self, provider_league_id: int, season: int) -> bool:
        """Move a league's stored season forward; never backwards."""
        league = self.by_provider_id(provider_league_id)
        if league is None:
            return False
        if league.season is not None and league.season >= season:
            return False
        self.patch(league, {"season": season})
        return True
