from __future__ import annotations

from sqlalchemy.orm import Session

from fixture_sync.db.models.core.team import Team
from fixture_sync.db.repos.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Team)

    def by_provider_id(self, provider_team_id: int) -> Team | None:
        return self.first_where(Team.provider_team_id == provider_team_id)
