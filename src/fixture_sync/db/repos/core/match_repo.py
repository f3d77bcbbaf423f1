from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from fixture_sync.db.enums import FINISHED_STATUSES
from fixture_sync.db.models.core.match import Match
from fixture_sync.db.models.core.match_prediction import MatchPrediction
from fixture_sync.db.repos.base import BaseRepository


class MatchRepository(BaseRepository[Match]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Match)

    def by_provider_id(self, provider_fixture_id: int) -> Match | None:
        return self.first_where(Match.provider_fixture_id == provider_fixture_id)

    def by_provider_ids(self, provider_fixture_ids: Iterable[int]) -> dict[int, Match]:
        ids = list(provider_fixture_ids)
        if not ids:
            return {}
        rows = self.list_where(Match.provider_fixture_id.in_(ids))
        return {m.provider_fixture_id: m for m in rows}

    def unfinished_in_window(
        self,
        *,
        provider_league_ids: Collection[int],
        start: datetime,
        end: datetime,
    ) -> list[Match]:
        """Matches the store already tracks for these leagues in [start, end)."""
        if not provider_league_ids:
            return []
        return self.list_where(
            Match.provider_league_id.in_(list(provider_league_ids)),
            Match.kickoff_at >= start,
            Match.kickoff_at < end,
            Match.status_short.not_in(sorted(FINISHED_STATUSES)),
        )

    def started_unfinished_since(self, since: datetime) -> list[Match]:
        return self.list_where(
            Match.kickoff_at >= since,
            Match.status_short.not_in(sorted(FINISHED_STATUSES)),
        )

    def without_predictions(self, match_ids: Collection[int]) -> list[int]:
        if not match_ids:
            return []
        stmt = select(MatchPrediction.match_id).where(MatchPrediction.match_id.in_(list(match_ids)))
        predicted = set(self.session.execute(stmt).scalars().all())
        return [m for m in match_ids if m not in predicted]

    def seasons_for_league(self, provider_league_id: int) -> list[int]:
        stmt = (
            select(Match.season)
            .where(Match.provider_league_id == provider_league_id)
            .distinct()
            .order_by(Match.season.desc())
        )
        return list(self.session.execute(stmt).scalars().all())
