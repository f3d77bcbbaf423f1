from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fixture_sync.db.base import Base, JsonColumn, TimestampMixin


class Match(Base, TimestampMixin):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    provider_fixture_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    # Provider ids rather than FKs: fixtures can arrive before their league/teams.
    provider_league_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    kickoff_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status_short: Mapped[str] = mapped_column(String, nullable=False, default="NS")
    status_long: Mapped[str] = mapped_column(String, nullable=False, default="Not Started")
    status_elapsed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    home_team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    away_team_id: Mapped[int] = mapped_column(Integer, nullable=False)

    home_goals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    away_goals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_json: Mapped[dict[str, Any] | None] = mapped_column(JsonColumn, nullable=True)

    __table_args__ = (
        Index("ix_matches_league_kickoff", "provider_league_id", "kickoff_at"),
        Index("ix_matches_status_kickoff", "status_short", "kickoff_at"),
    )
