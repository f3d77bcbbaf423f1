from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fixture_sync.db.base import Base, JsonColumn, TimestampMixin


class TeamSeasonStatistics(Base, TimestampMixin):
    __tablename__ = "team_season_statistics"

    id: Mapped[int] = mapped_column(primary_key=True)
    provider_team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    provider_league_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payload_json: Mapped[dict[str, Any]] = mapped_column(JsonColumn, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "provider_team_id",
            "provider_league_id",
            "season",
            name="uq_team_season_statistics_team_league_season",
        ),
    )
