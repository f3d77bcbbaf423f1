from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fixture_sync.db.base import Base, TimestampMixin


class League(Base, TimestampMixin):
    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(primary_key=True)
    provider_league_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    type: Mapped[str] = mapped_column(String, nullable=False, default="League")
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    flag_url: Mapped[str | None] = mapped_column(String, nullable=True)

    # Year of the provider season flagged `current: true` at last sync.
    season: Mapped[int | None] = mapped_column(Integer, nullable=True)
    season_start: Mapped[date | None] = mapped_column(nullable=True)
    season_end: Mapped[date | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    __table_args__ = (Index("ix_leagues_active", "is_active"),)
