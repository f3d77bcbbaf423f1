from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fixture_sync.db.base import Base, TimestampMixin


class Team(Base, TimestampMixin):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    provider_team_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)

    venue_name: Mapped[str | None] = mapped_column(String, nullable=True)
    venue_city: Mapped[str | None] = mapped_column(String, nullable=True)
    venue_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    venue_surface: Mapped[str | None] = mapped_column(String, nullable=True)
