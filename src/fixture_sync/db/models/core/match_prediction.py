from __future__ import annotations

from typing import Any

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from fixture_sync.db.base import Base, JsonColumn, TimestampMixin


class MatchPrediction(Base, TimestampMixin):
    """Prediction rows are written by the external prediction generator."""

    __tablename__ = "match_predictions"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    payload_json: Mapped[dict[str, Any] | None] = mapped_column(JsonColumn, nullable=True)

    __table_args__ = (Index("ix_match_predictions_match", "match_id"),)
