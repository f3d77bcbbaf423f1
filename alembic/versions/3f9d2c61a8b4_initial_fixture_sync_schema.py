"""Initial fixture sync schema

Revision ID: 3f9d2c61a8b4
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9d2c61a8b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "leagues",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_league_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("flag_url", sa.String(), nullable=True),
        sa.Column("season", sa.Integer(), nullable=True),
        sa.Column("season_start", sa.Date(), nullable=True),
        sa.Column("season_end", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_league_id"),
    )
    op.create_index("ix_leagues_active", "leagues", ["is_active"], unique=False)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_team_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("venue_name", sa.String(), nullable=True),
        sa.Column("venue_city", sa.String(), nullable=True),
        sa.Column("venue_capacity", sa.Integer(), nullable=True),
        sa.Column("venue_surface", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_team_id"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_fixture_id", sa.Integer(), nullable=False),
        sa.Column("provider_league_id", sa.Integer(), nullable=False),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("kickoff_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_short", sa.String(), nullable=False),
        sa.Column("status_long", sa.String(), nullable=False),
        sa.Column("status_elapsed", sa.Integer(), nullable=False),
        sa.Column("home_team_id", sa.Integer(), nullable=False),
        sa.Column("away_team_id", sa.Integer(), nullable=False),
        sa.Column("home_goals", sa.Integer(), nullable=False),
        sa.Column("away_goals", sa.Integer(), nullable=False),
        sa.Column("score_json", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_fixture_id"),
    )
    op.create_index(
        "ix_matches_league_kickoff",
        "matches",
        ["provider_league_id", "kickoff_at"],
        unique=False,
    )
    op.create_index(
        "ix_matches_status_kickoff",
        "matches",
        ["status_short", "kickoff_at"],
        unique=False,
    )

    op.create_table(
        "team_season_statistics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_team_id", sa.Integer(), nullable=False),
        sa.Column("provider_league_id", sa.Integer(), nullable=False),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload_json", JSON_TYPE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "provider_team_id",
            "provider_league_id",
            "season",
            name="uq_team_season_statistics_team_league_season",
        ),
    )

    op.create_table(
        "match_predictions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("payload_json", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_match_predictions_match", "match_predictions", ["match_id"], unique=False
    )

    op.create_table(
        "job_executions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("started", "success", "failed", name="jobstatusenum"),
            nullable=False,
        ),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("details_json", JSON_TYPE, nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_job_executions_name_started",
        "job_executions",
        ["job_name", "started_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_job_executions_name_started", table_name="job_executions")
    op.drop_table("job_executions")
    sa.Enum(name="jobstatusenum").drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_match_predictions_match", table_name="match_predictions")
    op.drop_table("match_predictions")
    op.drop_table("team_season_statistics")
    op.drop_index("ix_matches_status_kickoff", table_name="matches")
    op.drop_index("ix_matches_league_kickoff", table_name="matches")
    op.drop_table("matches")
    op.drop_table("teams")
    op.drop_index("ix_leagues_active", table_name="leagues")
    op.drop_table("leagues")
