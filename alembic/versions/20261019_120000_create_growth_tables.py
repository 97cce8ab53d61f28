"""Create teams, players, matches, match reviews and player snapshots

Revision ID: 5e1c0a9d3b27
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5e1c0a9d3b27"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RATING_COLUMNS = (
    "shooting",
    "passing",
    "dribbling",
    "defense",
    "physical",
    "coach_grade",
    "overall_rating",
    "diving",
    "handling",
    "kicking",
)

COUNTING_COLUMNS = (
    "goals",
    "assists",
    "saves",
    "tackles",
    "interceptions",
    "chances_created",
    "minutes_played",
    "successful_goalie_kicks",
    "failed_goalie_kicks",
    "successful_goalie_throws",
    "failed_goalie_throws",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("position", sa.String(length=20), nullable=False, server_default="TBD"),
        *[
            sa.Column(name, sa.Integer(), nullable=False, server_default="50")
            for name in RATING_COLUMNS
        ],
        *_timestamps(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("opponent", sa.String(length=255), nullable=True),
        sa.Column("team_score", sa.Integer(), nullable=True),
        sa.Column("opponent_score", sa.Integer(), nullable=True),
        sa.Column("match_date", sa.Date(), nullable=True),
        sa.Column("temporal_order", sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_matches_temporal_order", "matches", ["temporal_order"])
    op.create_index("idx_matches_team_date", "matches", ["team_id", "match_date"])

    op.create_table(
        "match_reviews",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        *[
            sa.Column(name, sa.Integer(), nullable=False, server_default="0")
            for name in COUNTING_COLUMNS
        ],
        sa.Column("coach_rating", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("reflection", sa.Text(), nullable=True),
        sa.Column("ai_rating", sa.Integer(), nullable=True),
        sa.Column("ai_reasoning", sa.Text(), nullable=True),
        sa.Column("ai_suggestions", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "match_id", name="uq_match_reviews_player_match"),
    )
    op.create_index("idx_match_reviews_match", "match_reviews", ["match_id"])

    op.create_table(
        "player_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=True),
        *[sa.Column(name, sa.Integer(), nullable=False) for name in RATING_COLUMNS],
        *_timestamps(),
        *[
            sa.CheckConstraint(f"{name} BETWEEN 10 AND 100", name=f"ck_player_snapshots_{name}_range")
            for name in RATING_COLUMNS
        ],
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "match_id", name="uq_player_snapshots_player_match"),
    )
    # One initial (match-less) snapshot per player
    op.create_index(
        "uq_player_snapshots_initial",
        "player_snapshots",
        ["player_id"],
        unique=True,
        postgresql_where=sa.text("match_id IS NULL"),
        sqlite_where=sa.text("match_id IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_player_snapshots_initial", table_name="player_snapshots")
    op.drop_table("player_snapshots")
    op.drop_index("idx_match_reviews_match", table_name="match_reviews")
    op.drop_table("match_reviews")
    op.drop_index("idx_matches_team_date", table_name="matches")
    op.drop_index("ix_matches_temporal_order", table_name="matches")
    op.drop_table("matches")
    op.drop_table("players")
    op.drop_table("teams")
