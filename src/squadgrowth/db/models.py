"""
SQLAlchemy ORM models for Squadgrowth.

This module defines all database tables and their relationships.
The schema is designed around an append/overwrite snapshot ledger:
every (player, match) pair has at most one raw stat line and at most
one attribute snapshot, and each player has exactly one "initial"
snapshot (match_id NULL) created when they first join a team.

Key design decisions:
- Matches carry an explicit temporal_order key (date + match id) that is
  the authoritative chronological ordering for the snapshot chain
- Snapshots are keyed by (player_id, match_id); writes are upserts
- Player attribute columns are a denormalized copy of the latest snapshot,
  written only by the growth pipeline

Tables:
- teams: Team master data
- players: Player profiles with current attributes
- matches: Matches played by a team
- match_reviews: Raw stat line per (player, match)
- player_snapshots: Attribute set per (player, match) plus the initial one
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Constants
# =============================================================================

# Width reserved for the match id inside temporal_order (10 digits).
# 99991231 * ORDER_ID_SPAN still fits a signed BigInteger.
ORDER_ID_SPAN = 10_000_000_000

# Rating columns shared by players and player_snapshots
RATING_COLUMNS: tuple[str, ...] = (
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


def compute_temporal_order(match_date: Optional[date], match_id: int) -> int:
    """
    Compute a sortable integer for chronological match ordering.

    Format: YYYYMMDD_IIIIIIIIII (as integer)
    - YYYYMMDD: Match date (8 digits)
    - IIIIIIIIII: Match id (10 digits), breaks ties between same-day matches

    Matches without a date sort after every dated match.

    Args:
        match_date: Date the match was played
        match_id: Primary key of the match

    Returns:
        Integer suitable for chronological sorting

    Raises:
        ValueError: If match_id does not fit the id digits. Wrapping it would
            let two same-day matches share a key or sort out of id order.
    """
    if not 0 <= match_id < ORDER_ID_SPAN:
        raise ValueError(f"match id {match_id} does not fit temporal_order")

    if match_date is None:
        year, month, day = 9999, 12, 31
    else:
        year, month, day = match_date.year, match_date.month, match_date.day

    date_part = year * 10000 + month * 100 + day
    return date_part * ORDER_ID_SPAN + match_id


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Team / Player Models
# =============================================================================

class Team(Base):
    """A team that players join and matches belong to."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    players: Mapped[list["Player"]] = relationship(back_populates="team")
    matches: Mapped[list["Match"]] = relationship(back_populates="team")

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"


class Player(Base):
    """
    Player profile with current attributes.

    The rating columns mirror the player's chronologically latest snapshot
    (or the initial snapshot when no match has been reviewed yet). They are
    written by the growth pipeline only.

    Position values follow the usual shorthand: 'GK', 'CB', 'LB', 'RB',
    'CDM', 'CM', 'CAM', 'LW', 'RW', 'ST', 'CF'. 'TBD' means unassigned.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    position: Mapped[str] = mapped_column(String(20), default="TBD", server_default="TBD")

    # Current attributes
    shooting: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    passing: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    dribbling: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    defense: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    physical: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    coach_grade: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    overall_rating: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    # Goalkeeper attributes
    diving: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    handling: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    kicking: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    team: Mapped[Optional["Team"]] = relationship(back_populates="players")

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}', position='{self.position}')>"


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    A match played by a team.

    temporal_order is assigned when the match is created (and whenever its
    date changes) with compute_temporal_order(). It is the only ordering the
    growth engine uses; match_date is display metadata.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=True
    )
    opponent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    team_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    opponent_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    match_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    temporal_order: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    team: Mapped[Optional["Team"]] = relationship(back_populates="matches")

    __table_args__ = (
        Index("idx_matches_team_date", "team_id", "match_date"),
    )

    def update_temporal_order(self) -> None:
        """Recompute temporal_order from match_date and id. Requires a flushed id."""
        self.temporal_order = compute_temporal_order(self.match_date, self.id)

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, date={self.match_date}, opponent='{self.opponent}')>"


class MatchReview(Base):
    """
    Raw stat line for one player in one match.

    Created on the first stat submission for the (player, match) pair and
    overwritten on resubmission. No edit history is kept here: the snapshot
    chain is the history.
    """
    __tablename__ = "match_reviews"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )

    # Counting stats
    goals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    assists: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    saves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tackles: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    interceptions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    chances_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minutes_played: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Goalkeeper distribution
    successful_goalie_kicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_goalie_kicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_goalie_throws: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_goalie_throws: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Subjective inputs
    coach_rating: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reflection: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Enrichment (best-effort, filled after the growth commit)
    ai_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_suggestions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    player: Mapped["Player"] = relationship()
    match: Mapped["Match"] = relationship()

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_match_reviews_player_match"),
        Index("idx_match_reviews_match", "match_id"),
    )

    def __repr__(self) -> str:
        return f"<MatchReview(player_id={self.player_id}, match_id={self.match_id})>"


class PlayerSnapshot(Base):
    """
    Attribute set frozen at a point in the player's history.

    match_id NULL marks the single initial snapshot (default attributes,
    created when the player first joins a team). Every other snapshot must
    equal the growth of the chronologically preceding snapshot by that
    match's stat line; the chain recalculator re-establishes this after
    every edit.
    """
    __tablename__ = "player_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    match_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=True
    )

    shooting: Mapped[int] = mapped_column(Integer, nullable=False)
    passing: Mapped[int] = mapped_column(Integer, nullable=False)
    dribbling: Mapped[int] = mapped_column(Integer, nullable=False)
    defense: Mapped[int] = mapped_column(Integer, nullable=False)
    physical: Mapped[int] = mapped_column(Integer, nullable=False)
    coach_grade: Mapped[int] = mapped_column(Integer, nullable=False)
    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    diving: Mapped[int] = mapped_column(Integer, nullable=False)
    handling: Mapped[int] = mapped_column(Integer, nullable=False)
    kicking: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    match: Mapped[Optional["Match"]] = relationship()

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_player_snapshots_player_match"),
        # NULLs are distinct in unique constraints, so the one-initial-per-player
        # rule needs its own partial index
        Index(
            "uq_player_snapshots_initial",
            "player_id",
            unique=True,
            postgresql_where=text("match_id IS NULL"),
            sqlite_where=text("match_id IS NULL"),
        ),
        *(
            CheckConstraint(f"{col} BETWEEN 10 AND 100", name=f"ck_player_snapshots_{col}_range")
            for col in RATING_COLUMNS
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerSnapshot(player_id={self.player_id}, match_id={self.match_id}, "
            f"overall={self.overall_rating})>"
        )
