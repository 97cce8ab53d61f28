"""
Storage access for the growth engine.

Thin wrappers over the ORM that give the recalculator the exact reads and
writes it needs, all ordered by Match.temporal_order (then match id):

- MatchReviewStore: raw stat line per (player, match)
- SnapshotStore: attribute set per (player, match) plus the initial one
- MatchCatalog: match order keys
- PositionLookup: player positions

Every store is bound to one session and never commits; the caller owns the
transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from squadgrowth.db.models import Match, MatchReview, Player, PlayerSnapshot
from squadgrowth.growth.calculator import round_half_up
from squadgrowth.growth.types import ATTRIBUTE_NAMES, AttributeSet, MatchStatLine

logger = logging.getLogger(__name__)

# Counting stats summed by the player summary
SUMMARY_STATS = (
    "goals",
    "assists",
    "saves",
    "tackles",
    "interceptions",
    "chances_created",
    "minutes_played",
    "coach_rating",
    "successful_goalie_kicks",
    "failed_goalie_kicks",
    "successful_goalie_throws",
    "failed_goalie_throws",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Match catalog / position lookup
# =============================================================================

class MatchCatalog:
    """Match lookups used purely for chronological ordering."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, match_id: int) -> Optional[Match]:
        return self.session.get(Match, match_id)

    def get_order_key(self, match_id: int) -> Optional[int]:
        """
        Return the match's temporal_order, or None if the match does not exist.

        Rows created before their key was assigned get it here.
        """
        match = self.get(match_id)
        if match is None:
            return None
        if match.temporal_order is None:
            match.update_temporal_order()
            self.session.flush()
            logger.info("Assigned missing temporal_order %s to match %s", match.temporal_order, match.id)
        return match.temporal_order


class PositionLookup:
    """Player position lookup. Unassigned positions read as None."""

    UNASSIGNED = {"", "TBD"}

    def __init__(self, session: Session):
        self.session = session

    def get_position(self, player_id: int) -> Optional[str]:
        position = self.session.execute(
            select(Player.position).where(Player.id == player_id)
        ).scalar_one_or_none()
        if position is None or position.strip().upper() in self.UNASSIGNED:
            return None
        return position


# =============================================================================
# Match reviews
# =============================================================================

class MatchReviewStore:
    """Authoritative raw stat lines, one per (player, match)."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_player_match(self, player_id: int, match_id: int) -> Optional[MatchReview]:
        return (
            self.session.query(MatchReview)
            .filter(MatchReview.player_id == player_id, MatchReview.match_id == match_id)
            .first()
        )

    def upsert(self, player_id: int, match_id: int, stat_line: MatchStatLine) -> MatchReview:
        """
        Create or overwrite the stat line for (player, match).

        Feedback and reflection are only overwritten when the submission
        carries them, so a stats-only resubmission keeps earlier text.
        AI enrichment columns are left alone.
        """
        review = self.get_by_player_match(player_id, match_id)
        if review is None:
            review = MatchReview(player_id=player_id, match_id=match_id)
            self.session.add(review)

        for key, value in stat_line.counting_stats().items():
            setattr(review, key, value)
        if stat_line.feedback is not None:
            review.feedback = stat_line.feedback
        if stat_line.reflection is not None:
            review.reflection = stat_line.reflection

        self.session.flush()
        return review

    def list_by_player_after(self, player_id: int, order_key: int) -> list[MatchReview]:
        """Reviews of the player on matches strictly later than order_key, ascending."""
        return (
            self.session.query(MatchReview)
            .join(Match, MatchReview.match_id == Match.id)
            .filter(
                MatchReview.player_id == player_id,
                Match.temporal_order > order_key,
            )
            .order_by(Match.temporal_order.asc(), Match.id.asc())
            .all()
        )

    def list_by_player(self, player_id: int) -> list[MatchReview]:
        """Every review of the player, in chronological order."""
        return (
            self.session.query(MatchReview)
            .join(Match, MatchReview.match_id == Match.id)
            .filter(MatchReview.player_id == player_id)
            .order_by(Match.temporal_order.asc(), Match.id.asc())
            .all()
        )

    def list_by_match(self, match_id: int) -> list[tuple[MatchReview, str]]:
        """All reviews of a match with the reviewed player's name."""
        rows = (
            self.session.query(MatchReview, Player.name)
            .join(Player, MatchReview.player_id == Player.id)
            .filter(MatchReview.match_id == match_id)
            .order_by(Player.name.asc(), MatchReview.id.asc())
            .all()
        )
        return [(review, name) for review, name in rows]

    def player_ids_for_match(self, match_id: int) -> list[int]:
        return list(
            self.session.execute(
                select(MatchReview.player_id).where(MatchReview.match_id == match_id)
            ).scalars()
        )

    def summary_for_player(self, player_id: int) -> dict[str, int]:
        """Summed counting stats over all of the player's reviews (0 when none)."""
        columns = [
            func.coalesce(func.sum(getattr(MatchReview, stat)), 0).label(stat)
            for stat in SUMMARY_STATS
        ]
        row = self.session.execute(
            select(*columns).where(MatchReview.player_id == player_id)
        ).one()
        return {stat: int(row._mapping[stat]) for stat in SUMMARY_STATS}

    def ai_grade_summary_for_player(self, player_id: int) -> dict[str, Optional[int]]:
        """Average (rounded), count, highest and lowest AI grade."""
        row = self.session.execute(
            select(
                func.avg(MatchReview.ai_rating),
                func.count(MatchReview.id),
                func.max(MatchReview.ai_rating),
                func.min(MatchReview.ai_rating),
            ).where(
                MatchReview.player_id == player_id,
                MatchReview.ai_rating.is_not(None),
            )
        ).one()
        average, total, highest, lowest = row
        if not total:
            return {
                "average_grade": None,
                "total_reviews": 0,
                "highest_grade": None,
                "lowest_grade": None,
            }

        return {
            "average_grade": round_half_up(float(average)),
            "total_reviews": int(total),
            "highest_grade": int(highest),
            "lowest_grade": int(lowest),
        }


# =============================================================================
# Snapshots
# =============================================================================

class SnapshotStore:
    """
    Per-player attribute snapshots.

    Each player has at most one initial snapshot (match_id NULL) and at most
    one snapshot per match.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_latest_before(self, player_id: int, order_key: int) -> Optional[PlayerSnapshot]:
        """Most recent match snapshot strictly earlier than order_key."""
        return (
            self.session.query(PlayerSnapshot)
            .join(Match, PlayerSnapshot.match_id == Match.id)
            .filter(
                PlayerSnapshot.player_id == player_id,
                Match.temporal_order < order_key,
            )
            .order_by(Match.temporal_order.desc(), Match.id.desc())
            .first()
        )

    def get_initial(self, player_id: int) -> Optional[PlayerSnapshot]:
        return (
            self.session.query(PlayerSnapshot)
            .filter(
                PlayerSnapshot.player_id == player_id,
                PlayerSnapshot.match_id.is_(None),
            )
            .first()
        )

    def ensure_initial(self, player_id: int) -> tuple[PlayerSnapshot, bool]:
        """
        Create the initial snapshot with default attributes if missing.

        Returns:
            (snapshot, created)
        """
        existing = self.get_initial(player_id)
        if existing is not None:
            logger.debug("Initial snapshot already exists for player %s", player_id)
            return existing, False

        snapshot = PlayerSnapshot(
            player_id=player_id,
            match_id=None,
            **AttributeSet.default().to_dict(),
        )
        self.session.add(snapshot)
        self.session.flush()
        logger.info("Created initial snapshot for player %s", player_id)
        return snapshot, True

    def get_for_match(self, player_id: int, match_id: int) -> Optional[PlayerSnapshot]:
        return (
            self.session.query(PlayerSnapshot)
            .filter(PlayerSnapshot.player_id == player_id, PlayerSnapshot.match_id == match_id)
            .first()
        )

    def upsert_many(self, entries: list[tuple[int, int, AttributeSet]]) -> int:
        """
        Write match snapshots as one INSERT ... ON CONFLICT DO UPDATE.

        Args:
            entries: (player_id, match_id, attributes) triples; match_id is
                     required (the initial snapshot is never written here)

        Returns:
            Number of rows written
        """
        if not entries:
            return 0
        if any(match_id is None for _, match_id, _ in entries):
            raise ValueError("upsert_many only writes match snapshots")

        # Pending ORM state must reach the database before the Core statement
        self.session.flush()

        now = _utcnow()
        rows = [
            {
                "player_id": player_id,
                "match_id": match_id,
                **attributes.to_dict(),
                "created_at": now,
                "updated_at": now,
            }
            for player_id, match_id, attributes in entries
        ]

        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            self._upsert_orm(rows)
            return len(rows)

        stmt = insert(PlayerSnapshot).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["player_id", "match_id"],
            set_={
                **{name: stmt.excluded[name] for name in ATTRIBUTE_NAMES},
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.session.execute(stmt)

        # Loaded snapshot objects no longer match their rows
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, PlayerSnapshot):
                self.session.expire(obj)
        return len(rows)

    def _upsert_orm(self, rows: list[dict]) -> None:
        """Row-by-row fallback for dialects without ON CONFLICT."""
        for row in rows:
            existing = self.get_for_match(row["player_id"], row["match_id"])
            if existing is None:
                self.session.add(PlayerSnapshot(**row))
                continue
            for name in ATTRIBUTE_NAMES:
                setattr(existing, name, row[name])
            existing.updated_at = row["updated_at"]
        self.session.flush()

    def player_ids_for_match(self, match_id: int) -> list[int]:
        return list(
            self.session.execute(
                select(PlayerSnapshot.player_id).where(PlayerSnapshot.match_id == match_id)
            ).scalars()
        )

    def delete_for_match(self, match_id: int) -> int:
        return (
            self.session.query(PlayerSnapshot)
            .filter(PlayerSnapshot.match_id == match_id)
            .delete(synchronize_session=False)
        )

    def set_current(self, player_id: int, attributes: AttributeSet) -> None:
        """Write the denormalized current attributes onto the player row."""
        player = self.session.get(Player, player_id)
        if player is None:
            raise ValueError(f"Player {player_id} does not exist")
        for name, value in attributes.to_dict().items():
            setattr(player, name, value)
        player.updated_at = _utcnow()
        self.session.flush()

    def list_history(self, player_id: int) -> list[tuple[PlayerSnapshot, Optional[Match]]]:
        """Initial snapshot first, then match snapshots in chronological order."""
        initial_first = case((PlayerSnapshot.match_id.is_(None), 0), else_=1)
        rows = (
            self.session.query(PlayerSnapshot, Match)
            .outerjoin(Match, PlayerSnapshot.match_id == Match.id)
            .filter(PlayerSnapshot.player_id == player_id)
            .order_by(initial_first, Match.temporal_order.asc(), Match.id.asc())
            .all()
        )
        return [(snapshot, match) for snapshot, match in rows]

    def get_latest(self, player_id: int) -> Optional[PlayerSnapshot]:
        """Chronologically latest match snapshot."""
        return (
            self.session.query(PlayerSnapshot)
            .join(Match, PlayerSnapshot.match_id == Match.id)
            .filter(PlayerSnapshot.player_id == player_id)
            .order_by(Match.temporal_order.desc(), Match.id.desc())
            .first()
        )

    def get_current(self, player_id: int) -> AttributeSet:
        """
        Derive current attributes from the snapshot chain.

        Latest match snapshot, else the initial snapshot, else defaults.
        """
        snapshot = self.get_latest(player_id) or self.get_initial(player_id)
        if snapshot is None:
            return AttributeSet.default()
        return AttributeSet.from_row(snapshot)
