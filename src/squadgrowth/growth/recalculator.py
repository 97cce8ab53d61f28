"""
Chain recalculation: keep a player's snapshot chain consistent after an edit.

The chain invariant: for every match M of player P,

    snapshot(M) == grow(snapshot(prev(M)) or initial, stat_line(M), position)

where prev() follows Match.temporal_order. Editing the stats of any match
therefore invalidates M and every later snapshot of P.

Recalculation flow (one invocation per stat submission):
1. RESOLVING_TARGET: resolve the baseline of M and grow it with the
   just-applied stat line
2. REPLAYING: feed the running set through every later review of P,
   in order, in memory (no writes per match)
3. COMMITTING: write all snapshots as one batch upsert and set P's
   current attributes to the last computed set
4. DONE: return the result

Any exception moves the recalculator to FAILED and propagates. Nothing is
committed here: the caller owns the transaction and rolls it back, so a
failed invocation leaves reviews, snapshots and current attributes
exactly as they were.

Usage:
    recalculator = ChainRecalculator(session)
    result = recalculator.recalculate(player_id, match_id, stat_line)
    session.commit()
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from squadgrowth.db.models import Player, PlayerSnapshot
from squadgrowth.growth.baseline import BaselineResolver
from squadgrowth.growth.calculator import GrowthCalculator
from squadgrowth.growth.stores import (
    MatchCatalog,
    MatchReviewStore,
    PositionLookup,
    SnapshotStore,
)
from squadgrowth.growth.types import AttributeSet, MatchStatLine

logger = logging.getLogger(__name__)


class RecalcState(str, Enum):
    IDLE = "idle"
    RESOLVING_TARGET = "resolving_target"
    REPLAYING = "replaying"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GrowthResult:
    """
    Outcome of one recalculation.

    previous_attributes is the baseline match M grew from, so
    per_attribute_growth is what M itself earned. final_attributes is the
    end of the chain after replaying later matches (equal to
    match_computed_attributes when M is the latest match).
    """
    player_id: int
    match_id: int
    previous_attributes: AttributeSet
    match_computed_attributes: AttributeSet
    final_attributes: AttributeSet
    replayed_match_ids: list[int] = field(default_factory=list)

    @property
    def per_attribute_growth(self) -> dict[str, int]:
        return self.match_computed_attributes.diff(self.previous_attributes)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "match_id": self.match_id,
            "previous_attributes": self.previous_attributes.to_dict(),
            "match_computed_attributes": self.match_computed_attributes.to_dict(),
            "final_attributes": self.final_attributes.to_dict(),
            "per_attribute_growth": self.per_attribute_growth,
            "replayed_match_ids": list(self.replayed_match_ids),
        }


@dataclass
class RebuildResult:
    """Outcome of replaying a player's whole chain from the initial snapshot."""
    player_id: int
    matches_replayed: int
    final_attributes: AttributeSet
    orphans_removed: int = 0


@dataclass
class ChainMismatch:
    match_id: int
    stored: Optional[dict[str, int]]
    expected: dict[str, int]


@dataclass
class ChainReport:
    """Differences between the stored chain and a fresh replay."""
    player_id: int
    matches_checked: int = 0
    mismatches: list[ChainMismatch] = field(default_factory=list)
    current_drift: Optional[dict[str, tuple[int, int]]] = None

    @property
    def is_consistent(self) -> bool:
        return not self.mismatches and not self.current_drift


class ChainRecalculator:
    """
    Re-derives a player's snapshots from an edited match onward.

    One instance per session; `state` reflects the last invocation.
    """

    def __init__(
        self,
        session: Session,
        calculator: Optional[GrowthCalculator] = None,
        strict_baseline: Optional[bool] = None,
    ):
        self.session = session
        self.calculator = calculator or GrowthCalculator()
        self.reviews = MatchReviewStore(session)
        self.snapshots = SnapshotStore(session)
        self.catalog = MatchCatalog(session)
        self.positions = PositionLookup(session)
        self.resolver = BaselineResolver(
            session,
            snapshots=self.snapshots,
            catalog=self.catalog,
            strict=strict_baseline,
        )
        self.state = RecalcState.IDLE

    def _transition(self, state: RecalcState, player_id: int) -> None:
        logger.debug("Chain recalculation player=%s: %s -> %s", player_id, self.state.value, state.value)
        self.state = state

    # =========================================================================
    # Single-edit recalculation
    # =========================================================================

    def recalculate(
        self,
        player_id: int,
        match_id: int,
        stat_line: Optional[MatchStatLine] = None,
    ) -> GrowthResult:
        """
        Recompute match_id's snapshot and every later one for player_id.

        Args:
            player_id: Player whose chain changed
            match_id: Match whose stat line was just written
            stat_line: The just-applied stats. When omitted, the stored review
                       is used.

        Returns:
            GrowthResult with baseline, the match's new set and the chain end

        Raises:
            LookupError: No stat line given and none stored for the pair
            Any persistence error from the stores (state becomes FAILED)
        """
        self.state = RecalcState.IDLE
        try:
            self._transition(RecalcState.RESOLVING_TARGET, player_id)
            if stat_line is None:
                review = self.reviews.get_by_player_match(player_id, match_id)
                if review is None:
                    raise LookupError(f"No review for player {player_id} match {match_id}")
                stat_line = MatchStatLine.from_mapping(review)

            order_key = self.catalog.get_order_key(match_id)
            position = self.positions.get_position(player_id)
            baseline = self.resolver.resolve_baseline(player_id, match_id)
            target = self.calculator.compute_growth(baseline, stat_line, position)
            writes: list[tuple[int, int, AttributeSet]] = [(player_id, match_id, target)]

            self._transition(RecalcState.REPLAYING, player_id)
            running = target
            replayed: list[int] = []
            for review in self.reviews.list_by_player_after(player_id, order_key):
                running = self.calculator.compute_growth(
                    running, MatchStatLine.from_mapping(review), position
                )
                writes.append((player_id, review.match_id, running))
                replayed.append(review.match_id)

            self._transition(RecalcState.COMMITTING, player_id)
            self.snapshots.upsert_many(writes)
            self.snapshots.set_current(player_id, running)

            self._transition(RecalcState.DONE, player_id)
        except Exception:
            self._transition(RecalcState.FAILED, player_id)
            raise

        logger.info(
            "Recalculated player %s from match %s: %s later matches replayed, overall %s -> %s",
            player_id,
            match_id,
            len(replayed),
            baseline.overall_rating,
            running.overall_rating,
        )
        return GrowthResult(
            player_id=player_id,
            match_id=match_id,
            previous_attributes=baseline,
            match_computed_attributes=target,
            final_attributes=running,
            replayed_match_ids=replayed,
        )

    # =========================================================================
    # Full-chain operations
    # =========================================================================

    def _replay_all(self, player_id: int) -> tuple[AttributeSet, list[tuple[int, AttributeSet]]]:
        """Replay every review of the player from the initial snapshot, in memory."""
        position = self.positions.get_position(player_id)
        running = self.resolver.resolve_for_order_key(player_id, None)
        computed: list[tuple[int, AttributeSet]] = []
        for review in self.reviews.list_by_player(player_id):
            running = self.calculator.compute_growth(
                running, MatchStatLine.from_mapping(review), position
            )
            computed.append((review.match_id, running))
        return running, computed

    def rebuild_player_chain(self, player_id: int) -> RebuildResult:
        """
        Rewrite every snapshot of the player from the initial snapshot.

        Snapshots of matches the player no longer has a review for are
        removed. Used after a match is deleted or re-dated, and by the
        rebuild script.
        """
        self.state = RecalcState.IDLE
        try:
            self._transition(RecalcState.REPLAYING, player_id)
            final, computed = self._replay_all(player_id)

            self._transition(RecalcState.COMMITTING, player_id)
            reviewed = [match_id for match_id, _ in computed]
            orphan_query = self.session.query(PlayerSnapshot).filter(
                PlayerSnapshot.player_id == player_id,
                PlayerSnapshot.match_id.is_not(None),
            )
            if reviewed:
                orphan_query = orphan_query.filter(PlayerSnapshot.match_id.not_in(reviewed))
            orphans = orphan_query.delete(synchronize_session=False)

            self.snapshots.upsert_many(
                [(player_id, match_id, attributes) for match_id, attributes in computed]
            )
            self.snapshots.set_current(player_id, final)
            self._transition(RecalcState.DONE, player_id)
        except Exception:
            self._transition(RecalcState.FAILED, player_id)
            raise

        logger.info(
            "Rebuilt chain for player %s: %s matches, %s orphan snapshots removed",
            player_id,
            len(computed),
            orphans,
        )
        return RebuildResult(
            player_id=player_id,
            matches_replayed=len(computed),
            final_attributes=final,
            orphans_removed=orphans,
        )

    def verify_player_chain(self, player_id: int) -> ChainReport:
        """Compare stored snapshots and current columns against a fresh replay. Read-only."""
        final, computed = self._replay_all(player_id)
        report = ChainReport(player_id=player_id, matches_checked=len(computed))

        for match_id, expected in computed:
            stored = self.snapshots.get_for_match(player_id, match_id)
            stored_set = AttributeSet.from_row(stored) if stored is not None else None
            if stored_set != expected:
                report.mismatches.append(
                    ChainMismatch(
                        match_id=match_id,
                        stored=stored_set.to_dict() if stored_set else None,
                        expected=expected.to_dict(),
                    )
                )

        player = self.session.get(Player, player_id)
        if player is not None:
            current = AttributeSet.from_row(player)
            if current != final:
                report.current_drift = {
                    name: (getattr(current, name), getattr(final, name))
                    for name, delta in final.diff(current).items()
                    if delta
                }

        if not report.is_consistent:
            logger.warning(
                "Chain drift for player %s: %s snapshot mismatches, current drift=%s",
                player_id,
                len(report.mismatches),
                bool(report.current_drift),
            )
        return report
