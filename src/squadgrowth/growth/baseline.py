"""
Baseline resolution: which attribute set does a match grow from?

For player P and match M the baseline is, in order of preference:

1. The most recent snapshot of P on a match strictly earlier than M
   (by temporal_order, so same-day matches are ordered by match id)
2. P's initial snapshot
3. The default attribute set (all 50)

By default a lookup failure also falls back to the default set and is
logged. The lookups run inside a savepoint, so on PostgreSQL the failed
statement is rolled back on its own and the surrounding submission
transaction stays usable. With settings.strict_baseline_lookup the error
propagates instead, so a broken snapshot table aborts the submission rather
than silently resetting a player.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from squadgrowth.config import settings
from squadgrowth.growth.stores import MatchCatalog, SnapshotStore
from squadgrowth.growth.types import AttributeSet

logger = logging.getLogger(__name__)


class BaselineResolver:
    """Resolves the pre-match attribute set for a (player, match) pair."""

    def __init__(
        self,
        session: Session,
        snapshots: Optional[SnapshotStore] = None,
        catalog: Optional[MatchCatalog] = None,
        strict: Optional[bool] = None,
    ):
        self.session = session
        self.snapshots = snapshots or SnapshotStore(session)
        self.catalog = catalog or MatchCatalog(session)
        self.strict = settings.strict_baseline_lookup if strict is None else strict

    def resolve_baseline(self, player_id: int, match_id: int) -> AttributeSet:
        """
        Find the attribute set match `match_id` should grow from.

        Args:
            player_id: Player whose chain is being grown
            match_id: Match being (re)computed

        Returns:
            Baseline AttributeSet (never None)

        Raises:
            SQLAlchemyError: Only in strict mode, when a lookup fails
        """
        try:
            with self.session.begin_nested():
                order_key = self.catalog.get_order_key(match_id)
                return self.resolve_for_order_key(player_id, order_key)
        except SQLAlchemyError:
            if self.strict:
                raise
            logger.warning(
                "Baseline lookup failed for player %s match %s, using defaults",
                player_id,
                match_id,
                exc_info=True,
            )
            return AttributeSet.default()

    def resolve_for_order_key(self, player_id: int, order_key: Optional[int]) -> AttributeSet:
        """Baseline for a position in the chain given by order_key."""
        if order_key is not None:
            previous = self.snapshots.get_latest_before(player_id, order_key)
            if previous is not None:
                return AttributeSet.from_row(previous)

        initial = self.snapshots.get_initial(player_id)
        if initial is not None:
            return AttributeSet.from_row(initial)

        logger.debug("No snapshot history for player %s, using defaults", player_id)
        return AttributeSet.default()
