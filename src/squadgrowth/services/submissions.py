"""
Stat submission service: the entry point of the growth pipeline.

submit_match_stats() runs the whole flow for one (player, match) pair:

1. Validate the submission (InvalidSubmissionError, nothing touched)
2. Lock the player row (SELECT ... FOR UPDATE) so submissions for the same
   player serialize; different players never contend
3. Upsert the review, recalculate the snapshot chain, set current attributes
4. Commit as one transaction. Any database error rolls everything back and
   surfaces as PersistenceError.
5. Best-effort enrichment (AI grade and suggestions) in a second
   transaction. Failures are logged and never undo step 4.

The read helpers below back the HTTP layer.

Usage:
    from squadgrowth.db import get_session
    from squadgrowth.services.submissions import submit_match_stats

    with get_session() as session:
        result = submit_match_stats(session, player_id=3, match_id=12, stat_line={"goals": 2})
        print(result.growth.final_attributes)
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from squadgrowth.db.models import Match, MatchReview, Player
from squadgrowth.errors import InvalidSubmissionError, NotFoundError, PersistenceError
from squadgrowth.growth.recalculator import ChainRecalculator, GrowthResult
from squadgrowth.growth.stores import MatchReviewStore, PositionLookup, SnapshotStore
from squadgrowth.growth.types import ATTRIBUTE_NAMES, MatchStatLine
from squadgrowth.schemas import StatSubmission
from squadgrowth.services.feedback import (
    AIGrade,
    FeedbackSuggester,
    generate_ai_grade,
    should_regenerate_suggestions,
)

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Growth outcome plus whatever enrichment succeeded."""
    review_id: int
    growth: GrowthResult
    ai_grade: Optional[AIGrade] = None
    ai_suggestions: Optional[str] = None

    def to_dict(self) -> dict:
        data = self.growth.to_dict()
        data["review_id"] = self.review_id
        data["ai_rating"] = self.ai_grade.numeric if self.ai_grade else None
        data["ai_letter"] = self.ai_grade.letter if self.ai_grade else None
        data["ai_suggestions"] = self.ai_suggestions
        return data


def _validate(player_id: Any, match_id: Any, stat_line: Any) -> tuple[int, int, MatchStatLine]:
    if isinstance(stat_line, MatchStatLine):
        payload = {**stat_line.counting_stats(), "feedback": stat_line.feedback, "reflection": stat_line.reflection}
    elif isinstance(stat_line, Mapping):
        payload = dict(stat_line)
    elif stat_line is None:
        payload = {}
    else:
        raise InvalidSubmissionError("Stat line must be a mapping")

    # Explicit nulls mean "not provided"
    payload = {key: value for key, value in payload.items() if value is not None}
    payload["player_id"] = player_id
    payload["match_id"] = match_id

    try:
        submission = StatSubmission.model_validate(payload)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        raise InvalidSubmissionError("Invalid stat submission", field_errors=errors) from e
    return submission.player_id, submission.match_id, submission.to_stat_line()


def submit_match_stats(
    session: Session,
    player_id: Any,
    match_id: Any,
    stat_line: Any,
    suggester: Optional[FeedbackSuggester] = None,
) -> SubmissionResult:
    """
    Record a player's stats for a match and update their growth chain.

    Args:
        session: Database session (this function commits or rolls it back)
        player_id: Player the stats belong to
        match_id: Match the stats were recorded in
        stat_line: Mapping of stat fields (or a MatchStatLine); missing
                   counts default to 0 and coach_rating to 50
        suggester: Optional AI suggestion generator; suggestions are skipped
                   when None

    Returns:
        SubmissionResult with the growth result and any enrichment

    Raises:
        InvalidSubmissionError: Identifiers or stats failed validation
        NotFoundError: Player or match does not exist
        PersistenceError: The recalculation could not be committed
    """
    player_id, match_id, stats = _validate(player_id, match_id, stat_line)

    reviews = MatchReviewStore(session)
    try:
        player = (
            session.query(Player)
            .filter(Player.id == player_id)
            .with_for_update()
            .first()
        )
        if player is None:
            raise NotFoundError("Player", player_id)
        if session.get(Match, match_id) is None:
            raise NotFoundError("Match", match_id)

        existing = reviews.get_by_player_match(player_id, match_id)
        previous_feedback = existing.feedback if existing else None
        previous_suggestions = existing.ai_suggestions if existing else None

        review = reviews.upsert(player_id, match_id, stats)
        growth = ChainRecalculator(session).recalculate(player_id, match_id, stats)
        session.commit()
    except NotFoundError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "Growth recalculation rolled back for player %s match %s",
            player_id,
            match_id,
            exc_info=True,
        )
        raise PersistenceError(
            f"Could not record stats for player {player_id} match {match_id}"
        ) from e

    logger.info(
        "Stats recorded for player %s match %s (review %s), overall now %s",
        player_id,
        match_id,
        review.id,
        growth.final_attributes.overall_rating,
    )

    result = SubmissionResult(review_id=review.id, growth=growth)
    _enrich_review(session, result, stats, previous_feedback, previous_suggestions, suggester)
    return result


def _enrich_review(
    session: Session,
    result: SubmissionResult,
    stats: MatchStatLine,
    previous_feedback: Optional[str],
    previous_suggestions: Optional[str],
    suggester: Optional[FeedbackSuggester],
) -> None:
    """Store AI grade and suggestions on the review. Never raises."""
    try:
        review = session.get(MatchReview, result.review_id)
        player = session.get(Player, result.growth.player_id)
        position = PositionLookup(session).get_position(result.growth.player_id)

        grade = generate_ai_grade(stats, position)
        review.ai_rating = grade.numeric
        review.ai_reasoning = grade.explanation
        result.ai_grade = grade

        feedback = review.feedback
        if suggester is not None and should_regenerate_suggestions(
            feedback, previous_suggestions, previous_feedback
        ):
            suggestions = suggester.generate_suggestions(feedback, stats, player.name, position)
            if suggestions is not None:
                review.ai_suggestions = suggestions
        result.ai_suggestions = review.ai_suggestions

        session.commit()
    except Exception:
        session.rollback()
        result.ai_grade = None
        result.ai_suggestions = None
        logger.error("Enrichment failed for review %s, growth kept", result.review_id, exc_info=True)


# =============================================================================
# Reads
# =============================================================================

def review_to_dict(review: MatchReview) -> dict:
    return {
        "id": review.id,
        "player_id": review.player_id,
        "match_id": review.match_id,
        **MatchStatLine.from_mapping(review).counting_stats(),
        "feedback": review.feedback,
        "reflection": review.reflection,
        "ai_rating": review.ai_rating,
        "ai_reasoning": review.ai_reasoning,
        "ai_suggestions": review.ai_suggestions,
        "updated_at": review.updated_at.isoformat() if review.updated_at else None,
    }


def _require_player(session: Session, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player", player_id)
    return player


def get_growth_history(session: Session, player_id: int) -> dict:
    """
    Player's snapshot chain, initial snapshot first, then by match order.

    current_attributes is derived from the chain, not read from the
    player's denormalized columns.
    """
    _require_player(session, player_id)
    snapshots = SnapshotStore(session)

    history = []
    for snapshot, match in snapshots.list_history(player_id):
        entry = {
            "snapshot_id": snapshot.id,
            "match_id": snapshot.match_id,
            "is_initial": snapshot.match_id is None,
            "match_date": match.match_date.isoformat() if match and match.match_date else None,
            "opponent": match.opponent if match else None,
            "temporal_order": match.temporal_order if match else None,
        }
        entry.update({name: getattr(snapshot, name) for name in ATTRIBUTE_NAMES})
        history.append(entry)

    return {
        "player_id": player_id,
        "current_attributes": snapshots.get_current(player_id).to_dict(),
        "growth_history": history,
        "total_matches": sum(1 for entry in history if not entry["is_initial"]),
    }


def get_player_match_stats(session: Session, player_id: int, match_id: int) -> dict:
    review = MatchReviewStore(session).get_by_player_match(player_id, match_id)
    if review is None:
        raise NotFoundError("Review", f"{player_id}/{match_id}")
    return review_to_dict(review)


def get_match_reviews(session: Session, match_id: int) -> list[dict]:
    """All reviews of a match, with player names."""
    if session.get(Match, match_id) is None:
        raise NotFoundError("Match", match_id)
    return [
        {**review_to_dict(review), "player_name": name}
        for review, name in MatchReviewStore(session).list_by_match(match_id)
    ]


def get_player_summary(session: Session, player_id: int) -> dict:
    """Summed stats over every review plus the AI grade summary."""
    _require_player(session, player_id)
    reviews = MatchReviewStore(session)
    return {
        "player_id": player_id,
        "stats": reviews.summary_for_player(player_id),
        "ai_grades": reviews.ai_grade_summary_for_player(player_id),
    }


# =============================================================================
# Match edits that reorder chains
# =============================================================================

def _lock_players(session: Session, player_ids: list[int]) -> list[int]:
    """
    Lock the player rows in ascending id order before any review or
    snapshot row of theirs is touched.

    Submissions lock a single player row first as well, so a match edit
    and a submission on a shared player queue on that row instead of on
    each other's snapshot writes.
    """
    locked = sorted(set(player_ids))
    for player_id in locked:
        session.query(Player).filter(Player.id == player_id).with_for_update().first()
    return locked


def _rechain(session: Session, player_ids: list[int]) -> None:
    recalculator = ChainRecalculator(session)
    for player_id in player_ids:
        recalculator.rebuild_player_chain(player_id)


def delete_match(session: Session, match_id: int) -> list[int]:
    """
    Delete a match with its reviews and snapshots, then re-chain every
    player who had a review or snapshot on it.

    Returns:
        Ids of the re-chained players
    """
    match = session.get(Match, match_id)
    if match is None:
        raise NotFoundError("Match", match_id)

    try:
        snapshots = SnapshotStore(session)
        player_ids = _lock_players(
            session,
            MatchReviewStore(session).player_ids_for_match(match_id)
            + snapshots.player_ids_for_match(match_id),
        )
        snapshots.delete_for_match(match_id)
        session.query(MatchReview).filter(MatchReview.match_id == match_id).delete(
            synchronize_session=False
        )
        session.delete(match)
        session.flush()

        _rechain(session, player_ids)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Deleting match %s rolled back", match_id, exc_info=True)
        raise PersistenceError(f"Could not delete match {match_id}") from e

    logger.info("Deleted match %s, re-chained %s players", match_id, len(player_ids))
    return player_ids


def update_match_date(session: Session, match_id: int, match_date: Optional[date]) -> list[int]:
    """
    Change a match's date, re-assign its temporal_order and re-chain every
    player with a review on it.

    Returns:
        Ids of the re-chained players
    """
    match = session.get(Match, match_id)
    if match is None:
        raise NotFoundError("Match", match_id)

    try:
        player_ids = _lock_players(session, MatchReviewStore(session).player_ids_for_match(match_id))
        match.match_date = match_date
        match.update_temporal_order()
        session.flush()

        _rechain(session, player_ids)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Re-dating match %s rolled back", match_id, exc_info=True)
        raise PersistenceError(f"Could not update match {match_id}") from e

    logger.info("Match %s moved to %s, re-chained %s players", match_id, match_date, len(player_ids))
    return player_ids
