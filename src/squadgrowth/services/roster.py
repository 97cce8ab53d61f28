"""
Roster bookkeeping the growth engine depends on.

Only the pieces with growth semantics live here: a player's initial
snapshot is created the first time they are attached to a team, and a
match gets its temporal_order as soon as it has an id.

All functions flush but never commit; the caller owns the transaction.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from squadgrowth.db.models import Match, Player, Team
from squadgrowth.errors import NotFoundError
from squadgrowth.growth.stores import SnapshotStore

logger = logging.getLogger(__name__)


def create_team(session: Session, name: str) -> Team:
    team = Team(name=name)
    session.add(team)
    session.flush()
    return team


def create_player(
    session: Session,
    name: str,
    position: Optional[str] = None,
    team_id: Optional[int] = None,
) -> Player:
    """Create a player; attaching to a team also creates the initial snapshot."""
    player = Player(name=name, position=(position or "TBD").upper())
    session.add(player)
    session.flush()
    if team_id is not None:
        attach_player_to_team(session, player.id, team_id)
    return player


def attach_player_to_team(session: Session, player_id: int, team_id: int) -> tuple[Player, bool]:
    """
    Put a player on a team.

    The initial snapshot (default attributes, no match) is created the first
    time only; re-attaching or moving teams never recreates it.

    Returns:
        (player, initial_snapshot_created)

    Raises:
        NotFoundError: Player or team does not exist
    """
    player = session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player", player_id)
    if session.get(Team, team_id) is None:
        raise NotFoundError("Team", team_id)

    player.team_id = team_id
    _, created = SnapshotStore(session).ensure_initial(player_id)
    session.flush()

    logger.info("Attached player %s to team %s (initial snapshot created=%s)", player_id, team_id, created)
    return player, created


def create_match(
    session: Session,
    team_id: Optional[int],
    match_date: Optional[date],
    opponent: Optional[str] = None,
    team_score: Optional[int] = None,
    opponent_score: Optional[int] = None,
) -> Match:
    """Create a match and assign its temporal_order."""
    match = Match(
        team_id=team_id,
        match_date=match_date,
        opponent=opponent,
        team_score=team_score,
        opponent_score=opponent_score,
    )
    session.add(match)
    session.flush()
    match.update_temporal_order()
    session.flush()
    return match
