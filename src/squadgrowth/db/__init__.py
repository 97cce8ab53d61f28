"""
Database module for Squadgrowth.

Provides SQLAlchemy ORM models and session management.

Usage:
    from squadgrowth.db import get_session, Player, Match

    with get_session() as session:
        players = session.query(Player).all()
"""

from squadgrowth.db.models import (
    Base,
    Match,
    MatchReview,
    Player,
    PlayerSnapshot,
    Team,
    compute_temporal_order,
)
from squadgrowth.db.session import SessionLocal, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Team",
    "Player",
    "Match",
    "MatchReview",
    "PlayerSnapshot",
    "compute_temporal_order",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
