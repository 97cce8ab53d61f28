"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from squadgrowth.db.models import Base
from squadgrowth.services import roster


@pytest.fixture
def test_engine():
    """
    Create a fresh in-memory SQLite engine per test.

    The growth services commit and roll back themselves, so tests get
    their own database instead of an outer rolled-back transaction.
    StaticPool keeps every session on the same in-memory connection.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """Database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def team(db_session):
    team = roster.create_team(db_session, "Riverside FC")
    db_session.commit()
    return team


@pytest.fixture
def make_player(db_session, team):
    """Create a player attached to the test team (initial snapshot included)."""

    def _make(name="Sam Carter", position=None):
        player = roster.create_player(db_session, name, position=position, team_id=team.id)
        db_session.commit()
        return player

    return _make


@pytest.fixture
def make_match(db_session, team):
    """Create a match with its temporal_order assigned."""

    def _make(match_date=date(2026, 3, 1), opponent="Harbor United"):
        match = roster.create_match(db_session, team.id, match_date, opponent=opponent)
        db_session.commit()
        return match

    return _make
