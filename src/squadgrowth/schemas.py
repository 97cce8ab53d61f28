"""
Pydantic models for validating stat submissions.

Used by the submission service (so every caller gets the same validation)
and by the HTTP layer as request bodies.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from squadgrowth.growth.types import MatchStatLine


class StatLineInput(BaseModel):
    """One player's stats for one match. Missing counts default to 0."""

    model_config = ConfigDict(extra="ignore")

    goals: NonNegativeInt = 0
    assists: NonNegativeInt = 0
    saves: NonNegativeInt = 0
    tackles: NonNegativeInt = 0
    interceptions: NonNegativeInt = 0
    chances_created: NonNegativeInt = 0
    minutes_played: NonNegativeInt = 0
    successful_goalie_kicks: NonNegativeInt = 0
    failed_goalie_kicks: NonNegativeInt = 0
    successful_goalie_throws: NonNegativeInt = 0
    failed_goalie_throws: NonNegativeInt = 0
    coach_rating: int = Field(default=50, ge=0, le=100)
    feedback: Optional[str] = None
    reflection: Optional[str] = None

    def to_stat_line(self) -> MatchStatLine:
        return MatchStatLine(**self.model_dump())


class StatSubmission(StatLineInput):
    """Stat line plus the (player, match) pair it belongs to."""

    player_id: PositiveInt
    match_id: PositiveInt

    def to_stat_line(self) -> MatchStatLine:
        return MatchStatLine(**self.model_dump(exclude={"player_id", "match_id"}))


class MatchDateUpdate(BaseModel):
    match_date: Optional[date] = None
