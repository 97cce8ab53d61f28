"""
Value types passed between the growth components.

AttributeSet is immutable: every growth step returns a new one, so a set
read from a snapshot can be carried through a replay without aliasing the
ORM row it came from.
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping, Optional

from squadgrowth.growth.constants import (
    DEFAULT_COACH_RATING,
    DEFAULT_RATING,
    GOALKEEPER_POSITIONS,
)

# Attributes grown by every player
OUTFIELD_ATTRIBUTES = (
    "shooting",
    "passing",
    "dribbling",
    "defense",
    "physical",
    "coach_grade",
    "overall_rating",
)

# Attributes grown only while the player is listed as a goalkeeper
GOALKEEPER_ATTRIBUTES = ("diving", "handling", "kicking")

ATTRIBUTE_NAMES = OUTFIELD_ATTRIBUTES + GOALKEEPER_ATTRIBUTES


def is_goalkeeper(position: Optional[str]) -> bool:
    """True if the position string denotes a goalkeeper."""
    if not position:
        return False
    return position.strip().upper() in GOALKEEPER_POSITIONS


@dataclass(frozen=True)
class AttributeSet:
    """
    A player's full set of ratings at one point in time.

    Goalkeeper ratings are carried by every set: a player's position can
    change between matches, and those ratings simply pass through growth
    while the player is not in goal.
    """
    shooting: int = DEFAULT_RATING
    passing: int = DEFAULT_RATING
    dribbling: int = DEFAULT_RATING
    defense: int = DEFAULT_RATING
    physical: int = DEFAULT_RATING
    coach_grade: int = DEFAULT_RATING
    overall_rating: int = DEFAULT_RATING
    diving: int = DEFAULT_RATING
    handling: int = DEFAULT_RATING
    kicking: int = DEFAULT_RATING

    @classmethod
    def default(cls) -> "AttributeSet":
        return cls()

    @classmethod
    def from_row(cls, row: Any) -> "AttributeSet":
        """
        Build from any object exposing the rating attributes (a Player or
        PlayerSnapshot row). Missing or NULL columns read as the default.
        """
        values = {}
        for name in ATTRIBUTE_NAMES:
            value = getattr(row, name, None)
            values[name] = DEFAULT_RATING if value is None else int(value)
        return cls(**values)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    def with_values(self, **changes: int) -> "AttributeSet":
        return replace(self, **changes)

    def diff(self, before: "AttributeSet") -> dict[str, int]:
        """Per-attribute change from `before` to this set."""
        return {name: getattr(self, name) - getattr(before, name) for name in ATTRIBUTE_NAMES}


@dataclass(frozen=True)
class MatchStatLine:
    """
    One player's stats for one match, as fed to the growth calculator.

    Feedback and reflection text ride along for the review record but
    do not influence growth.
    """
    goals: int = 0
    assists: int = 0
    saves: int = 0
    tackles: int = 0
    interceptions: int = 0
    chances_created: int = 0
    minutes_played: int = 0
    successful_goalie_kicks: int = 0
    failed_goalie_kicks: int = 0
    successful_goalie_throws: int = 0
    failed_goalie_throws: int = 0
    coach_rating: int = DEFAULT_COACH_RATING
    feedback: Optional[str] = None
    reflection: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "MatchStatLine":
        """
        Build from a dict or a MatchReview row. Unknown keys are ignored and
        missing or NULL numbers take their defaults.
        """
        values = {}
        for f in fields(cls):
            if isinstance(data, Mapping):
                value = data.get(f.name)
            else:
                value = getattr(data, f.name, None)
            if value is None:
                continue
            values[f.name] = value if f.name in ("feedback", "reflection") else int(value)
        return cls(**values)

    @property
    def kicks_attempted(self) -> int:
        return self.successful_goalie_kicks + self.failed_goalie_kicks

    @property
    def throws_attempted(self) -> int:
        return self.successful_goalie_throws + self.failed_goalie_throws

    def counting_stats(self) -> dict[str, int]:
        """Numeric fields only, in the shape stored on a review row."""
        data = asdict(self)
        data.pop("feedback")
        data.pop("reflection")
        return data
