"""
Attribute growth calculator.

Turns one match's stat line into an updated attribute set:

  1. Raw deltas per facet from weighted stat combinations, with a flat
     inactivity penalty when a facet saw no action in significant minutes
  2. Physical delta from minutes played
  3. Asymmetric diminishing returns:
       delta >= 0: new = current + delta * max(0.1, (100 - current) / 100)
       delta <  0: new = current + delta * max(0.5, current / 100)
     rounded half-up and clamped to [10, 100]
  4. Coach grade pulled toward the coach's rating
  5. Overall rating recomputed as a fixed weighted sum
  6. Goalkeepers additionally grow diving, kicking and handling

The calculator is pure: no I/O, no exceptions for any non-negative input.

Usage:
    calculator = GrowthCalculator()
    after = calculator.compute_growth(AttributeSet(), MatchStatLine(goals=2, minutes_played=90))
    print(after.shooting)  # 51
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from squadgrowth.growth import constants as c
from squadgrowth.growth.types import AttributeSet, MatchStatLine, is_goalkeeper


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest integer, .5 away from zero (Python's round() is banker's)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_rating(value: int) -> int:
    return max(c.MIN_RATING, min(c.MAX_RATING, value))


def apply_growth(current: int, delta: float) -> int:
    """
    Apply a raw delta to a rating with diminishing returns.

    Ratings close to 100 grow slower and ratings close to 10 shrink slower.
    The result is always an integer within [10, 100].

    Args:
        current: Rating before the match
        delta: Raw growth delta (may be negative)

    Returns:
        New rating
    """
    if delta >= 0:
        factor = max(c.GROWTH_FACTOR_FLOOR, (100 - current) / 100)
    else:
        factor = max(c.DECLINE_FACTOR_FLOOR, current / 100)
    return clamp_rating(round_half_up(current + delta * factor))


def compute_overall(
    shooting: int,
    passing: int,
    dribbling: int,
    defense: int,
    physical: int,
    coach_grade: int,
) -> int:
    """Fixed weighted combination of the six inputs, rounded half-up."""
    values = {
        "shooting": shooting,
        "passing": passing,
        "dribbling": dribbling,
        "defense": defense,
        "physical": physical,
        "coach_grade": coach_grade,
    }
    total = sum(c.OVERALL_WEIGHTS[name] * Decimal(value) for name, value in values.items())
    return clamp_rating(round_half_up(total))


class GrowthCalculator:
    """
    Computes post-match attributes from pre-match attributes and a stat line.

    Weights come from growth.constants; a different weight table can be
    passed for experiments without touching the module constants.

    Usage:
        calculator = GrowthCalculator()
        new_set = calculator.compute_growth(current, stats, position="GK")
    """

    def __init__(self, weights: Optional[dict[str, dict[str, float]]] = None):
        self.weights = weights or {
            "shooting": c.SHOOTING_WEIGHTS,
            "passing": c.PASSING_WEIGHTS,
            "dribbling": c.DRIBBLING_WEIGHTS,
            "defense": c.DEFENSE_WEIGHTS,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def compute_growth(
        self,
        current: AttributeSet,
        stats: MatchStatLine,
        position: Optional[str] = None,
    ) -> AttributeSet:
        """
        Grow `current` by one match.

        Args:
            current: Attribute set before the match
            stats: The match's stat line
            position: Player position; goalkeeper positions also grow
                      diving, kicking and handling

        Returns:
            New AttributeSet. overall_rating is always recomputed, never grown.
        """
        deltas = self.compute_deltas(stats)

        shooting = apply_growth(current.shooting, deltas["shooting"])
        passing = apply_growth(current.passing, deltas["passing"])
        dribbling = apply_growth(current.dribbling, deltas["dribbling"])
        defense = apply_growth(current.defense, deltas["defense"])
        physical = apply_growth(current.physical, deltas["physical"])
        coach_grade = self._grow_coach_grade(current.coach_grade, stats.coach_rating)

        diving, handling, kicking = current.diving, current.handling, current.kicking
        if is_goalkeeper(position):
            gk = self.compute_goalkeeper_deltas(stats)
            diving = apply_growth(current.diving, gk["diving"])
            handling = apply_growth(current.handling, gk["handling"])
            kicking = apply_growth(current.kicking, gk["kicking"])

        return AttributeSet(
            shooting=shooting,
            passing=passing,
            dribbling=dribbling,
            defense=defense,
            physical=physical,
            coach_grade=coach_grade,
            overall_rating=compute_overall(
                shooting, passing, dribbling, defense, physical, coach_grade
            ),
            diving=diving,
            handling=handling,
            kicking=kicking,
        )

    def compute_deltas(self, stats: MatchStatLine) -> dict[str, float]:
        """Raw (pre-transform) deltas for the five outfield facets."""
        deltas = {
            facet: self._facet_delta(facet, stats) for facet in self.weights
        }
        deltas["physical"] = self._physical_delta(stats.minutes_played)
        return deltas

    def compute_goalkeeper_deltas(self, stats: MatchStatLine) -> dict[str, float]:
        """Raw deltas for diving, handling and kicking."""
        diving = stats.saves * c.DIVING_SAVE_WEIGHT
        if stats.saves == 0 and stats.minutes_played > c.GOALKEEPER_ACTIVE_MINUTES:
            diving += c.INACTIVITY_PENALTY

        return {
            "diving": diving,
            "kicking": self._distribution_delta(
                stats.successful_goalie_kicks,
                stats.kicks_attempted,
                c.KICK_SUCCESS_EXPECTATION,
                stats.minutes_played,
            ),
            "handling": self._distribution_delta(
                stats.successful_goalie_throws,
                stats.throws_attempted,
                c.THROW_SUCCESS_EXPECTATION,
                stats.minutes_played,
            ),
        }

    # =========================================================================
    # Delta helpers
    # =========================================================================

    def _facet_delta(self, facet: str, stats: MatchStatLine) -> float:
        weights = self.weights[facet]
        counts = {stat: getattr(stats, stat) for stat in weights}
        delta = sum(counts[stat] * weight for stat, weight in weights.items())

        if not any(counts.values()) and stats.minutes_played > c.INACTIVITY_MINUTES[facet]:
            delta += c.INACTIVITY_PENALTY
        return delta

    @staticmethod
    def _physical_delta(minutes_played: int) -> float:
        delta = (minutes_played / c.FULL_GAME_MINUTES) * c.PHYSICAL_FULL_GAME_GAIN
        if minutes_played < c.PHYSICAL_LOW_MINUTES:
            delta += c.PHYSICAL_LOW_MINUTES_PENALTY
        return delta

    @staticmethod
    def _distribution_delta(
        successful: int,
        attempted: int,
        expectation: float,
        minutes_played: int,
    ) -> float:
        # Rates only exist when something was attempted
        if attempted > 0:
            rate = successful / attempted
            volume = min(attempted, c.DISTRIBUTION_VOLUME_CAP) * c.DISTRIBUTION_VOLUME_BONUS
            return (rate - expectation) * c.DISTRIBUTION_RATE_WEIGHT + volume
        if minutes_played > c.GOALKEEPER_ACTIVE_MINUTES:
            return c.NO_DISTRIBUTION_PENALTY
        return 0.0

    @staticmethod
    def _grow_coach_grade(coach_grade: int, coach_rating: int) -> int:
        delta = (coach_rating - coach_grade) * c.COACH_PULL_FACTOR
        for threshold, penalty in c.COACH_RATING_PENALTIES:
            if coach_rating < threshold:
                delta += penalty
                break
        return clamp_rating(round_half_up(coach_grade + delta))


_default_calculator = GrowthCalculator()


def compute_growth(
    current: AttributeSet,
    stats: MatchStatLine,
    position: Optional[str] = None,
) -> AttributeSet:
    """Module-level shortcut for GrowthCalculator().compute_growth()."""
    return _default_calculator.compute_growth(current, stats, position)
