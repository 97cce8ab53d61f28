"""
Attribute growth constants.

Every match nudges a player's ratings by a small "delta" derived from the
counting stats of that match. The weights below are the only tuning knobs
of the growth engine:

  delta(facet) = sum(stat * weight) + inactivity penalty

The penalty is a flat negative constant applied when every stat feeding the
facet is zero while the player stayed on the pitch long enough to be
expected to contribute. Deltas are then passed through the asymmetric
diminishing-returns transform in calculator.apply_growth().

Weights are per single stat event. The dominant stat of each facet carries
the highest weight (goals for shooting, assists for passing, chances created
for dribbling, interceptions then tackles then saves for defense).
"""

from decimal import Decimal

# Every rating lives in this range after any growth step
MIN_RATING = 10
MAX_RATING = 100

# Ratings a brand-new player starts with (and the fallback baseline)
DEFAULT_RATING = 50

# Coach rating assumed when a submission omits it
DEFAULT_COACH_RATING = 50

# =============================================================================
# Outfield growth weights
# =============================================================================

SHOOTING_WEIGHTS = {
    "goals": 0.75,
    "chances_created": 0.25,
}

PASSING_WEIGHTS = {
    "assists": 0.5,
    "chances_created": 0.35,
}

DRIBBLING_WEIGHTS = {
    "chances_created": 0.5,
    "assists": 0.25,
}

DEFENSE_WEIGHTS = {
    "interceptions": 0.6,
    "tackles": 0.5,
    "saves": 0.4,
}

# Flat penalty for contributing nothing in a facet despite significant minutes
INACTIVITY_PENALTY = -1.5

# Minutes played above which the inactivity penalty applies
INACTIVITY_MINUTES = {
    "shooting": 45,
    "passing": 45,
    "dribbling": 30,
    "defense": 45,
}

# =============================================================================
# Physical
# =============================================================================

# Full-game credit: (minutes_played / 90) * PHYSICAL_FULL_GAME_GAIN
FULL_GAME_MINUTES = 90
PHYSICAL_FULL_GAME_GAIN = 0.8

# Penalty when the player barely played
PHYSICAL_LOW_MINUTES = 30
PHYSICAL_LOW_MINUTES_PENALTY = -1.5

# =============================================================================
# Diminishing returns
# =============================================================================

# Positive deltas scale by max(GROWTH_FACTOR_FLOOR, (100 - current) / 100)
GROWTH_FACTOR_FLOOR = 0.1

# Negative deltas scale by max(DECLINE_FACTOR_FLOOR, current / 100)
DECLINE_FACTOR_FLOOR = 0.5

# =============================================================================
# Coach grade
# =============================================================================

# Share of the gap between coach_rating and coach_grade closed per match
COACH_PULL_FACTOR = 0.15

# Tiered penalties for poor coach ratings: (threshold, penalty), steepest first
COACH_RATING_PENALTIES = (
    (30, -2.0),
    (40, -1.0),
)

# =============================================================================
# Overall rating
# =============================================================================

# Fixed weights, sum to 1.0. Decimal so the weighted sum rounds exactly.
OVERALL_WEIGHTS = {
    "shooting": Decimal("0.18"),
    "passing": Decimal("0.20"),
    "dribbling": Decimal("0.14"),
    "defense": Decimal("0.22"),
    "physical": Decimal("0.16"),
    "coach_grade": Decimal("0.10"),
}

# =============================================================================
# Goalkeeper growth
# =============================================================================

GOALKEEPER_POSITIONS = frozenset({"GK", "GOALKEEPER", "G"})

# Diving grows from saves
DIVING_SAVE_WEIGHT = 0.6

# Success-rate expectations for distribution
KICK_SUCCESS_EXPECTATION = 0.75
THROW_SUCCESS_EXPECTATION = 0.85

# Deviation from the expectation is multiplied by this
DISTRIBUTION_RATE_WEIGHT = 4.0

# Volume bonus: min(attempts, DISTRIBUTION_VOLUME_CAP) * DISTRIBUTION_VOLUME_BONUS
DISTRIBUTION_VOLUME_CAP = 10
DISTRIBUTION_VOLUME_BONUS = 0.05

# Flat penalty when no distribution was attempted with significant minutes
NO_DISTRIBUTION_PENALTY = -2.0
GOALKEEPER_ACTIVE_MINUTES = 45
