"""
Player attribute growth module.

Implements match-driven rating growth with:
- Weighted per-facet deltas and inactivity penalties
- Asymmetric diminishing returns near the rating bounds
- Goalkeeper-only distribution and diving growth
- Chronological snapshot chains re-derived after every edit
"""

from squadgrowth.growth.baseline import BaselineResolver
from squadgrowth.growth.calculator import GrowthCalculator, apply_growth, compute_growth, compute_overall
from squadgrowth.growth.recalculator import ChainRecalculator, GrowthResult, RecalcState
from squadgrowth.growth.types import AttributeSet, MatchStatLine

__all__ = [
    "AttributeSet",
    "MatchStatLine",
    "GrowthCalculator",
    "apply_growth",
    "compute_growth",
    "compute_overall",
    "BaselineResolver",
    "ChainRecalculator",
    "GrowthResult",
    "RecalcState",
]
