"""
Squadgrowth services - the stat submission pipeline and its collaborators.

Usage:
    from squadgrowth.services import submit_match_stats, get_growth_history
"""

from squadgrowth.services.submissions import (
    SubmissionResult,
    delete_match,
    get_growth_history,
    get_match_reviews,
    get_player_match_stats,
    get_player_summary,
    submit_match_stats,
    update_match_date,
)

__all__ = [
    "SubmissionResult",
    "submit_match_stats",
    "get_growth_history",
    "get_player_match_stats",
    "get_match_reviews",
    "get_player_summary",
    "delete_match",
    "update_match_date",
]
