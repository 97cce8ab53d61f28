"""
Squadgrowth - Player attribute growth engine for team management.

Coaches record per-match stats for their players; every submission grows
the player's skill ratings and keeps a chronological snapshot per match.

Main components:
- growth: Growth calculator, baseline resolution, snapshot chain recalculation
- services: Stat submission pipeline, AI feedback enrichment, roster hooks
- db: SQLAlchemy models and session management
- web: FastAPI JSON API
"""

__version__ = "1.0.0"
