"""
Leaderboard Module
==================

Domain: per-quest completion leaderboards

Services:
- LeaderboardCascade: Idempotent append and account-deletion fan-out
- LeaderboardService: Ranked views, export and reset
"""

from .cascade import CascadeSummary, LeaderboardCascade
from .service import LeaderboardService

__all__ = [
    "CascadeSummary",
    "LeaderboardCascade",
    "LeaderboardService",
]
