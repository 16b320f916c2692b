"""
MuseumQuest: quest progress and leaderboard consistency engine.

Tracks a visitor's progress through an accepted museum quest, decides
when scanned artefacts advance or complete it, reveals hints, reconciles
optimistic local state with a Redis-backed store and keeps quest
leaderboards consistent across account deletion.
"""

__version__ = "0.4.0"
