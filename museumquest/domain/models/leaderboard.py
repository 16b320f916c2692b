"""
Leaderboard Domain Model for MuseumQuest.

Purpose
-------
Value objects for the per-quest leaderboard. A leaderboard lives on the
quest record as a list of entries, one per user who completed the quest.

Business Rules
--------------
- At most one entry per user per quest
- Entries rank ascending by ``time_taken``; entries with a missing or
  invalid time rank last, in their stored order
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from museumquest.domain.models.base import parse_timestamp, to_iso


@dataclass(frozen=True)
class LeaderboardEntry:
    """
    One completion on a quest leaderboard.

    Attributes
    ----------
    user_id : str
    time_taken : Optional[float]
        Seconds between accept and completion. ``None`` when the stored
        value was missing or invalid.
    completed_at : Optional[datetime]
    prize : Optional[Dict[str, Any]]
        Prize record copied from the quest at completion time
    """

    user_id: str
    time_taken: Optional[float]
    completed_at: Optional[datetime] = None
    prize: Optional[Dict[str, Any]] = None

    @property
    def has_valid_time(self) -> bool:
        return self.time_taken is not None

    @staticmethod
    def _coerce_time(value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
            return None
        return seconds

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["LeaderboardEntry"]:
        """Parse a stored entry; returns None when it has no user id."""
        user_id = record.get("userId")
        if not user_id:
            return None
        prize = record.get("prize")
        return cls(
            user_id=str(user_id),
            time_taken=cls._coerce_time(record.get("timeTaken")),
            completed_at=parse_timestamp(record.get("completedAt")),
            prize=dict(prize) if isinstance(prize, Mapping) else None,
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"userId": self.user_id, "timeTaken": self.time_taken}
        if self.completed_at is not None:
            record["completedAt"] = to_iso(self.completed_at)
        if self.prize:
            record["prize"] = dict(self.prize)
        return record


def parse_entries(records: Optional[Iterable[Any]]) -> List[LeaderboardEntry]:
    """Parse a stored leaderboard list, skipping malformed entries."""
    entries: List[LeaderboardEntry] = []
    for record in records or []:
        if isinstance(record, Mapping):
            entry = LeaderboardEntry.from_record(record)
            if entry is not None:
                entries.append(entry)
    return entries


def sort_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Ascending by time taken; invalid times last (stable)."""
    return sorted(
        entries,
        key=lambda e: (not e.has_valid_time, e.time_taken if e.time_taken is not None else 0.0),
    )
