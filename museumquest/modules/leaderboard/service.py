"""
Leaderboard Service
===================

Purpose
-------
Read-side views over a quest's leaderboard for visitors and operators.

Domain
------
- Fastest completions (ascending time taken, invalid times last)
- First finishers (ascending completion time)
- A single user's standing on a quest
- CSV export for operators
- Operator reset of a quest's leaderboard
- Human-readable time formatting

Entries are enriched with the user's email where the user record still
exists.

Configuration Keys
------------------
- leaderboard.display.top_n : int (default 10)
"""

from __future__ import annotations

import asyncio
import csv
import io
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.base import to_iso
from museumquest.domain.models.leaderboard import LeaderboardEntry, parse_entries, sort_entries
from museumquest.modules.shared.base_service import BaseService
from museumquest.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


CSV_HEADERS = ["Rank", "User ID", "Completed At", "Time Taken (s)", "Time Taken (formatted)"]


class LeaderboardService(BaseService):
    """
    Leaderboard queries and operator actions.

    Public Methods
    --------------
    - fastest() -> Top entries by time taken
    - first_finishers() -> Top entries by completion time
    - user_standing() -> One user's rank on a quest
    - export_csv() -> Full leaderboard as CSV text
    - reset() -> Clear a quest's leaderboard
    - format_time_taken() -> "1h 2m 3s" style formatting
    """

    def __init__(
        self,
        store: RemoteStore,
        config_manager: "ConfigManager",
        logger: "Logger",
    ) -> None:
        super().__init__(config_manager, logger)
        self._store = store

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def fastest(self, quest_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Top ``limit`` entries by ascending time taken.

        Raises:
            NotFoundError: Unknown quest
            ValidationError: ``limit`` is not a positive integer
        """
        limit = self._resolve_limit(limit)
        entries = sort_entries(await self._entries(quest_id))
        return await self._rows(entries[:limit])

    async def first_finishers(self, quest_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Top ``limit`` entries by ascending completion time; undated entries last."""
        limit = self._resolve_limit(limit)
        entries = sorted(
            await self._entries(quest_id),
            key=lambda e: (e.completed_at is None, e.completed_at or datetime.min),
        )
        return await self._rows(entries[:limit])

    async def user_standing(self, quest_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        ``user_id``'s rank by time taken, or None if they have no entry.

        Returns:
            Dict with rank, total_completions, time_taken, time_taken_formatted
        """
        user_id = self.validate_non_empty(user_id, "user_id")
        entries = sort_entries(await self._entries(quest_id))

        for rank, entry in enumerate(entries, start=1):
            if entry.user_id == user_id:
                return {
                    "rank": rank,
                    "total_completions": len(entries),
                    "time_taken": entry.time_taken,
                    "time_taken_formatted": self.format_time_taken(entry.time_taken),
                    "completed_at": to_iso(entry.completed_at),
                }
        return None

    async def export_csv(self, quest_id: str) -> str:
        """Whole leaderboard, ranked by time taken, as CSV text."""
        entries = sort_entries(await self._entries(quest_id))

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for rank, entry in enumerate(entries, start=1):
            writer.writerow(
                [
                    rank,
                    entry.user_id,
                    to_iso(entry.completed_at) or "",
                    "" if entry.time_taken is None else f"{entry.time_taken:.0f}",
                    self.format_time_taken(entry.time_taken),
                ]
            )

        self.log_operation("export_csv", quest_id=quest_id, rows=len(entries))
        return buffer.getvalue()

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def reset(self, quest_id: str) -> int:
        """
        Clear the leaderboard of ``quest_id``.

        Returns:
            Number of entries removed
        """
        entries = await self._entries(quest_id)
        await self._store.set_leaderboard(quest_id, [])
        self.log.warning(
            "Leaderboard reset",
            extra={"quest_id": quest_id, "removed": len(entries)},
        )
        return len(entries)

    # ========================================================================
    # FORMATTING
    # ========================================================================

    @staticmethod
    def format_time_taken(seconds: Optional[float]) -> str:
        """
        Format seconds as ``1h 2m 3s``, ``2m 3s`` or ``3s``.

        Example:
            >>> LeaderboardService.format_time_taken(3723)
            '1h 2m 3s'
        """
        if seconds is None:
            return "N/A"

        total = int(round(seconds))
        hours, remainder = divmod(total, 3600)
        minutes, secs = divmod(remainder, 60)

        if hours:
            return f"{hours}h {minutes}m {secs}s"
        if minutes:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.get_config_int("leaderboard.display.top_n", 10)
        self.validate_positive_int(limit, "limit")
        return limit

    async def _entries(self, quest_id: str) -> List[LeaderboardEntry]:
        quest_id = self.validate_non_empty(quest_id, "quest_id")
        record = await self._store.get_quest(quest_id)
        if record is None:
            raise NotFoundError("Quest", quest_id)
        return parse_entries(record.get("leaderboard"))

    async def _rows(self, entries: List[LeaderboardEntry]) -> List[Dict[str, Any]]:
        users = await asyncio.gather(*(self._store.get_user(e.user_id) for e in entries))

        rows = []
        for rank, (entry, user) in enumerate(zip(entries, users), start=1):
            rows.append(
                {
                    "rank": rank,
                    "user_id": entry.user_id,
                    "email": user.get("email") if user else None,
                    "time_taken": entry.time_taken,
                    "time_taken_formatted": self.format_time_taken(entry.time_taken),
                    "completed_at": to_iso(entry.completed_at),
                    "prize": entry.prize,
                }
            )
        return rows
