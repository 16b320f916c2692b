"""
LeaderboardCascade
==================

Purpose
-------
Keep quest leaderboards consistent on a store without cross-record
transactions.

Domain
------
- ``append_on_complete``: add a user's completion to one quest's
  leaderboard, at most once per user per quest
- ``remove_user_from_all_leaderboards``: strip a user's entries from every
  quest's leaderboard when the account is deleted

Both paths are scan-then-write: the leaderboard list is read, edited in
memory and written back whole. This is not linearizable; a quest created
or edited between the scan and the write is not covered by that pass.

The removal fan-out is a best-effort saga. Each changed quest is an
independent write, issued concurrently up to
``leaderboard.cascade.max_concurrency``. A failed write becomes a
CascadeFailure in the summary; it never aborts the other writes.

Configuration Keys
------------------
- leaderboard.cascade.max_concurrency : int (default 8)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from museumquest.core.retry_policy import RetryPolicy
from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.leaderboard import LeaderboardEntry
from museumquest.modules.shared.base_service import BaseService
from museumquest.modules.shared.exceptions import CascadeFailure, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


@dataclass
class CascadeSummary:
    """Per-quest outcomes of a removal fan-out."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    failures: List[CascadeFailure] = field(default_factory=list)

    @property
    def failed_quest_ids(self) -> List[str]:
        return [f.quest_id for f in self.failures]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
        }


def _entry_user_id(raw: Any) -> Optional[str]:
    if isinstance(raw, Mapping) and raw.get("userId"):
        return str(raw["userId"])
    return None


class LeaderboardCascade(BaseService):
    """
    Append and fan-out removal of leaderboard entries.

    Public Methods
    --------------
    - append_on_complete() -> Idempotent append of one completion
    - remove_user_from_all_leaderboards() -> Fan-out removal, returns summary
    """

    def __init__(
        self,
        store: RemoteStore,
        config_manager: "ConfigManager",
        logger: "Logger",
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, logger)
        self._store = store
        self._retry_policy = retry_policy or RetryPolicy()

    # ========================================================================
    # APPEND
    # ========================================================================

    async def append_on_complete(
        self,
        quest_id: str,
        user_id: str,
        time_taken: Optional[float],
        completed_at: Optional[datetime] = None,
        prize: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append a completion entry unless ``user_id`` already has one.

        Returns:
            True if an entry was written, False if one already existed.

        Raises:
            NotFoundError: The quest record does not exist
        """
        quest_id = self.validate_non_empty(quest_id, "quest_id")
        user_id = self.validate_non_empty(user_id, "user_id")

        record = await self._store.get_quest(quest_id)
        if record is None:
            raise NotFoundError("Quest", quest_id)

        current = list(record.get("leaderboard") or [])
        if any(_entry_user_id(raw) == user_id for raw in current):
            self.log.debug(
                "Leaderboard entry already present",
                extra={"quest_id": quest_id, "user_id": user_id},
            )
            return False

        entry = LeaderboardEntry(
            user_id=user_id,
            time_taken=time_taken,
            completed_at=completed_at,
            prize=prize,
        )
        await self._store.set_leaderboard(quest_id, current + [entry.to_record()])

        self.log_operation(
            "append_on_complete",
            quest_id=quest_id,
            user_id=user_id,
            time_taken=time_taken,
        )
        return True

    # ========================================================================
    # REMOVAL FAN-OUT
    # ========================================================================

    async def remove_user_from_all_leaderboards(self, user_id: str) -> CascadeSummary:
        """
        Remove ``user_id`` from every quest leaderboard.

        Only quests whose leaderboard actually changes are written.

        Raises:
            RemoteStoreError: The quest scan itself failed (nothing written)
        """
        user_id = self.validate_non_empty(user_id, "user_id")
        quests = await self._store.scan_quests()

        changed: List[Tuple[str, List[Any]]] = []
        for record in quests:
            current = list(record.get("leaderboard") or [])
            kept = [raw for raw in current if _entry_user_id(raw) != user_id]
            if len(kept) != len(current):
                changed.append((str(record.get("quest_id")), kept))

        summary = CascadeSummary(total=len(changed))
        if not changed:
            self.log_operation("remove_user_from_all_leaderboards", user_id=user_id, total=0)
            return summary

        max_concurrency = self.get_config_int("leaderboard.cascade.max_concurrency", 8)
        semaphore = asyncio.Semaphore(max_concurrency)

        async def update(quest_id: str, entries: List[Any]) -> Optional[CascadeFailure]:
            async with semaphore:
                try:
                    await self._retry_policy.execute(
                        lambda: self._store.set_leaderboard(quest_id, entries),
                        "leaderboard.cascade.set",
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    return CascadeFailure(quest_id, user_id, exc)
            return None

        results = await asyncio.gather(*(update(q, e) for q, e in changed))

        for failure in results:
            if failure is None:
                summary.successful += 1
            else:
                summary.failed += 1
                summary.failures.append(failure)
                self.log.warning(
                    "Leaderboard cascade update failed",
                    extra={"cascade_failure": failure.to_dict()},
                )

        log = self.log.warning if summary.failed else self.log.info
        log(
            "Leaderboard cascade finished",
            extra={
                "user_id": user_id,
                "total": summary.total,
                "successful": summary.successful,
                "failed": summary.failed,
            },
        )
        return summary
