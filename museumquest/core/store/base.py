"""
Remote store contract for MuseumQuest.

Purpose
-------
Describe the only operations the engine may perform against durable
storage. The store is a key-value store with point reads and writes per
record and full scans; there are no multi-record transactions and no
"insert if absent" for nested list fields.

Records
-------
- Progress, keyed by ``(user_id, quest_id)``: a flat field mapping (see
  ``museumquest.domain.models.progress``) that supports partial updates.
- Quest, keyed by ``quest_id``: the authored definition plus a
  ``leaderboard`` list that can be written on its own.
- User, keyed by ``userId``: ``email``, ``artefacts_collected`` and
  ``completed_quests``; the two arrays are only ever replaced whole.

Error Contract
--------------
Implementations raise ``RemoteStoreError`` for every storage failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional


class RemoteStore(ABC):
    """Abstract async remote store."""

    # ========================================================================
    # PROGRESS
    # ========================================================================

    @abstractmethod
    async def get_progress(self, user_id: str, quest_id: str) -> Optional[Dict[str, Any]]:
        """Full progress record, or None when none exists."""

    @abstractmethod
    async def patch_progress(
        self,
        user_id: str,
        quest_id: str,
        fields: Mapping[str, Any],
        replace: bool = False,
    ) -> None:
        """
        Write only ``fields`` of the progress record.

        With ``replace=True`` the record is cleared first; this is used only
        when a progress record is created on accept.
        """

    @abstractmethod
    async def delete_progress(self, user_id: str, quest_id: str) -> None:
        """Remove the progress record. No error when it does not exist."""

    # ========================================================================
    # QUESTS
    # ========================================================================

    @abstractmethod
    async def get_quest(self, quest_id: str) -> Optional[Dict[str, Any]]:
        """Quest record including its ``leaderboard`` list."""

    @abstractmethod
    async def scan_quests(self) -> List[Dict[str, Any]]:
        """Every quest record. Not a snapshot: concurrent writes may be missed."""

    @abstractmethod
    async def put_quest(self, record: Mapping[str, Any]) -> None:
        """Create or overwrite a quest record (admin seeding, tests)."""

    @abstractmethod
    async def set_leaderboard(self, quest_id: str, entries: List[Dict[str, Any]]) -> None:
        """Overwrite only the leaderboard of ``quest_id``."""

    # ========================================================================
    # USERS
    # ========================================================================

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Scan users for a case-insensitive email match."""

    @abstractmethod
    async def put_user(self, record: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    async def replace_user_collection(
        self,
        user_id: str,
        artefacts_collected: List[str],
        completed_quests: List[Dict[str, Any]],
    ) -> None:
        """Replace both collection arrays of the user record."""

    @abstractmethod
    async def delete_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Delete the user record; returns the deleted record or None."""

    async def close(self) -> None:
        """Release resources held by the store."""
