"""
In-process implementation of the remote store.

Keeps the same flat-field semantics as the Redis adapter so partial
updates behave identically. Used by unit tests, demos and offline
development. Every read and write deep-copies so callers never share
mutable state with the store.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Tuple

from museumquest.core.logging.logger import get_logger
from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.progress import progress_record_from_fields

logger = get_logger(__name__)


class InMemoryRemoteStore(RemoteStore):
    """Dict-backed RemoteStore."""

    def __init__(self) -> None:
        self._progress: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._quests: Dict[str, Dict[str, Any]] = {}
        self._users: Dict[str, Dict[str, Any]] = {}

    # ========================================================================
    # PROGRESS
    # ========================================================================

    async def get_progress(self, user_id: str, quest_id: str) -> Optional[Dict[str, Any]]:
        fields = self._progress.get((user_id, quest_id))
        if not fields:
            return None
        return progress_record_from_fields(copy.deepcopy(fields))

    async def patch_progress(
        self,
        user_id: str,
        quest_id: str,
        fields: Mapping[str, Any],
        replace: bool = False,
    ) -> None:
        key = (user_id, quest_id)
        if replace or key not in self._progress:
            self._progress[key] = {}
        self._progress[key].update(copy.deepcopy(dict(fields)))

    async def delete_progress(self, user_id: str, quest_id: str) -> None:
        self._progress.pop((user_id, quest_id), None)

    def progress_fields(self, user_id: str, quest_id: str) -> Optional[Dict[str, Any]]:
        """Raw stored fields, for assertions."""
        fields = self._progress.get((user_id, quest_id))
        return copy.deepcopy(fields) if fields is not None else None

    # ========================================================================
    # QUESTS
    # ========================================================================

    async def get_quest(self, quest_id: str) -> Optional[Dict[str, Any]]:
        record = self._quests.get(quest_id)
        return copy.deepcopy(record) if record is not None else None

    async def scan_quests(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._quests.values()]

    async def put_quest(self, record: Mapping[str, Any]) -> None:
        stored = copy.deepcopy(dict(record))
        stored.setdefault("leaderboard", [])
        self._quests[str(stored["quest_id"])] = stored

    async def set_leaderboard(self, quest_id: str, entries: List[Dict[str, Any]]) -> None:
        record = self._quests.setdefault(quest_id, {"quest_id": quest_id})
        record["leaderboard"] = copy.deepcopy(list(entries))

    # ========================================================================
    # USERS
    # ========================================================================

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self._users.get(user_id)
        return copy.deepcopy(record) if record is not None else None

    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = email.strip().lower()
        for record in self._users.values():
            if str(record.get("email", "")).strip().lower() == wanted:
                return copy.deepcopy(record)
        return None

    async def put_user(self, record: Mapping[str, Any]) -> None:
        stored = copy.deepcopy(dict(record))
        self._users[str(stored["userId"])] = stored

    async def replace_user_collection(
        self,
        user_id: str,
        artefacts_collected: List[str],
        completed_quests: List[Dict[str, Any]],
    ) -> None:
        record = self._users.setdefault(user_id, {"userId": user_id})
        record["artefacts_collected"] = list(artefacts_collected)
        record["completed_quests"] = copy.deepcopy(list(completed_quests))

    async def delete_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self._users.pop(user_id, None)
        if record is not None:
            logger.debug("User record deleted", extra={"user_id": user_id})
        return record
