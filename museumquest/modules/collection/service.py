"""
UserCollection Service
======================

Purpose
-------
Keep a visitor's ``artefacts_collected`` and ``completed_quests`` in step
with accepted submissions.

Domain
------
- Add an accepted artefact to the collection
- Record a completed quest (one entry per quest) with its prize, and union
  the quest's artefacts into the collection

The user-collection endpoint only supports a full replace of both arrays,
so every update reads the current record, merges in memory (grow-only) and
writes both merged arrays back. Two updates for the same user that overlap
lose data, so callers must run them one at a time (ProgressStore chains
them on ``user:<user_id>``).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.user import CompletedQuest, UserCollection
from museumquest.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


class UserCollectionService(BaseService):
    """
    Grow-only updates to a user's collection.

    Public Methods
    --------------
    - get_collection() -> Current collection for a user
    - record_artefact() -> Add one collected artefact
    - record_completion() -> Add a completed quest and its artefacts
    """

    def __init__(
        self,
        store: RemoteStore,
        config_manager: "ConfigManager",
        logger: "Logger",
    ) -> None:
        super().__init__(config_manager, logger)
        self._store = store

    async def get_collection(self, user_id: str) -> UserCollection:
        user_id = self.validate_non_empty(user_id, "user_id")
        record = await self._store.get_user(user_id)
        return UserCollection.from_user_record(user_id, record)

    async def record_artefact(self, user_id: str, artefact_id: str) -> List[str]:
        """
        Add ``artefact_id`` to the user's collection.

        Returns the ids that were newly added (empty when already held, in
        which case nothing is written).
        """
        artefact_id = self.validate_non_empty(artefact_id, "artefact_id")
        collection = await self.get_collection(user_id)

        added = collection.add_artefacts([artefact_id])
        if not added:
            return []

        await self._write(collection)
        self.log_operation("record_artefact", user_id=user_id, artefact_id=artefact_id)
        return added

    async def record_completion(
        self,
        user_id: str,
        quest_id: str,
        completed_at: Optional[datetime],
        prize: Optional[Dict[str, Any]] = None,
        artefact_ids: Iterable[str] = (),
    ) -> bool:
        """
        Record ``quest_id`` as completed.

        Returns False when nothing changed: the quest was already recorded
        and every artefact was already collected.
        """
        quest_id = self.validate_non_empty(quest_id, "quest_id")
        collection = await self.get_collection(user_id)

        recorded = collection.add_completed_quest(
            CompletedQuest(quest_id=quest_id, completed_at=completed_at, prize=prize)
        )
        added = collection.add_artefacts(artefact_ids)
        if not recorded and not added:
            return False

        await self._write(collection)
        self.log_operation(
            "record_completion",
            user_id=user_id,
            quest_id=quest_id,
            newly_recorded=recorded,
            artefacts_added=len(added),
        )
        return True

    async def _write(self, collection: UserCollection) -> None:
        arrays = collection.to_arrays()
        await self._store.replace_user_collection(
            collection.user_id,
            arrays["artefacts_collected"],
            arrays["completed_quests"],
        )
        collection.clear_domain_events()
