"""
Quest Catalog
=============

Purpose
-------
Read-only access to authored quests. The engine never writes quest
definitions; authoring happens elsewhere.

Domain
------
- Load one quest by id
- List every quest, or only the ones currently available
- Find the quests that reference an artefact (usage check before an
  artefact is removed by an operator)

Listing and usage checks scan every quest record. A quest created or
edited during the scan may be missed; callers treat the answer as a
point-in-time view.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from museumquest.core.store.base import RemoteStore
from museumquest.core.validation.input_validator import InputValidator
from museumquest.domain.models.base import DomainValidationError, utc_now
from museumquest.domain.models.quest import Quest
from museumquest.modules.shared.base_service import BaseService
from museumquest.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


class QuestCatalog(BaseService):
    """
    Quest read API.

    Public Methods
    --------------
    - get_quest() -> One quest by id
    - list_quests() -> Every readable quest
    - available_quests() -> Quests inside their date range
    - quests_using_artefact() -> Quests that reference an artefact
    """

    def __init__(
        self,
        store: RemoteStore,
        config_manager: "ConfigManager",
        logger: "Logger",
    ) -> None:
        super().__init__(config_manager, logger)
        self._store = store

    async def get_quest(self, quest_id: str) -> Quest:
        """
        Raises:
            NotFoundError: Unknown quest
            ValidationError: The stored definition is malformed
        """
        quest_id = InputValidator.validate_identifier(quest_id, "quest_id")
        record = await self._store.get_quest(quest_id)
        if record is None:
            raise NotFoundError("Quest", quest_id)

        try:
            return Quest.from_record(record)
        except DomainValidationError as exc:
            raise ValidationError(exc.field or "quest", str(exc)) from exc

    async def list_quests(self) -> List[Quest]:
        """Every quest whose definition parses; malformed ones are logged and skipped."""
        quests: List[Quest] = []
        for record in await self._store.scan_quests():
            try:
                quests.append(Quest.from_record(record))
            except DomainValidationError as exc:
                self.log.warning(
                    "Skipping malformed quest record",
                    extra={"quest_id": record.get("quest_id"), "error": str(exc)},
                )
        quests.sort(key=lambda q: q.quest_id)
        return quests

    async def available_quests(self, now: Optional[datetime] = None) -> List[Quest]:
        now = now or utc_now()
        return [q for q in await self.list_quests() if q.is_available(now)]

    async def quests_using_artefact(self, artefact_id: str) -> List[Dict[str, Any]]:
        """
        Quests whose artefact list contains ``artefact_id``.

        Works on the raw records so a quest with an otherwise malformed
        definition still counts as a usage.

        Returns:
            ``[{"quest_id": ..., "title": ...}]`` sorted by quest id
        """
        artefact_id = InputValidator.validate_identifier(artefact_id, "artefact_id")

        usages: List[Dict[str, Any]] = []
        for record in await self._store.scan_quests():
            for raw in record.get("artefacts") or []:
                if isinstance(raw, dict) and str(raw.get("artefactId", "")) == artefact_id:
                    usages.append(
                        {"quest_id": record.get("quest_id"), "title": record.get("title", "")}
                    )
                    break

        usages.sort(key=lambda u: str(u["quest_id"]))
        self.log_operation("quests_using_artefact", artefact_id=artefact_id, count=len(usages))
        return usages
