"""
User Collection Domain Model for MuseumQuest.

Purpose
-------
The collection a visitor builds up on their user record: every artefact
they have collected and every quest they have completed.

Business Rules
--------------
- ``artefacts_collected`` only grows and never holds duplicates
- ``completed_quests`` only grows and holds one entry per quest
- The remote endpoint accepts only a full replace of both arrays, so the
  aggregate always hands back the complete merged lists
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from museumquest.domain.models.base import AggregateRoot, parse_timestamp, to_iso


@dataclass(frozen=True)
class CompletedQuest:
    quest_id: str
    completed_at: Optional[datetime]
    prize: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["CompletedQuest"]:
        quest_id = record.get("questId")
        if not quest_id:
            return None
        prize = record.get("prize")
        return cls(
            quest_id=str(quest_id),
            completed_at=parse_timestamp(record.get("completedAt")),
            prize=dict(prize) if isinstance(prize, Mapping) else None,
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "questId": self.quest_id,
            "completedAt": to_iso(self.completed_at),
        }
        if self.prize:
            record["prize"] = dict(self.prize)
        return record


class UserCollection(AggregateRoot):
    """
    Grow-only collection of artefacts and completed quests.

    Domain Events
    -------------
    - collection.artefacts_added: new artefact ids were collected
    - collection.quest_completed: a quest was added to completed_quests
    """

    def __init__(
        self,
        user_id: str,
        artefacts_collected: Iterable[str] = (),
        completed_quests: Iterable[CompletedQuest] = (),
    ) -> None:
        super().__init__(user_id)
        self._artefacts: Dict[str, None] = dict.fromkeys(artefacts_collected)
        self._completed: Dict[str, CompletedQuest] = {}
        for entry in completed_quests:
            self._completed.setdefault(entry.quest_id, entry)

    @property
    def user_id(self) -> str:
        return str(self.id)

    @property
    def artefacts_collected(self) -> List[str]:
        return list(self._artefacts)

    @property
    def completed_quests(self) -> List[CompletedQuest]:
        return list(self._completed.values())

    def has_completed(self, quest_id: str) -> bool:
        return quest_id in self._completed

    def add_artefacts(self, artefact_ids: Iterable[str]) -> List[str]:
        """Add artefact ids; returns the ones that were not collected yet."""
        added = [a for a in dict.fromkeys(artefact_ids) if a and a not in self._artefacts]
        for artefact_id in added:
            self._artefacts[artefact_id] = None
        if added:
            self.add_domain_event(
                "collection.artefacts_added",
                {"user_id": self.user_id, "artefact_ids": added},
            )
        return added

    def add_completed_quest(self, entry: CompletedQuest) -> bool:
        """Add a completion; False if the quest was already recorded."""
        if entry.quest_id in self._completed:
            return False
        self._completed[entry.quest_id] = entry
        self.add_domain_event(
            "collection.quest_completed",
            {"user_id": self.user_id, "quest_id": entry.quest_id},
        )
        return True

    def merge(self, other: "UserCollection") -> None:
        """Union ``other`` into this collection (grow-only)."""
        self.add_artefacts(other.artefacts_collected)
        for entry in other.completed_quests:
            self.add_completed_quest(entry)

    @classmethod
    def from_user_record(cls, user_id: str, record: Optional[Mapping[str, Any]]) -> "UserCollection":
        record = record or {}
        completed = []
        for raw in record.get("completed_quests") or []:
            if isinstance(raw, Mapping):
                entry = CompletedQuest.from_record(raw)
                if entry is not None:
                    completed.append(entry)
        return cls(
            user_id=user_id,
            artefacts_collected=[str(a) for a in record.get("artefacts_collected") or []],
            completed_quests=completed,
        )

    def to_arrays(self) -> Dict[str, List[Any]]:
        return {
            "artefacts_collected": self.artefacts_collected,
            "completed_quests": [c.to_record() for c in self.completed_quests],
        }
