"""
Quest Domain Model for MuseumQuest.

Purpose
-------
Read-only domain representation of an authored quest: its artefacts in
order, their hints, the optional availability window and prize.

Quests are authored by the admin console and are immutable to the engine.
This module converts the stored record into value objects and answers the
questions the engine asks of a quest (order, membership, availability).

Responsibilities
----------------
- Parse and validate stored quest records (`Quest.from_record`)
- Normalise authored quest types ("concurrent" and "random" are open quests)
- Compute schedule status from the optional date range
- Serialise back to the stored shape (`Quest.to_record`)

Non-Responsibilities
--------------------
- Leaderboard contents (see `museumquest.domain.models.leaderboard`)
- Visitor progress (see `museumquest.domain.models.progress`)

Usage Example
-------------
>>> quest = Quest.from_record(store_record)
>>> quest.is_sequential
True
>>> quest.expected_artefact_id(0)
'A'
>>> quest.date_range.status(utc_now())
<ScheduleStatus.ACTIVE: 'active'>
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from museumquest.domain.models.base import (
    DomainValidationError,
    parse_timestamp,
    to_iso,
    validate_not_empty,
)

# ============================================================================
# ENUMS
# ============================================================================


class QuestType(Enum):
    """Whether artefacts must be submitted in the authored order."""

    SEQUENTIAL = "sequential"
    OPEN = "open"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "QuestType":
        """
        Parse an authored quest type.

        The admin console stores unordered quests as ``"concurrent"`` and
        some older records use ``"random"``; both read as OPEN. A missing
        type is OPEN as well.
        """
        if not value:
            return cls.OPEN
        normalized = str(value).strip().lower()
        if normalized == cls.SEQUENTIAL.value:
            return cls.SEQUENTIAL
        if normalized in (cls.OPEN.value, "concurrent", "random"):
            return cls.OPEN
        raise DomainValidationError(f"Unknown quest type '{value}'", field="questType")


class HintDisplayMode(Enum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "HintDisplayMode":
        if value and str(value).strip().lower() == cls.RANDOM.value:
            return cls.RANDOM
        return cls.SEQUENTIAL


class ScheduleStatus(Enum):
    """Availability of a quest relative to its date range."""

    ACTIVE = "active"
    UPCOMING = "upcoming"
    PAST = "past"
    ALWAYS = "always"

    @property
    def is_available(self) -> bool:
        return self in (ScheduleStatus.ACTIVE, ScheduleStatus.ALWAYS)


# ============================================================================
# VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class Hint:
    """
    One authored hint for an artefact.

    Attributes
    ----------
    description : str
        Text shown to the visitor
    display_after_attempts : int
        Authored threshold, stored for the admin console. Visibility is
        decided by the prefix rule in HintPolicy, not by this value.
    """

    description: str
    display_after_attempts: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Hint":
        raw_threshold = record.get("displayAfterAttempts", 0)
        try:
            threshold = max(0, int(raw_threshold))
        except (TypeError, ValueError):
            threshold = 0
        return cls(
            description=str(record.get("description", "")),
            display_after_attempts=threshold,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "displayAfterAttempts": self.display_after_attempts,
        }


@dataclass(frozen=True)
class QuestArtefact:
    """Reference from a quest to one artefact, with its ordered hints."""

    artefact_id: str
    name: Optional[str] = None
    hints: Tuple[Hint, ...] = ()
    hint_display_mode: HintDisplayMode = HintDisplayMode.SEQUENTIAL

    def __post_init__(self) -> None:
        validate_not_empty(self.artefact_id, "artefactId")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QuestArtefact":
        hints = tuple(
            Hint.from_record(h) for h in record.get("hints") or [] if isinstance(h, Mapping)
        )
        return cls(
            artefact_id=str(record.get("artefactId") or "").strip(),
            name=record.get("name"),
            hints=hints,
            hint_display_mode=HintDisplayMode.from_string(record.get("hintDisplayMode")),
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "artefactId": self.artefact_id,
            "hints": [h.to_record() for h in self.hints],
            "hintDisplayMode": self.hint_display_mode.value,
        }
        if self.name is not None:
            record["name"] = self.name
        return record


@dataclass(frozen=True)
class DateRange:
    """
    Optional availability window. Either bound may be missing.

    The ``to`` bound is inclusive.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.end < self.start:
            raise DomainValidationError("dateRange.to is before dateRange.from", field="dateRange")

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> "DateRange":
        if not record:
            return cls()
        return cls(start=parse_timestamp(record.get("from")), end=parse_timestamp(record.get("to")))

    def to_record(self) -> Optional[Dict[str, Any]]:
        if self.start is None and self.end is None:
            return None
        record: Dict[str, Any] = {}
        if self.start is not None:
            record["from"] = to_iso(self.start)
        if self.end is not None:
            record["to"] = to_iso(self.end)
        return record

    def status(self, now: datetime) -> ScheduleStatus:
        if self.start is None and self.end is None:
            return ScheduleStatus.ALWAYS
        if self.start is not None and now < self.start:
            return ScheduleStatus.UPCOMING
        if self.end is not None and now > self.end:
            return ScheduleStatus.PAST
        return ScheduleStatus.ACTIVE


@dataclass(frozen=True)
class Prize:
    title: str
    description: str = ""
    image: Optional[str] = None

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> Optional["Prize"]:
        if not record or not record.get("title"):
            return None
        return cls(
            title=str(record["title"]),
            description=str(record.get("description") or ""),
            image=record.get("image"),
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"title": self.title, "description": self.description}
        if self.image:
            record["image"] = self.image
        return record


# ============================================================================
# QUEST
# ============================================================================


@dataclass(frozen=True)
class Quest:
    """
    An authored quest.

    Business Rules
    --------------
    - At least one artefact
    - Artefact ids are unique within a quest
    - For sequential quests the tuple order is the required submission order
    """

    quest_id: str
    title: str
    quest_type: QuestType
    artefacts: Tuple[QuestArtefact, ...]
    description: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    prize: Optional[Prize] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.quest_id, "quest_id")
        if not self.artefacts:
            raise DomainValidationError("A quest needs at least one artefact", field="artefacts")
        ids = [a.artefact_id for a in self.artefacts]
        if len(set(ids)) != len(ids):
            raise DomainValidationError("Duplicate artefact in quest", field="artefacts")

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def is_sequential(self) -> bool:
        return self.quest_type is QuestType.SEQUENTIAL

    @property
    def artefact_ids(self) -> List[str]:
        return [a.artefact_id for a in self.artefacts]

    @property
    def total_artefacts(self) -> int:
        return len(self.artefacts)

    def has_artefact(self, artefact_id: str) -> bool:
        return any(a.artefact_id == artefact_id for a in self.artefacts)

    def get_artefact(self, artefact_id: str) -> Optional[QuestArtefact]:
        for artefact in self.artefacts:
            if artefact.artefact_id == artefact_id:
                return artefact
        return None

    def index_of(self, artefact_id: str) -> Optional[int]:
        for index, artefact in enumerate(self.artefacts):
            if artefact.artefact_id == artefact_id:
                return index
        return None

    def expected_artefact_id(self, submitted_count: int) -> Optional[str]:
        """Artefact a sequential quest expects next, or None when all are in."""
        if 0 <= submitted_count < len(self.artefacts):
            return self.artefacts[submitted_count].artefact_id
        return None

    def schedule_status(self, now: datetime) -> ScheduleStatus:
        return self.date_range.status(now)

    def is_available(self, now: datetime) -> bool:
        return self.schedule_status(now).is_available

    # ========================================================================
    # CONVERSION
    # ========================================================================

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Quest":
        """
        Build a Quest from its stored record.

        Extra keys (``leaderboard``, ``createdAt``) are ignored.

        Raises
        ------
        DomainValidationError
            If the record is missing its id or artefacts.
        """
        artefacts = tuple(
            QuestArtefact.from_record(a)
            for a in record.get("artefacts") or []
            if isinstance(a, Mapping)
        )
        return cls(
            quest_id=str(record.get("quest_id") or record.get("questId") or "").strip(),
            title=str(record.get("title") or ""),
            description=str(record.get("description") or ""),
            quest_type=QuestType.from_string(record.get("questType")),
            artefacts=artefacts,
            date_range=DateRange.from_record(record.get("dateRange")),
            prize=Prize.from_record(record.get("prize")),
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "quest_id": self.quest_id,
            "title": self.title,
            "description": self.description,
            "questType": self.quest_type.value,
            "artefacts": [a.to_record() for a in self.artefacts],
        }
        date_range = self.date_range.to_record()
        if date_range is not None:
            record["dateRange"] = date_range
        if self.prize is not None:
            record["prize"] = self.prize.to_record()
        return record
