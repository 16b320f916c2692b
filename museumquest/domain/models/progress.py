"""
QuestProgress Domain Model for MuseumQuest.

Purpose
-------
Rich domain model for one visitor's attempt at one quest: which artefacts
have been accepted, how many attempts each artefact has taken, which hints
have been displayed, and when the quest was accepted and completed.

Responsibilities
----------------
- Enforce the record-level invariants:
  - submitted artefact ids are unique and keep their insertion order
  - attempt counts never decrease
  - displayed hint keys never disappear
  - accepted_at and completed_at are each set exactly once
- Emit one domain event per mutation describing only the changed fields,
  so the sync layer can send partial updates
- Convert to and from the stored record and its flat field encoding

Non-Responsibilities
--------------------
- Deciding whether an artefact may be submitted (SubmissionValidator)
- Deciding which hints are visible (HintPolicy)
- Persistence (SyncReconciler and the remote store)

Domain Events
-------------
- progress.accepted: created on accept (carries every field)
- progress.artefact_submitted: an artefact was accepted
- progress.attempt_recorded: an attempt counter moved
- progress.hints_displayed: hint keys were revealed for the first time
- progress.completed: the terminal condition was reached

Flat Field Encoding
-------------------
The remote store keeps a progress record as a flat mapping so that a
partial update touches only what changed::

    userId, questId, acceptedAt, submittedArtefactIds, completedAt, completed
    attempts.<artefactId>     -> int
    displayedHints.<hintKey>  -> True
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from museumquest.domain.models.base import (
    AggregateRoot,
    DomainValidationError,
    parse_timestamp,
    to_iso,
    validate_non_negative,
    validate_not_empty,
)

ATTEMPTS_PREFIX = "attempts."
HINTS_PREFIX = "displayedHints."

FIELD_USER_ID = "userId"
FIELD_QUEST_ID = "questId"
FIELD_ACCEPTED_AT = "acceptedAt"
FIELD_SUBMITTED = "submittedArtefactIds"
FIELD_COMPLETED_AT = "completedAt"
FIELD_COMPLETED = "completed"


def hint_key(artefact_id: str, hint_index: int) -> str:
    """Key recorded in ``displayed_hints`` for the hint at ``hint_index``."""
    return f"{artefact_id}-{hint_index}"


class QuestProgress(AggregateRoot):
    """
    One visitor's progress through one quest.

    Identity is the ``(user_id, quest_id)`` pair.

    Business Rules
    --------------
    - An artefact id appears at most once in ``submitted_artefact_ids``
    - ``attempts[artefact_id]`` only ever increases
    - ``displayed_hints`` only ever grows
    - ``completed_at`` is set once and never cleared
    """

    def __init__(
        self,
        user_id: str,
        quest_id: str,
        accepted_at: datetime,
        submitted_artefact_ids: Iterable[str] = (),
        attempts: Optional[Mapping[str, int]] = None,
        displayed_hints: Iterable[str] = (),
        completed_at: Optional[datetime] = None,
    ) -> None:
        validate_not_empty(user_id, "user_id")
        validate_not_empty(quest_id, "quest_id")
        super().__init__((user_id, quest_id))

        self._user_id = user_id
        self._quest_id = quest_id
        self._accepted_at = accepted_at

        self._submitted: List[str] = []
        for artefact_id in submitted_artefact_ids:
            if artefact_id in self._submitted:
                raise DomainValidationError(
                    f"Artefact '{artefact_id}' submitted twice",
                    field="submitted_artefact_ids",
                )
            self._submitted.append(artefact_id)

        self._attempts: Dict[str, int] = {}
        for artefact_id, count in (attempts or {}).items():
            validate_non_negative(count, f"attempts[{artefact_id}]")
            self._attempts[artefact_id] = count

        self._displayed_hints: Dict[str, None] = dict.fromkeys(displayed_hints)
        self._completed_at = completed_at

    # ========================================================================
    # FACTORY
    # ========================================================================

    @classmethod
    def start(cls, user_id: str, quest_id: str, now: datetime) -> "QuestProgress":
        """
        Create a fresh progress record on accept.

        Examples
        --------
        >>> progress = QuestProgress.start("u-1", "Q1", utc_now())
        >>> progress.get_pending_events()[0].event_name
        'progress.accepted'
        """
        progress = cls(user_id=user_id, quest_id=quest_id, accepted_at=now)
        progress.add_domain_event(
            "progress.accepted",
            {
                "user_id": user_id,
                "quest_id": quest_id,
                "accepted_at": to_iso(now),
                "fields": progress.to_fields(),
            },
        )
        return progress

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def quest_id(self) -> str:
        return self._quest_id

    @property
    def accepted_at(self) -> datetime:
        return self._accepted_at

    @property
    def submitted_artefact_ids(self) -> Tuple[str, ...]:
        return tuple(self._submitted)

    @property
    def submitted_count(self) -> int:
        return len(self._submitted)

    @property
    def attempts(self) -> Dict[str, int]:
        return dict(self._attempts)

    @property
    def displayed_hints(self) -> Tuple[str, ...]:
        return tuple(self._displayed_hints)

    @property
    def completed_at(self) -> Optional[datetime]:
        return self._completed_at

    @property
    def is_completed(self) -> bool:
        return self._completed_at is not None

    @property
    def time_taken_seconds(self) -> Optional[float]:
        """``completed_at - accepted_at`` in seconds, once completed."""
        if self._completed_at is None:
            return None
        return max(0.0, (self._completed_at - self._accepted_at).total_seconds())

    def has_submitted(self, artefact_id: str) -> bool:
        return artefact_id in self._submitted

    def attempts_for(self, artefact_id: str) -> int:
        return self._attempts.get(artefact_id, 0)

    def has_displayed(self, key: str) -> bool:
        return key in self._displayed_hints

    # ========================================================================
    # BUSINESS LOGIC
    # ========================================================================

    def add_submission(self, artefact_id: str) -> None:
        """
        Append an accepted artefact.

        The caller has already decided the artefact is acceptable; this only
        guards the record invariants.

        Raises
        ------
        DomainValidationError
            If the artefact is already recorded or the quest is completed.
        """
        if self.is_completed:
            raise DomainValidationError("Quest already completed", field="completed_at")
        if artefact_id in self._submitted:
            raise DomainValidationError(
                f"Artefact '{artefact_id}' already submitted",
                field="submitted_artefact_ids",
            )

        self._submitted.append(artefact_id)
        self.add_domain_event(
            "progress.artefact_submitted",
            {
                "quest_id": self._quest_id,
                "artefact_id": artefact_id,
                "submitted_artefact_ids": list(self._submitted),
            },
        )

    def record_attempt(self, artefact_id: str) -> int:
        """
        Increment the attempt counter for ``artefact_id``.

        Counts keep going up after the artefact is collected or the quest is
        completed; they are never reset.
        """
        validate_not_empty(artefact_id, "artefact_id")
        count = self._attempts.get(artefact_id, 0) + 1
        self._attempts[artefact_id] = count
        self.add_domain_event(
            "progress.attempt_recorded",
            {"quest_id": self._quest_id, "artefact_id": artefact_id, "attempts": count},
        )
        return count

    def mark_hints_displayed(self, keys: Iterable[str]) -> List[str]:
        """
        Record hint keys as displayed and return the ones that were new.

        No event is emitted when nothing new was revealed.
        """
        new_keys = [k for k in dict.fromkeys(keys) if k not in self._displayed_hints]
        if not new_keys:
            return []

        for key in new_keys:
            self._displayed_hints[key] = None
        self.add_domain_event(
            "progress.hints_displayed",
            {"quest_id": self._quest_id, "keys": list(new_keys)},
        )
        return new_keys

    def complete(self, now: datetime) -> None:
        """
        Set ``completed_at``.

        Raises
        ------
        DomainValidationError
            If already completed.
        """
        if self.is_completed:
            raise DomainValidationError("Quest already completed", field="completed_at")

        self._completed_at = now
        self.add_domain_event(
            "progress.completed",
            {
                "user_id": self._user_id,
                "quest_id": self._quest_id,
                "accepted_at": to_iso(self._accepted_at),
                "completed_at": to_iso(now),
                "time_taken_seconds": self.time_taken_seconds,
                "submitted_artefact_ids": list(self._submitted),
            },
        )

    # ========================================================================
    # CONVERSION
    # ========================================================================

    def to_record(self) -> Dict[str, Any]:
        return {
            FIELD_USER_ID: self._user_id,
            FIELD_QUEST_ID: self._quest_id,
            FIELD_ACCEPTED_AT: to_iso(self._accepted_at),
            FIELD_SUBMITTED: list(self._submitted),
            "attempts": dict(self._attempts),
            "displayedHints": list(self._displayed_hints),
            FIELD_COMPLETED_AT: to_iso(self._completed_at),
            FIELD_COMPLETED: self.is_completed,
        }

    def to_fields(self) -> Dict[str, Any]:
        return progress_record_to_fields(self.to_record())

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QuestProgress":
        """
        Build a QuestProgress from a stored record.

        Tolerant of partial records (a patch that landed before the create):
        duplicate ids are dropped, negative or unparsable counts are ignored,
        and a missing ``acceptedAt`` falls back to ``completedAt``.

        Raises
        ------
        DomainValidationError
            If the record has no user id, quest id or usable timestamp.
        """
        completed_at = parse_timestamp(record.get(FIELD_COMPLETED_AT))
        accepted_at = parse_timestamp(record.get(FIELD_ACCEPTED_AT)) or completed_at
        if accepted_at is None:
            raise DomainValidationError("Progress record has no acceptedAt", field="acceptedAt")

        submitted = record.get(FIELD_SUBMITTED) or []
        if not isinstance(submitted, (list, tuple)):
            submitted = []

        attempts: Dict[str, int] = {}
        for artefact_id, count in dict(record.get("attempts") or {}).items():
            if isinstance(count, bool):
                continue
            try:
                value = int(count)
            except (TypeError, ValueError):
                continue
            if value >= 0:
                attempts[str(artefact_id)] = value

        hints = record.get("displayedHints") or []
        if isinstance(hints, Mapping):
            hints = [k for k, shown in hints.items() if shown]

        return cls(
            user_id=str(record.get(FIELD_USER_ID) or ""),
            quest_id=str(record.get(FIELD_QUEST_ID) or ""),
            accepted_at=accepted_at,
            submitted_artefact_ids=list(dict.fromkeys(str(a) for a in submitted)),
            attempts=attempts,
            displayed_hints=[str(k) for k in hints],
            completed_at=completed_at,
        )

    def __repr__(self) -> str:
        return (
            f"QuestProgress(user_id={self._user_id!r}, quest_id={self._quest_id!r}, "
            f"submitted={self._submitted!r}, completed={self.is_completed})"
        )


# ============================================================================
# FLAT FIELD CODEC
# ============================================================================


def progress_record_to_fields(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten a progress record into the per-field layout used by stores."""
    fields: Dict[str, Any] = {}
    for key in (FIELD_USER_ID, FIELD_QUEST_ID, FIELD_ACCEPTED_AT, FIELD_COMPLETED_AT, FIELD_COMPLETED):
        if record.get(key) is not None:
            fields[key] = record[key]
    fields[FIELD_SUBMITTED] = list(record.get(FIELD_SUBMITTED) or [])
    for artefact_id, count in dict(record.get("attempts") or {}).items():
        fields[f"{ATTEMPTS_PREFIX}{artefact_id}"] = count
    for key in record.get("displayedHints") or []:
        fields[f"{HINTS_PREFIX}{key}"] = True
    return fields


def progress_record_from_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Inverse of ``progress_record_to_fields``."""
    record: Dict[str, Any] = {"attempts": {}, "displayedHints": []}
    for key, value in fields.items():
        if key.startswith(ATTEMPTS_PREFIX):
            record["attempts"][key[len(ATTEMPTS_PREFIX):]] = value
        elif key.startswith(HINTS_PREFIX):
            if value:
                record["displayedHints"].append(key[len(HINTS_PREFIX):])
        else:
            record[key] = value
    record.setdefault(FIELD_SUBMITTED, [])
    return record
