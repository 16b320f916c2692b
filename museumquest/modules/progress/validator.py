"""
SubmissionValidator: the accept / reject / duplicate decision.

Purpose
-------
Decide, without side effects, what submitting an artefact to the active
quest means. The decision depends only on the progress record, the quest
definition and the artefact id, so it is deterministic and replayable.

Decision Rules
--------------
1. ``duplicate`` if the artefact is already in ``submitted_artefact_ids``
   (this also covers re-scanning an earlier artefact of a sequential quest).
2. ``reject`` if the artefact does not belong to the quest.
3. Open quests: ``accept``.
4. Sequential quests: ``accept`` only if the artefact is the one at index
   ``len(submitted_artefact_ids)``; any other quest artefact is ``reject``.

Completion is a count check: after an accept the quest is complete exactly
when the number of submitted artefacts equals the number of quest artefacts.

A rejection is returned as a ``ValidationRejection`` value, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from museumquest.domain.models.progress import QuestProgress
from museumquest.domain.models.quest import Quest


class Decision(Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    DUPLICATE = "duplicate"


class RejectionReason(Enum):
    NOT_IN_QUEST = "not_in_quest"
    OUT_OF_ORDER = "out_of_order"
    ALREADY_SUBMITTED = "already_submitted"
    QUEST_COMPLETED = "quest_completed"


@dataclass(frozen=True)
class ValidationRejection:
    """
    Why a submission was not accepted, with a visitor-facing message.

    ``expected_artefact_id`` is set for out-of-order submissions on a
    sequential quest.
    """

    reason: RejectionReason
    message: str
    artefact_id: str
    expected_artefact_id: Optional[str] = None


@dataclass(frozen=True)
class SubmissionDecision:
    decision: Decision
    artefact_id: str
    rejection: Optional[ValidationRejection] = None

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT


ALREADY_SUBMITTED_MESSAGE = "Already submitted."
NOT_IN_QUEST_MESSAGE = "This artefact is not part of the quest. Try another artefact."
OUT_OF_ORDER_MESSAGE = "Try another artefact."
QUEST_COMPLETED_MESSAGE = "Quest already completed."


class SubmissionValidator:
    """Pure decision function over (progress, quest, artefact_id)."""

    def decide(
        self,
        progress: QuestProgress,
        quest: Quest,
        artefact_id: str,
    ) -> SubmissionDecision:
        if progress.has_submitted(artefact_id):
            return SubmissionDecision(
                Decision.DUPLICATE,
                artefact_id,
                ValidationRejection(
                    RejectionReason.ALREADY_SUBMITTED, ALREADY_SUBMITTED_MESSAGE, artefact_id
                ),
            )

        if not quest.has_artefact(artefact_id):
            return self._reject(RejectionReason.NOT_IN_QUEST, NOT_IN_QUEST_MESSAGE, artefact_id)

        # Unreachable through a consistent record, guards a count-complete record
        if progress.submitted_count >= quest.total_artefacts:
            return self._reject(
                RejectionReason.QUEST_COMPLETED, QUEST_COMPLETED_MESSAGE, artefact_id
            )

        if quest.is_sequential:
            expected = quest.expected_artefact_id(progress.submitted_count)
            if artefact_id != expected:
                return self._reject(
                    RejectionReason.OUT_OF_ORDER,
                    OUT_OF_ORDER_MESSAGE,
                    artefact_id,
                    expected_artefact_id=expected,
                )

        return SubmissionDecision(Decision.ACCEPT, artefact_id)

    @staticmethod
    def _reject(
        reason: RejectionReason,
        message: str,
        artefact_id: str,
        expected_artefact_id: Optional[str] = None,
    ) -> SubmissionDecision:
        return SubmissionDecision(
            Decision.REJECT,
            artefact_id,
            ValidationRejection(reason, message, artefact_id, expected_artefact_id),
        )

    @staticmethod
    def is_complete(progress: QuestProgress, quest: Quest) -> bool:
        """True exactly when every quest artefact has been submitted."""
        return progress.submitted_count == quest.total_artefacts

    @staticmethod
    def is_next_sequential(progress: Optional[QuestProgress], quest: Quest, artefact_id: str) -> bool:
        """
        True iff the quest is sequential and ``artefact_id`` is the next one.

        Advisory only: used to warn before a likely-wrong submission.
        """
        if not quest.is_sequential:
            return False
        submitted = progress.submitted_count if progress is not None else 0
        return quest.expected_artefact_id(submitted) == artefact_id
