"""
ProgressStore: the signed-in visitor's active quest attempt.

Purpose
-------
Own the single in-memory QuestProgress for one session and expose the
operations the UI calls: accept, cancel, submit, record an attempt, show
hints, resume after a reload and sign out.

Responsibilities
----------------
- Guard the one-active-quest rule as an explicit state transition
  (IDLE -> ACTIVE -> COMPLETED)
- Apply every mutation to local state immediately and hand the resulting
  domain events to the SyncReconciler without waiting on the network
- Trigger the completion side effects (leaderboard append, collection
  update) exactly once per completion

Non-Responsibilities
--------------------
- Accept/reject rules (SubmissionValidator)
- Hint visibility rules (HintPolicy)
- Network calls, retries and merges (SyncReconciler)

Known Limitation
----------------
The one-active-quest rule is enforced here, per session. The store has no
constraint for it, so a client bypassing this class can violate it.

Example Usage
-------------
>>> store = ProgressStore("u-1", SyncReconciler(remote, "u-1"))
>>> store.accept_quest(quest)
>>> result = store.submit_artefact("A")
>>> result.status
<SubmissionStatus.ACCEPTED: 'accepted'>
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from museumquest.core.config.manager import ConfigManager
from museumquest.core.logging.logger import LogContext, get_logger
from museumquest.domain.models.base import to_iso, utc_now
from museumquest.domain.models.progress import FIELD_COMPLETED_AT, QuestProgress
from museumquest.domain.models.quest import Quest
from museumquest.modules.progress.hints import HintPolicy, VisibleHints
from museumquest.modules.progress.sync import SyncReconciler
from museumquest.modules.progress.validator import (
    OUT_OF_ORDER_MESSAGE,
    Decision,
    SubmissionValidator,
    ValidationRejection,
)
from museumquest.modules.shared.exceptions import (
    AlreadyActiveError,
    NoActiveQuestError,
    QuestUnavailableError,
    ValidationError,
)

if TYPE_CHECKING:
    from museumquest.modules.collection.service import UserCollectionService
    from museumquest.modules.leaderboard.cascade import LeaderboardCascade

logger = get_logger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


class SubmissionStatus(Enum):
    ACCEPTED = "accepted"
    ALREADY_SUBMITTED = "already-submitted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of ``ProgressStore.submit_artefact``.

    ``message`` is ready to show to the visitor. ``rejection`` is set for
    already-submitted and rejected outcomes.
    """

    status: SubmissionStatus
    artefact_id: str
    completed: bool = False
    message: str = ""
    rejection: Optional[ValidationRejection] = None

    @property
    def accepted(self) -> bool:
        return self.status is SubmissionStatus.ACCEPTED


ACCEPTED_MESSAGE = "Artefact collected."
COMPLETED_MESSAGE = "Quest complete!"


class ProgressStore:
    """
    Session-scoped holder of the active QuestProgress.

    Args:
        user_id: Signed-in visitor
        reconciler: Background persistence for this visitor
        validator: Submission decision rules
        hint_policy: Hint visibility rules
        cascade: Leaderboard append on completion (optional)
        collection: UserCollection updates (optional)
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        user_id: str,
        reconciler: SyncReconciler,
        validator: Optional[SubmissionValidator] = None,
        hint_policy: Optional[HintPolicy] = None,
        cascade: Optional["LeaderboardCascade"] = None,
        collection: Optional["UserCollectionService"] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._user_id = user_id
        self._reconciler = reconciler
        self._validator = validator or SubmissionValidator()
        self._hint_policy = hint_policy or HintPolicy()
        self._cascade = cascade
        self._collection = collection
        self._clock = clock

        self._quest: Optional[Quest] = None
        self._progress: Optional[QuestProgress] = None

        hint_retry = ConfigManager.get("sync.hints.retry", False)
        self._hint_retry = hint_retry if isinstance(hint_retry, bool) else False

    # ═══════════════════════════════════════════════════════════════════════
    # READ PROJECTIONS
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def state(self) -> SessionState:
        if self._progress is None:
            return SessionState.IDLE
        if self._progress.is_completed:
            return SessionState.COMPLETED
        return SessionState.ACTIVE

    @property
    def active_quest(self) -> Optional[Quest]:
        return self._quest

    @property
    def progress(self) -> Optional[QuestProgress]:
        return self._progress

    def snapshot(self) -> Optional[Dict[str, Any]]:
        """Plain-dict copy of the current progress record."""
        return self._progress.to_record() if self._progress is not None else None

    # ═══════════════════════════════════════════════════════════════════════
    # QUEST LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def accept_quest(self, quest: Quest) -> QuestProgress:
        """
        Start ``quest``.

        Accepting the quest that is already active returns its progress
        unchanged. A completed attempt is superseded; its pending writes
        still land.

        Raises:
            AlreadyActiveError: Another quest is active and incomplete
            QuestUnavailableError: ``quest`` is outside its date range
        """
        current = self._progress
        if current is not None and not current.is_completed:
            if current.quest_id == quest.quest_id:
                return current
            raise AlreadyActiveError(current.quest_id, quest.quest_id)

        now = self._clock()
        status = quest.schedule_status(now)
        if not status.is_available:
            raise QuestUnavailableError(quest.quest_id, status.value)

        with LogContext(user_id=self._user_id, quest_id=quest.quest_id, operation="accept_quest"):
            progress = QuestProgress.start(self._user_id, quest.quest_id, now)
            self._quest = quest
            self._progress = progress
            self._reconciler.bind_quest(quest.quest_id, cancel_previous=current is None)
            self._flush()

            logger.info(
                "Quest accepted",
                extra={"quest_type": quest.quest_type.value, "total_artefacts": quest.total_artefacts},
            )
        return progress

    def cancel_quest(self) -> bool:
        """
        Discard the active, incomplete attempt and delete its remote record.

        Returns False (and does nothing) when no quest is active.
        """
        current = self._progress
        if current is None or current.is_completed:
            return False

        quest_id = current.quest_id
        with LogContext(user_id=self._user_id, quest_id=quest_id, operation="cancel_quest"):
            current.clear_domain_events()
            self._progress = None
            self._quest = None
            self._reconciler.bind_quest(None)
            self._reconciler.push_delete(quest_id)
            logger.info("Quest cancelled")
        return True

    async def resume(self, quest: Quest) -> Optional[QuestProgress]:
        """
        Load the remote record for ``quest`` and merge it into local state.

        A response that arrives after the session moved on is discarded and
        the current state is returned untouched.

        Raises:
            AlreadyActiveError: A different quest is active locally
        """
        if (
            self.state is SessionState.ACTIVE
            and self._progress is not None
            and self._progress.quest_id != quest.quest_id
        ):
            raise AlreadyActiveError(self._progress.quest_id, quest.quest_id)

        local = self._progress if self._progress is not None and self._progress.quest_id == quest.quest_id else None
        was_completed = local is not None and local.is_completed

        async with LogContext(user_id=self._user_id, quest_id=quest.quest_id, operation="resume"):
            leaving_completed = self._progress is not None and self._progress.is_completed
            self._reconciler.bind_quest(quest.quest_id, cancel_previous=not leaving_completed)
            outcome = await self._reconciler.reconcile(quest, local, self._clock())

            if outcome.discarded:
                return self._progress

            if outcome.progress is None:
                self._progress = None
                self._quest = None
                self._reconciler.bind_quest(None)
                return None

            self._quest = quest
            self._progress = outcome.progress

            # Completion derived by the merge itself, never recorded remotely
            if (
                outcome.progress.is_completed
                and not was_completed
                and FIELD_COMPLETED_AT in outcome.repaired_fields
            ):
                self._dispatch_completion(quest, outcome.progress)

            return self._progress

    def sign_out(self) -> int:
        """Cancel cancellable in-flight requests and clear local state."""
        cancelled = self._reconciler.cancel_all()
        self._progress = None
        self._quest = None
        logger.info(
            "Signed out",
            extra={"user_id": self._user_id, "cancelled_requests": cancelled},
        )
        return cancelled

    # ═══════════════════════════════════════════════════════════════════════
    # SUBMISSIONS
    # ═══════════════════════════════════════════════════════════════════════

    def submit_artefact(self, artefact_id: str) -> SubmissionResult:
        """
        Submit ``artefact_id`` to the active quest.

        Never raises for a wrong artefact: rejections come back as a result
        with a visitor-facing message.

        Raises:
            ValidationError: ``artefact_id`` is blank
            NoActiveQuestError: No quest has been accepted
        """
        artefact_id = self._require_artefact_id(artefact_id)
        progress, quest = self._require_active("submit_artefact")

        with LogContext(user_id=self._user_id, quest_id=quest.quest_id, operation="submit_artefact"):
            decision = self._validator.decide(progress, quest, artefact_id)

            # Only an accept comes without a rejection
            rejection = decision.rejection
            if rejection is not None:
                if decision.decision is Decision.DUPLICATE:
                    logger.debug("Duplicate submission", extra={"artefact_id": artefact_id})
                    return SubmissionResult(
                        SubmissionStatus.ALREADY_SUBMITTED,
                        artefact_id,
                        completed=progress.is_completed,
                        message=rejection.message,
                        rejection=rejection,
                    )
                return self._reject(progress, quest, rejection)

            progress.add_submission(artefact_id)
            completed = self._validator.is_complete(progress, quest)
            if completed:
                progress.complete(self._clock())
            self._flush()

            # The completion update already carries every submitted id
            if completed:
                self._dispatch_completion(quest, progress)
            else:
                self._dispatch_collect(quest.quest_id, artefact_id)

            logger.info(
                "Artefact accepted",
                extra={
                    "artefact_id": artefact_id,
                    "submitted_count": progress.submitted_count,
                    "total_artefacts": quest.total_artefacts,
                    "completed": completed,
                },
            )
            return SubmissionResult(
                SubmissionStatus.ACCEPTED,
                artefact_id,
                completed=completed,
                message=COMPLETED_MESSAGE if completed else ACCEPTED_MESSAGE,
            )

    def _reject(
        self,
        progress: QuestProgress,
        quest: Quest,
        rejection: ValidationRejection,
    ) -> SubmissionResult:
        message = rejection.message

        if quest.is_sequential and not progress.is_completed:
            expected = quest.expected_artefact_id(progress.submitted_count)
            if expected is not None:
                progress.record_attempt(expected)
                visible = self._reveal_hints(progress, quest, expected)
                latest = visible.latest
                message = f"Hint: {latest.description}" if latest is not None else OUT_OF_ORDER_MESSAGE
                self._flush()

        logger.info(
            "Submission rejected",
            extra={
                "artefact_id": rejection.artefact_id,
                "reason": rejection.reason.value,
                "expected_artefact_id": rejection.expected_artefact_id,
            },
        )
        return SubmissionResult(
            SubmissionStatus.REJECTED,
            rejection.artefact_id,
            completed=progress.is_completed,
            message=message,
            rejection=rejection,
        )

    def record_attempt(self, artefact_id: str) -> int:
        """
        Increment the attempt counter for ``artefact_id`` and return it.

        Raises:
            ValidationError: ``artefact_id`` is blank
            NoActiveQuestError: No quest has been accepted
        """
        artefact_id = self._require_artefact_id(artefact_id)
        progress, quest = self._require_active("record_attempt")
        with LogContext(user_id=self._user_id, quest_id=quest.quest_id, operation="record_attempt"):
            count = progress.record_attempt(artefact_id)
            self._flush()
        return count

    def is_next_sequential(self, artefact_id: str) -> bool:
        """Advisory: True iff the active quest is sequential and expects ``artefact_id`` next."""
        if self._quest is None:
            return False
        return self._validator.is_next_sequential(self._progress, self._quest, artefact_id)

    # ═══════════════════════════════════════════════════════════════════════
    # HINTS
    # ═══════════════════════════════════════════════════════════════════════

    def visible_hints(self, artefact_id: str) -> VisibleHints:
        """
        Hints to show for ``artefact_id``.

        Hints shown for the first time are recorded locally and the remote
        store is notified once, in the background, without retry.
        """
        if self._progress is None or self._quest is None:
            return VisibleHints(artefact_id)

        with LogContext(user_id=self._user_id, quest_id=self._quest.quest_id, operation="visible_hints"):
            visible = self._reveal_hints(self._progress, self._quest, artefact_id)
            self._flush()
        return visible

    def _reveal_hints(self, progress: QuestProgress, quest: Quest, artefact_id: str) -> VisibleHints:
        visible = self._hint_policy.visible_hints(progress, quest, artefact_id)
        if visible.newly_revealed:
            progress.mark_hints_displayed(visible.newly_revealed)
        return visible

    # ═══════════════════════════════════════════════════════════════════════
    # BACKGROUND WORK
    # ═══════════════════════════════════════════════════════════════════════

    def _flush(self) -> None:
        if self._progress is None:
            return
        events = self._progress.clear_domain_events()
        if events:
            self._reconciler.push_events(events, hint_retry=self._hint_retry)

    @property
    def _collection_chain(self) -> str:
        # Read-merge-replace of the user record must not interleave
        return f"user:{self._user_id}"

    def _dispatch_collect(self, quest_id: str, artefact_id: str) -> None:
        if self._collection is None:
            return
        collection = self._collection
        user_id = self._user_id
        self._reconciler.dispatch(
            quest_id,
            "collection.artefact",
            lambda: collection.record_artefact(user_id, artefact_id),
            cancellable=False,
            chain=self._collection_chain,
        )

    def _dispatch_completion(self, quest: Quest, progress: QuestProgress) -> None:
        prize = quest.prize.to_record() if quest.prize is not None else None
        user_id = self._user_id
        completed_at = progress.completed_at
        time_taken = progress.time_taken_seconds

        if self._cascade is not None:
            cascade = self._cascade
            self._reconciler.dispatch(
                quest.quest_id,
                "leaderboard.append",
                lambda: cascade.append_on_complete(
                    quest.quest_id, user_id, time_taken, completed_at=completed_at, prize=prize
                ),
                cancellable=False,
            )

        if self._collection is not None:
            collection = self._collection
            artefact_ids = list(progress.submitted_artefact_ids)
            self._reconciler.dispatch(
                quest.quest_id,
                "collection.completion",
                lambda: collection.record_completion(
                    user_id, quest.quest_id, completed_at, prize=prize, artefact_ids=artefact_ids
                ),
                cancellable=False,
                chain=self._collection_chain,
            )

        logger.info(
            "Quest completed",
            extra={"completed_at": to_iso(completed_at), "time_taken_seconds": time_taken},
        )

    # ═══════════════════════════════════════════════════════════════════════
    # GUARDS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _require_artefact_id(artefact_id: Any) -> str:
        if not isinstance(artefact_id, str) or not artefact_id.strip():
            raise ValidationError("artefact_id", "artefact_id must be a non-empty string")
        return artefact_id.strip()

    def _require_active(self, action: str) -> Tuple[QuestProgress, Quest]:
        if self._progress is None or self._quest is None:
            raise NoActiveQuestError(action)
        return self._progress, self._quest
