"""
SyncReconciler: background persistence and load-time reconciliation.

Purpose
-------
Bridge the optimistic in-memory progress record and a remote store that
only offers point reads and per-record partial writes.

Responsibilities
----------------
- Turn each QuestProgress domain event into a partial update carrying only
  the changed fields, and send it in the background
- Keep writes for the same quest in issue order (a later
  ``submittedArtefactIds`` list must never be overwritten by an earlier one)
- Retry a failed write at most once, then drop it and log a
  TransientSyncFailure
- Tag every in-flight request with the quest it was issued for; switching
  quests or signing out cancels the cancellable ones, and a late fetch for
  a quest that is no longer bound is discarded
- On load, fetch the remote record, merge it with the local copy and push
  the fields the remote copy is missing

Non-Responsibilities
--------------------
- Deciding what the mutations are (ProgressStore)
- Merge rules (merge.merge_progress)
- Queueing dropped writes for replay (the next reconciliation repairs drift)

Configuration Keys
------------------
- sync.retry.*      : see RetryPolicy
- sync.hints.retry  : bool (default False)

Architecture Notes
------------------
- Single event loop; tasks are created with ``asyncio.create_task`` and
  never awaited by UI operations
- Requests already acknowledged by the store are never rolled back by a
  later cancel
- The completion write, completion side effects (leaderboard append,
  collection update) and deletes are non-cancellable
- Work sharing a chain key runs in issue order: progress writes chain on
  the quest id, collection writes on ``user:<user_id>``

Example Usage
-------------
>>> reconciler = SyncReconciler(store, user_id="u-1")
>>> reconciler.bind_quest("Q1")
>>> reconciler.push(ProgressPatch("Q1", {"attempts.A": 2}))
>>> await reconciler.drain()
>>> reconciler.stats
{'sent': 1, 'retried': 0, 'dropped': 0, 'discarded': 0, 'cancelled': 0}
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from museumquest.core.exceptions import TransientSyncFailure, should_alert
from museumquest.core.logging.logger import get_logger
from museumquest.core.retry_policy import RetryPolicy
from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.base import DomainEvent, DomainValidationError
from museumquest.domain.models.progress import (
    ATTEMPTS_PREFIX,
    FIELD_ACCEPTED_AT,
    FIELD_COMPLETED,
    FIELD_COMPLETED_AT,
    FIELD_QUEST_ID,
    FIELD_SUBMITTED,
    FIELD_USER_ID,
    HINTS_PREFIX,
    QuestProgress,
)
from museumquest.domain.models.quest import Quest
from museumquest.modules.progress.merge import merge_progress, repair_fields

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressPatch:
    """A partial update for one ``(user, quest)`` progress record."""

    quest_id: str
    fields: Dict[str, Any]
    replace: bool = False
    kind: str = "patch"
    cancellable: bool = True


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    Result of ``SyncReconciler.reconcile``.

    Attributes
    ----------
    progress : Optional[QuestProgress]
        Merged record, or None when discarded or nothing exists anywhere
    discarded : bool
        The response arrived for a quest that is no longer bound
    remote_found : bool
        A remote record existed and was merged in
    repaired_fields : Dict[str, Any]
        Fields pushed back to converge the remote copy
    """

    progress: Optional[QuestProgress]
    discarded: bool = False
    remote_found: bool = False
    repaired_fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _TaskTag:
    quest_id: Optional[str]
    kind: str
    cancellable: bool
    chain: Optional[str]


def patch_from_event(event: DomainEvent) -> Optional[ProgressPatch]:
    """
    Map a QuestProgress domain event to the partial update it implies.

    Returns None for events that have no progress-record write.
    """
    payload = event.payload
    quest_id = payload.get("quest_id")
    if not quest_id:
        return None

    if event.event_name == "progress.accepted":
        return ProgressPatch(quest_id, dict(payload["fields"]), replace=True, kind="accept")

    if event.event_name == "progress.artefact_submitted":
        return ProgressPatch(
            quest_id,
            {FIELD_SUBMITTED: list(payload["submitted_artefact_ids"])},
            kind="submit",
        )

    if event.event_name == "progress.attempt_recorded":
        return ProgressPatch(
            quest_id,
            {f"{ATTEMPTS_PREFIX}{payload['artefact_id']}": payload["attempts"]},
            kind="attempt",
        )

    if event.event_name == "progress.hints_displayed":
        return ProgressPatch(
            quest_id,
            {f"{HINTS_PREFIX}{key}": True for key in payload["keys"]},
            kind="hints",
        )

    if event.event_name == "progress.completed":
        # Carries the identity and submission log so the terminal write
        # stands alone if earlier writes never landed
        fields: Dict[str, Any] = {}
        if payload.get("user_id"):
            fields[FIELD_USER_ID] = payload["user_id"]
            fields[FIELD_QUEST_ID] = quest_id
        if payload.get("accepted_at"):
            fields[FIELD_ACCEPTED_AT] = payload["accepted_at"]
        fields[FIELD_SUBMITTED] = list(payload.get("submitted_artefact_ids") or [])
        fields[FIELD_COMPLETED_AT] = payload["completed_at"]
        fields[FIELD_COMPLETED] = True
        return ProgressPatch(quest_id, fields, kind="complete", cancellable=False)

    return None


class SyncReconciler:
    """
    Background persistence for one signed-in user.

    Args:
        store: Remote store adapter
        user_id: Signed-in user the progress records belong to
        retry_policy: Bounded retry policy (defaults to config-driven)
    """

    def __init__(
        self,
        store: RemoteStore,
        user_id: str,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._retry_policy = retry_policy or RetryPolicy()

        self._tasks: Dict["asyncio.Task[Any]", _TaskTag] = {}
        self._tails: Dict[str, "asyncio.Task[Any]"] = {}
        self._bound_quest_id: Optional[str] = None
        self._epoch = 0

        # Metrics
        self._sent = 0
        self._retried = 0
        self._dropped = 0
        self._discarded = 0
        self._cancelled = 0

    # ═══════════════════════════════════════════════════════════════════════
    # QUEST BINDING
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def bound_quest_id(self) -> Optional[str]:
        return self._bound_quest_id

    def bind_quest(self, quest_id: Optional[str], cancel_previous: bool = True) -> None:
        """
        Bind the reconciler to ``quest_id`` (None when no quest is active).

        Cancellable requests issued for any other quest are cancelled and
        their late responses discarded. Pass ``cancel_previous=False`` when
        leaving a completed attempt: its writes still land, only late
        fetches are discarded.
        """
        if quest_id == self._bound_quest_id:
            return

        previous = self._bound_quest_id
        self._bound_quest_id = quest_id
        self._epoch += 1
        cancelled = 0
        if cancel_previous:
            cancelled = self._cancel_where(lambda tag: tag.quest_id != quest_id)

        logger.debug(
            "Reconciler rebound",
            extra={
                "previous_quest_id": previous,
                "bound_quest_id": quest_id,
                "cancelled_requests": cancelled,
            },
        )

    def cancel_all(self) -> int:
        """Cancel every cancellable in-flight request (sign-out)."""
        self._epoch += 1
        self._bound_quest_id = None
        return self._cancel_where(lambda tag: True)

    def _cancel_where(self, predicate: Callable[[_TaskTag], bool]) -> int:
        count = 0
        for task, tag in list(self._tasks.items()):
            if tag.cancellable and not task.done() and predicate(tag):
                task.cancel()
                count += 1
        self._cancelled += count
        return count

    # ═══════════════════════════════════════════════════════════════════════
    # BACKGROUND WRITES
    # ═══════════════════════════════════════════════════════════════════════

    def push(self, patch: ProgressPatch, retry: bool = True) -> "asyncio.Task[bool]":
        """
        Send ``patch`` in the background.

        Writes for the same quest are applied in the order they were pushed.
        """
        return self._schedule(
            patch.quest_id,
            patch.kind,
            lambda: self._store.patch_progress(
                self._user_id, patch.quest_id, patch.fields, replace=patch.replace
            ),
            cancellable=patch.cancellable,
            retry=retry,
            chain=patch.quest_id,
        )

    def push_events(self, events: List[DomainEvent], hint_retry: bool = False) -> List["asyncio.Task[bool]"]:
        """Push one patch per QuestProgress event."""
        tasks = []
        for event in events:
            patch = patch_from_event(event)
            if patch is None:
                continue
            retry = hint_retry if patch.kind == "hints" else True
            tasks.append(self.push(patch, retry=retry))
        return tasks

    def push_delete(self, quest_id: str) -> "asyncio.Task[bool]":
        """Delete the remote progress record; not cancellable."""
        return self._schedule(
            quest_id,
            "delete",
            lambda: self._store.delete_progress(self._user_id, quest_id),
            cancellable=False,
            retry=True,
            chain=quest_id,
        )

    def dispatch(
        self,
        quest_id: Optional[str],
        kind: str,
        factory: Callable[[], Awaitable[Any]],
        cancellable: bool = True,
        retry: bool = True,
        chain: Optional[str] = None,
    ) -> "asyncio.Task[bool]":
        """
        Run a side-effect write (collection, leaderboard) in the background.

        ``factory`` must return a fresh awaitable on every call so it can be
        retried. Side effects sharing a ``chain`` key run one after another
        in issue order; without one they run concurrently. Chain keys for
        side effects must not collide with quest ids.
        """
        return self._schedule(
            quest_id, kind, factory, cancellable=cancellable, retry=retry, chain=chain
        )

    def _schedule(
        self,
        quest_id: Optional[str],
        kind: str,
        factory: Callable[[], Awaitable[Any]],
        cancellable: bool,
        retry: bool,
        chain: Optional[str],
    ) -> "asyncio.Task[bool]":
        previous = self._tails.get(chain) if chain else None
        task = asyncio.create_task(self._run(quest_id, kind, factory, retry, previous))
        self._tasks[task] = _TaskTag(quest_id, kind, cancellable, chain)
        if chain:
            self._tails[chain] = task
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: "asyncio.Task[Any]") -> None:
        tag = self._tasks.pop(task, None)
        if tag is not None and tag.chain and self._tails.get(tag.chain) is task:
            del self._tails[tag.chain]

    async def _run(
        self,
        quest_id: Optional[str],
        kind: str,
        factory: Callable[[], Awaitable[Any]],
        retry: bool,
        previous: Optional["asyncio.Task[Any]"],
    ) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        budget = self._retry_policy.max_attempts if retry else 1
        calls = 0

        async def attempt() -> Any:
            nonlocal calls
            calls += 1
            return await factory()

        try:
            await self._retry_policy.execute(attempt, f"sync.{kind}", max_attempts=budget)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._retried += max(0, calls - 1)
            self._dropped += 1
            failure = TransientSyncFailure(quest_id or "-", kind, calls, exc)
            # Errors that are not store failures (bugs, bad payloads) alert.
            logger.log(
                logging.ERROR if should_alert(exc) else logging.WARNING,
                "Background write dropped",
                extra={"quest_id": quest_id, "sync_failure": failure.to_dict()},
            )
            return False

        self._retried += max(0, calls - 1)
        self._sent += 1
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # RECONCILIATION
    # ═══════════════════════════════════════════════════════════════════════

    async def reconcile(
        self,
        quest: Quest,
        local: Optional[QuestProgress],
        now: datetime,
    ) -> ReconcileOutcome:
        """
        Fetch the remote record for ``quest``, merge it with ``local`` and
        push the fields the remote copy lacks.

        The fetch is tagged with the bound quest; if the binding changes
        before the response arrives, the response is discarded.
        """
        quest_id = quest.quest_id
        epoch = self._epoch

        fetch = asyncio.create_task(
            self._retry_policy.execute(
                lambda: self._store.get_progress(self._user_id, quest_id),
                "sync.fetch",
            )
        )
        self._tasks[fetch] = _TaskTag(quest_id, "fetch", cancellable=True, chain=None)
        fetch.add_done_callback(self._forget)

        await asyncio.wait({fetch})

        if fetch.cancelled() or epoch != self._epoch or self._bound_quest_id != quest_id:
            self._discarded += 1
            if not fetch.cancelled() and fetch.exception() is not None:
                logger.debug("Discarded failed fetch", extra={"quest_id": quest_id})
            logger.info(
                "Discarded late reconciliation response",
                extra={"quest_id": quest_id, "bound_quest_id": self._bound_quest_id},
            )
            return ReconcileOutcome(progress=None, discarded=True)

        error = fetch.exception()
        if error is not None:
            self._dropped += 1
            failure = TransientSyncFailure(quest_id, "fetch", self._retry_policy.max_attempts, error)
            logger.warning(
                "Reconciliation fetch failed, keeping local progress",
                extra={"quest_id": quest_id, "sync_failure": failure.to_dict()},
            )
            return ReconcileOutcome(progress=local)

        remote = self._decode(fetch.result(), quest_id)
        merged = merge_progress(local, remote, quest, now)
        if merged is None:
            return ReconcileOutcome(progress=None)

        repaired = repair_fields(merged, remote)
        if repaired:
            self.push(ProgressPatch(quest_id, repaired, kind="repair"))

        logger.info(
            "Progress reconciled",
            extra={
                "quest_id": quest_id,
                "remote_found": remote is not None,
                "submitted_count": merged.submitted_count,
                "repaired_fields": sorted(repaired),
            },
        )
        return ReconcileOutcome(
            progress=merged,
            remote_found=remote is not None,
            repaired_fields=repaired,
        )

    def _decode(self, record: Optional[Dict[str, Any]], quest_id: str) -> Optional[QuestProgress]:
        if not record:
            return None
        try:
            return QuestProgress.from_record(record)
        except DomainValidationError as exc:
            logger.warning(
                "Ignoring unreadable remote progress record",
                extra={"quest_id": quest_id, "error": str(exc)},
            )
            return None

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight work, including work scheduled while waiting.

        Returns False if ``timeout`` elapsed first.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            pending = {task for task in self._tasks if not task.done()}
            if not pending:
                return True
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            _, still_pending = await asyncio.wait(pending, timeout=remaining)
            if still_pending and deadline is not None and loop.time() >= deadline:
                logger.warning("Drain timed out", extra={"pending": len(still_pending)})
                return False

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "sent": self._sent,
            "retried": self._retried,
            "dropped": self._dropped,
            "discarded": self._discarded,
            "cancelled": self._cancelled,
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            "user_id": self._user_id,
            "bound_quest_id": self._bound_quest_id,
            "in_flight": self.in_flight,
            **self.stats,
        }
