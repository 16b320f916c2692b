"""
Reconciliation merge for QuestProgress.

Purpose
-------
Combine the optimistic local progress record with the durable remote copy.
The local copy may hold mutations that were never flushed; the remote copy
may hold mutations from another device or session.

Per-field rules
---------------
===================== =========================================================
field                 rule
===================== =========================================================
submittedArtefactIds  remote authoritative (the durable submission log),
                      sanitized against the quest definition
attempts              element-wise maximum
displayedHints        set union
acceptedAt            remote, else local
completedAt           remote, else local when the merged count is complete,
                      else ``now`` when the merged count is complete
===================== =========================================================

Completion is re-derived from counts after the merge, so a record never
carries ``completedAt`` without every artefact submitted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from museumquest.domain.models.progress import (
    ATTEMPTS_PREFIX,
    FIELD_COMPLETED,
    FIELD_COMPLETED_AT,
    FIELD_SUBMITTED,
    HINTS_PREFIX,
    QuestProgress,
)
from museumquest.domain.models.base import to_iso
from museumquest.domain.models.quest import Quest


def sanitize_submissions(submitted: List[str], quest: Quest) -> List[str]:
    """
    Drop ids that are not in the quest and duplicates.

    For a sequential quest the list is cut at the first id that does not
    match the authored order, so the result is always a prefix of it.
    """
    seen: Dict[str, None] = {}
    for artefact_id in submitted:
        if quest.has_artefact(artefact_id) and artefact_id not in seen:
            seen[artefact_id] = None
    cleaned = list(seen)

    if quest.is_sequential:
        prefix: List[str] = []
        for index, artefact_id in enumerate(cleaned):
            if quest.expected_artefact_id(index) != artefact_id:
                break
            prefix.append(artefact_id)
        return prefix
    return cleaned


def merge_progress(
    local: Optional[QuestProgress],
    remote: Optional[QuestProgress],
    quest: Quest,
    now: datetime,
) -> Optional[QuestProgress]:
    """
    Merge ``local`` and ``remote`` into a new QuestProgress.

    Either side may be None. The inputs are not modified.
    """
    # The remote submission log is authoritative when there is one
    base = remote if remote is not None else local
    if base is None:
        return None

    submitted = sanitize_submissions(list(base.submitted_artefact_ids), quest)
    accepted_at = base.accepted_at

    attempts: Dict[str, int] = dict(base.attempts)
    hints: Dict[str, None] = {}
    for side in (local, remote):
        if side is None:
            continue
        for artefact_id, count in side.attempts.items():
            attempts[artefact_id] = max(attempts.get(artefact_id, 0), count)
        for key in side.displayed_hints:
            hints[key] = None

    complete_by_count = len(submitted) == quest.total_artefacts
    completed_at: Optional[datetime] = None
    if complete_by_count:
        if remote is not None and remote.completed_at is not None:
            completed_at = remote.completed_at
        elif local is not None and local.completed_at is not None:
            completed_at = local.completed_at
        else:
            completed_at = now

    return QuestProgress(
        user_id=base.user_id,
        quest_id=base.quest_id,
        accepted_at=accepted_at,
        submitted_artefact_ids=submitted,
        attempts=attempts,
        displayed_hints=list(hints),
        completed_at=completed_at,
    )


def repair_fields(merged: QuestProgress, remote: Optional[QuestProgress]) -> Dict[str, Any]:
    """
    Flat fields the remote copy lacks compared with ``merged``.

    Pushing these converges the remote record without overwriting fields
    the remote already has right. With no remote record this is the full
    field set.
    """
    if remote is None:
        return merged.to_fields()

    fields: Dict[str, Any] = {}
    if list(merged.submitted_artefact_ids) != list(remote.submitted_artefact_ids):
        fields[FIELD_SUBMITTED] = list(merged.submitted_artefact_ids)

    remote_attempts = remote.attempts
    for artefact_id, count in merged.attempts.items():
        if count > remote_attempts.get(artefact_id, 0):
            fields[f"{ATTEMPTS_PREFIX}{artefact_id}"] = count

    for key in merged.displayed_hints:
        if not remote.has_displayed(key):
            fields[f"{HINTS_PREFIX}{key}"] = True

    if merged.completed_at is not None and remote.completed_at is None:
        fields[FIELD_COMPLETED_AT] = to_iso(merged.completed_at)
        fields[FIELD_COMPLETED] = True

    return fields
