"""
HintPolicy: which hints a visitor may see.

Rules
-----
- For an artefact with ``n`` authored hints and ``k`` recorded attempts,
  the visible hints are the first ``min(k, n)``.
- Hints already recorded in ``displayed_hints`` stay visible even if a
  merge later lowers the attempt count.
- Nothing is shown for an artefact already submitted, or once the quest is
  completed.

The policy is pure. Recording newly revealed keys and notifying the remote
store is the caller's job (see ProgressStore.visible_hints).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from museumquest.domain.models.progress import QuestProgress, hint_key
from museumquest.domain.models.quest import Hint, Quest


@dataclass(frozen=True)
class VisibleHints:
    """
    Hints to show for one artefact.

    Attributes
    ----------
    artefact_id : str
    hints : Tuple[Tuple[int, Hint], ...]
        ``(index, hint)`` pairs in authored order
    newly_revealed : Tuple[str, ...]
        Keys visible now that were not yet in ``displayed_hints``
    """

    artefact_id: str
    hints: Tuple[Tuple[int, Hint], ...] = ()
    newly_revealed: Tuple[str, ...] = field(default=())

    @property
    def keys(self) -> List[str]:
        return [hint_key(self.artefact_id, index) for index, _ in self.hints]

    @property
    def latest(self) -> Optional[Hint]:
        return self.hints[-1][1] if self.hints else None


class HintPolicy:
    """Pure hint visibility rules."""

    def visible_hints(
        self,
        progress: Optional[QuestProgress],
        quest: Quest,
        artefact_id: str,
    ) -> VisibleHints:
        if progress is None or progress.is_completed or progress.has_submitted(artefact_id):
            return VisibleHints(artefact_id)

        artefact = quest.get_artefact(artefact_id)
        if artefact is None or not artefact.hints:
            return VisibleHints(artefact_id)

        total = len(artefact.hints)
        by_attempts = min(progress.attempts_for(artefact_id), total)

        visible: List[Tuple[int, Hint]] = []
        newly: List[str] = []
        for index, hint in enumerate(artefact.hints):
            key = hint_key(artefact_id, index)
            already_displayed = progress.has_displayed(key)
            if index < by_attempts or already_displayed:
                visible.append((index, hint))
                if not already_displayed:
                    newly.append(key)

        return VisibleHints(artefact_id, tuple(visible), tuple(newly))
