"""
Unit Tests for SubmissionValidator
==================================

Purpose
-------
Test the pure accept / reject / duplicate decision.

Test Coverage
-------------
- Sequential quests: only the next artefact in authored order is accepted
- Open quests: any quest artefact in any order
- Duplicates (including re-scanning an earlier sequential artefact)
- Artefacts outside the quest
- Count-based completion and the advisory next-artefact check
- Decision rules replayed over every order of the quest artefacts

Testing Strategy
----------------
- Unit tests (fast, no store)
- Progress records built directly, no ProgressStore
"""

import itertools
from datetime import datetime, timezone

import pytest

from museumquest.domain.models.progress import QuestProgress
from museumquest.modules.progress.validator import (
    ALREADY_SUBMITTED_MESSAGE,
    OUT_OF_ORDER_MESSAGE,
    Decision,
    RejectionReason,
    SubmissionValidator,
)

START = datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)


def _progress(quest_id: str, *submitted: str) -> QuestProgress:
    return QuestProgress("u-1", quest_id, START, submitted_artefact_ids=submitted)


@pytest.fixture
def validator() -> SubmissionValidator:
    return SubmissionValidator()


@pytest.mark.unit
class TestSequentialDecisions:
    """Test decisions on sequential quest Q1 [A, B, C]."""

    def test_first_artefact_accepted(self, validator, sequential_quest):
        decision = validator.decide(_progress("Q1"), sequential_quest, "A")

        assert decision.decision is Decision.ACCEPT
        assert decision.accepted
        assert decision.rejection is None

    def test_out_of_order_rejected_with_expected(self, validator, sequential_quest):
        """Test submitting B first names A as the expected artefact."""
        decision = validator.decide(_progress("Q1"), sequential_quest, "B")

        assert decision.decision is Decision.REJECT
        assert decision.rejection.reason is RejectionReason.OUT_OF_ORDER
        assert decision.rejection.expected_artefact_id == "A"
        assert decision.rejection.message == OUT_OF_ORDER_MESSAGE

    def test_next_after_prefix_accepted(self, validator, sequential_quest):
        decision = validator.decide(_progress("Q1", "A"), sequential_quest, "B")

        assert decision.accepted

    def test_earlier_artefact_is_duplicate(self, validator, sequential_quest):
        """Test re-scanning an already collected artefact is a duplicate, not a reject."""
        decision = validator.decide(_progress("Q1", "A", "B"), sequential_quest, "A")

        assert decision.decision is Decision.DUPLICATE
        assert decision.rejection.reason is RejectionReason.ALREADY_SUBMITTED
        assert decision.rejection.message == ALREADY_SUBMITTED_MESSAGE

    def test_skipping_ahead_rejected(self, validator, sequential_quest):
        decision = validator.decide(_progress("Q1", "A"), sequential_quest, "C")

        assert decision.rejection.reason is RejectionReason.OUT_OF_ORDER
        assert decision.rejection.expected_artefact_id == "B"


@pytest.mark.unit
class TestOpenDecisions:
    """Test decisions on open quest Q2 [X, Y, Z]."""

    @pytest.mark.parametrize("artefact_id", ["X", "Y", "Z"])
    def test_any_quest_artefact_accepted(self, validator, open_quest, artefact_id):
        assert validator.decide(_progress("Q2"), open_quest, artefact_id).accepted

    def test_duplicate(self, validator, open_quest):
        decision = validator.decide(_progress("Q2", "Z"), open_quest, "Z")

        assert decision.decision is Decision.DUPLICATE

    def test_foreign_artefact_rejected(self, validator, open_quest):
        decision = validator.decide(_progress("Q2"), open_quest, "A")

        assert decision.decision is Decision.REJECT
        assert decision.rejection.reason is RejectionReason.NOT_IN_QUEST
        assert decision.rejection.expected_artefact_id is None


@pytest.mark.unit
class TestCompletionChecks:
    """Test is_complete and is_next_sequential."""

    def test_complete_only_when_all_submitted(self, sequential_quest):
        assert not SubmissionValidator.is_complete(_progress("Q1", "A", "B"), sequential_quest)
        assert SubmissionValidator.is_complete(_progress("Q1", "A", "B", "C"), sequential_quest)

    def test_open_quest_completes_in_any_order(self, open_quest):
        assert SubmissionValidator.is_complete(_progress("Q2", "Z", "X", "Y"), open_quest)

    def test_is_next_sequential(self, sequential_quest):
        assert SubmissionValidator.is_next_sequential(None, sequential_quest, "A")
        assert SubmissionValidator.is_next_sequential(_progress("Q1", "A"), sequential_quest, "B")
        assert not SubmissionValidator.is_next_sequential(_progress("Q1", "A"), sequential_quest, "C")

    def test_is_next_sequential_false_for_open_quest(self, open_quest):
        assert not SubmissionValidator.is_next_sequential(None, open_quest, "X")

    def test_decision_is_replayable(self, validator, sequential_quest):
        """Test the same inputs always give the same decision."""
        progress = _progress("Q1", "A")

        first = validator.decide(progress, sequential_quest, "C")
        second = validator.decide(progress, sequential_quest, "C")

        assert first == second
        assert progress.submitted_artefact_ids == ("A",)


def _replay(validator, quest, quest_id, scans):
    """Feed ``scans`` through the validator, applying each accept."""
    progress = _progress(quest_id)
    decisions = []
    for artefact_id in scans:
        decision = validator.decide(progress, quest, artefact_id)
        if decision.accepted:
            progress.add_submission(artefact_id)
        decisions.append(decision)
    return progress, decisions


@pytest.mark.unit
class TestDecisionProperties:
    """Test the decision rules over every ordering."""

    @pytest.mark.parametrize("order", list(itertools.permutations(("X", "Y", "Z", "A"))))
    def test_open_quest_accepts_every_member_once(self, validator, open_quest, order):
        progress, decisions = _replay(validator, open_quest, "Q2", order + order)

        assert set(progress.submitted_artefact_ids) == {"X", "Y", "Z"}
        assert progress.submitted_artefact_ids == tuple(a for a in order if a != "A")
        assert SubmissionValidator.is_complete(progress, open_quest)
        assert all(d.decision is Decision.DUPLICATE for d in decisions[len(order):] if d.artefact_id != "A")
        assert all(d.decision is Decision.REJECT for d in decisions if d.artefact_id == "A")

    @pytest.mark.parametrize("order", list(itertools.permutations(("A", "B", "C"))))
    def test_sequential_accepts_form_a_prefix(self, validator, sequential_quest, order):
        progress, decisions = _replay(validator, sequential_quest, "Q1", order)

        submitted = progress.submitted_artefact_ids
        assert submitted == ("A", "B", "C")[: len(submitted)]
        assert SubmissionValidator.is_complete(progress, sequential_quest) == (order == ("A", "B", "C"))
        for decision in decisions:
            if decision.decision is Decision.REJECT:
                assert decision.rejection.reason is RejectionReason.OUT_OF_ORDER

    @pytest.mark.parametrize(
        "k, later",
        [(k, later) for k in range(3) for later in range(k + 1, 3)],
    )
    def test_later_artefact_before_expected_rejected(self, validator, sequential_quest, k, later):
        authored = ("A", "B", "C")

        decision = validator.decide(_progress("Q1", *authored[:k]), sequential_quest, authored[later])

        assert decision.decision is Decision.REJECT
        assert decision.rejection.expected_artefact_id == authored[k]
