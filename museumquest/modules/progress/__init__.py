"""
Progress Module
===============

Domain: one visitor's attempt at one quest

Components:
- ProgressStore: session-scoped active quest, the UI entry point
- SubmissionValidator: accept / reject / duplicate decision
- HintPolicy: hint visibility
- merge_progress: local/remote merge rules
- SyncReconciler: background persistence and reconciliation
"""

from .hints import HintPolicy, VisibleHints
from .merge import merge_progress, repair_fields, sanitize_submissions
from .store import (
    ProgressStore,
    SessionState,
    SubmissionResult,
    SubmissionStatus,
)
from .sync import ProgressPatch, ReconcileOutcome, SyncReconciler, patch_from_event
from .validator import (
    Decision,
    RejectionReason,
    SubmissionDecision,
    SubmissionValidator,
    ValidationRejection,
)

__all__ = [
    "ProgressStore",
    "SessionState",
    "SubmissionResult",
    "SubmissionStatus",
    "SubmissionValidator",
    "SubmissionDecision",
    "Decision",
    "RejectionReason",
    "ValidationRejection",
    "HintPolicy",
    "VisibleHints",
    "merge_progress",
    "repair_fields",
    "sanitize_submissions",
    "SyncReconciler",
    "ProgressPatch",
    "ReconcileOutcome",
    "patch_from_event",
]
