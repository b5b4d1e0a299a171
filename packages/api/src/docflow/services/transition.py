# This project was developed with assistance from AI tools.
"""Workflow transition engine.

Pure functions -- no DB calls. Derives the document-level status from the
active approval records. Called after every sign, confirm and reject so the
persisted status never drifts from the ledger.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from docflow_db.enums import (
    ApprovalLevel,
    ApprovalStatus,
    DocumentApprovalStatus,
    DocumentStatus,
)


@dataclass(frozen=True)
class StatusResult:
    """Document status pair produced by ``compute_status``."""

    status: DocumentStatus
    approval_status: DocumentApprovalStatus


@dataclass(frozen=True)
class LevelProgress:
    """Per-level completion flags over the active approval set."""

    level1_done: bool
    level2_done: bool
    level3_done: bool
    level3_populated: bool

    @classmethod
    def from_approvals(cls, approvals: Iterable) -> "LevelProgress":
        active = [a for a in approvals if not a.is_deleted]
        return cls(
            level1_done=level_complete(active, ApprovalLevel.REVIEWER),
            level2_done=level_complete(active, ApprovalLevel.APPROVER),
            level3_done=level_complete(active, ApprovalLevel.ACKNOWLEDGER),
            level3_populated=any(a.level == ApprovalLevel.ACKNOWLEDGER for a in active),
        )


def level_complete(approvals: Iterable, level: int) -> bool:
    """True when every active record at ``level`` is APPROVED.

    A level with no active records is vacuously complete.
    """
    return all(
        a.status == ApprovalStatus.APPROVED
        for a in approvals
        if a.level == level and not a.is_deleted
    )


# Evaluated top to bottom; the first matching predicate wins.
TRANSITIONS: tuple[tuple[Callable[[LevelProgress], bool], DocumentStatus], ...] = (
    (
        lambda p: p.level1_done and p.level2_done and p.level3_done,
        DocumentStatus.WAITING_VALIDATION,
    ),
    (
        lambda p: p.level1_done and p.level2_done and p.level3_populated,
        DocumentStatus.PENDING_ACKNOWLEDGED,
    ),
    (
        lambda p: p.level1_done and not p.level2_done,
        DocumentStatus.ON_APPROVAL,
    ),
    (
        lambda p: p.level1_done and p.level2_done and not p.level3_populated,
        DocumentStatus.WAITING_VALIDATION,
    ),
)


def compute_status(approvals: Iterable) -> StatusResult:
    """Return the document status implied by the approval records.

    Soft-deleted records are ignored. Any active REJECTED record sends the
    document back to its requester before the level table is consulted.
    """
    active = [a for a in approvals if not a.is_deleted]

    if any(a.status == ApprovalStatus.REJECTED for a in active):
        return StatusResult(DocumentStatus.REVISION_REQUIRED, DocumentApprovalStatus.REJECTED)

    progress = LevelProgress.from_approvals(active)
    for predicate, status in TRANSITIONS:
        if predicate(progress):
            return StatusResult(status, DocumentApprovalStatus.IN_PROGRESS)
    return StatusResult(DocumentStatus.IN_REVIEW, DocumentApprovalStatus.IN_PROGRESS)
