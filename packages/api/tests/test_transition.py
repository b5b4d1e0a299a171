# This project was developed with assistance from AI tools.
"""Tests for the workflow transition engine."""

import pytest
from docflow_db.enums import ApprovalStatus, DocumentApprovalStatus, DocumentStatus

from docflow.services.transition import (
    TRANSITIONS,
    LevelProgress,
    StatusResult,
    compute_status,
    level_complete,
)
from factories import make_approval, make_chain

APPROVED = ApprovalStatus.APPROVED
SIGNED = ApprovalStatus.SIGNED

# ---------------------------------------------------------------------------
# Status partition
# ---------------------------------------------------------------------------


def test_status_partition_is_exhaustive():
    """Every DocumentStatus is either derived by the engine or set externally."""
    engine = DocumentStatus.workflow_statuses()
    external = DocumentStatus.external_statuses()
    assert engine.isdisjoint(external)
    assert engine | external == set(DocumentStatus)


def test_transition_table_only_yields_engine_statuses():
    assert {status for _, status in TRANSITIONS} <= DocumentStatus.workflow_statuses()


# ---------------------------------------------------------------------------
# Level completion
# ---------------------------------------------------------------------------


def test_empty_level_is_vacuously_complete():
    approvals = make_chain({1: ["rev-1"]})
    assert level_complete(approvals, 3) is True


def test_level_incomplete_while_any_record_not_approved():
    approvals = make_chain({1: ["rev-1", "rev-2"]}, {"rev-1": APPROVED, "rev-2": SIGNED})
    assert level_complete(approvals, 1) is False


def test_deleted_records_do_not_block_level():
    approvals = [
        make_approval(1, 1, "rev-1", status=APPROVED),
        make_approval(2, 1, "rev-2", is_deleted=True),
    ]
    assert level_complete(approvals, 1) is True


def test_level_progress_flags():
    approvals = make_chain({1: ["rev-1"], 2: ["apr-1"]}, {"rev-1": APPROVED})
    progress = LevelProgress.from_approvals(approvals)
    assert progress == LevelProgress(
        level1_done=True, level2_done=False, level3_done=True, level3_populated=False,
    )


# ---------------------------------------------------------------------------
# compute_status
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("levels", "statuses", "expected"),
    [
        ({1: ["rev-1"], 2: ["apr-1"], 3: ["ack-1"]}, {}, DocumentStatus.IN_REVIEW),
        ({1: ["rev-1"], 2: ["apr-1"], 3: ["ack-1"]}, {"rev-1": SIGNED}, DocumentStatus.IN_REVIEW),
        ({1: ["rev-1"], 2: ["apr-1"], 3: ["ack-1"]}, {"rev-1": APPROVED}, DocumentStatus.ON_APPROVAL),
        (
            {1: ["rev-1"], 2: ["apr-1"], 3: ["ack-1"]},
            {"rev-1": APPROVED, "apr-1": APPROVED},
            DocumentStatus.PENDING_ACKNOWLEDGED,
        ),
        (
            {1: ["rev-1"], 2: ["apr-1"], 3: ["ack-1"]},
            {"rev-1": APPROVED, "apr-1": APPROVED, "ack-1": APPROVED},
            DocumentStatus.WAITING_VALIDATION,
        ),
        ({1: ["rev-1"], 2: ["apr-1"]}, {"rev-1": APPROVED, "apr-1": APPROVED}, DocumentStatus.WAITING_VALIDATION),
    ],
)
def test_compute_status_table(levels, statuses, expected):
    result = compute_status(make_chain(levels, statuses))
    assert result == StatusResult(expected, DocumentApprovalStatus.IN_PROGRESS)


def test_scenario_a_level3_vacuous():
    """Two reviewers and one approver, no acknowledgers."""
    approvals = make_chain({1: ["rev-1", "rev-2"], 2: ["apr-1"]})

    approvals[0].status = APPROVED
    assert compute_status(approvals).status == DocumentStatus.IN_REVIEW

    approvals[1].status = APPROVED
    assert compute_status(approvals).status == DocumentStatus.ON_APPROVAL

    approvals[2].status = APPROVED
    assert compute_status(approvals).status == DocumentStatus.WAITING_VALIDATION


def test_scenario_b_acknowledger_holds_validation():
    approvals = make_chain({1: ["rev-1", "rev-2"], 2: ["apr-1"], 3: ["ack-1"]})
    for approval in approvals[:3]:
        approval.status = APPROVED
    assert compute_status(approvals).status == DocumentStatus.PENDING_ACKNOWLEDGED

    approvals[3].status = APPROVED
    assert compute_status(approvals).status == DocumentStatus.WAITING_VALIDATION


def test_vacuous_level1_goes_straight_to_approval_level():
    approvals = make_chain({2: ["apr-1"]})
    assert compute_status(approvals).status == DocumentStatus.ON_APPROVAL


def test_only_acknowledgers_populated():
    approvals = make_chain({3: ["ack-1"]})
    assert compute_status(approvals).status == DocumentStatus.PENDING_ACKNOWLEDGED


def test_rejection_short_circuits_table():
    approvals = make_chain(
        {1: ["rev-1"], 2: ["apr-1"]},
        {"rev-1": APPROVED, "apr-1": ApprovalStatus.REJECTED},
    )
    assert compute_status(approvals) == StatusResult(
        DocumentStatus.REVISION_REQUIRED, DocumentApprovalStatus.REJECTED,
    )


def test_deleted_rejection_is_ignored():
    approvals = [
        make_approval(1, 1, "rev-1", status=ApprovalStatus.REJECTED, is_deleted=True),
        make_approval(2, 1, "rev-1", status=APPROVED, revision_cycle=1),
    ]
    assert compute_status(approvals).status == DocumentStatus.WAITING_VALIDATION


def test_compute_status_is_deterministic_and_order_independent():
    approvals = make_chain(
        {1: ["rev-1", "rev-2"], 2: ["apr-1"], 3: ["ack-1"]},
        {"rev-1": APPROVED, "rev-2": APPROVED},
    )
    first = compute_status(approvals)
    assert compute_status(approvals) == first
    assert compute_status(list(reversed(approvals))) == first
