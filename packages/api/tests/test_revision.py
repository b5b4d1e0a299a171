# This project was developed with assistance from AI tools.
"""Tests for the revision reset handler."""

from datetime import timedelta

import pytest
from docflow_db.enums import ApprovalStatus, DocumentApprovalStatus, DocumentStatus

from docflow.services.errors import StateError, ValidationError
from docflow.services.revision import (
    ADMIN_LEVEL,
    check_revision_allowed,
    reset_for_revision,
    signature_snapshot,
)
from docflow.services.transition import compute_status
from factories import T0, make_approval, make_chain, make_document

LATER = T0 + timedelta(days=1)


@pytest.fixture
def chain():
    return make_chain(
        {1: ["rev-1", "rev-2"], 2: ["apr-1"]},
        {"rev-1": ApprovalStatus.APPROVED, "rev-2": ApprovalStatus.APPROVED,
         "apr-1": ApprovalStatus.SIGNED},
    )


def test_reset_starts_new_cycle(chain):
    doc = make_document(status=DocumentStatus.ON_APPROVAL)
    outcome = reset_for_revision(doc, chain, "apr-1", 2, "Scope section is outdated", approval_id=3, now=LATER)

    assert doc.revision_cycle == 1
    assert doc.status == DocumentStatus.ON_REVISION
    assert doc.approval_status == DocumentApprovalStatus.NEEDS_REVISION
    assert doc.prepared_by_signature is not None

    assert all(a.is_deleted and a.deleted_at == LATER for a in outcome.retired)
    assert chain[2].status == ApprovalStatus.NEEDS_REVISION
    assert chain[2].comments == "Scope section is outdated"
    assert chain[0].status == ApprovalStatus.APPROVED


def test_fresh_records_mirror_old_order(chain):
    doc = make_document(status=DocumentStatus.ON_APPROVAL)
    outcome = reset_for_revision(doc, chain, "apr-1", 2, "Scope section is outdated", now=LATER)

    assert [(a.level, a.approver_id) for a in outcome.fresh] == [
        (1, "rev-1"), (1, "rev-2"), (2, "apr-1"),
    ]
    for fresh in outcome.fresh:
        assert fresh.status == ApprovalStatus.PENDING
        assert fresh.revision_cycle == 1
        assert fresh.signature_image is None
        assert fresh.signed_at is None
        assert fresh.confirmed_at is None
        assert fresh.is_deleted is False


def test_fresh_set_computes_back_to_in_review(chain):
    doc = make_document(status=DocumentStatus.ON_APPROVAL)
    outcome = reset_for_revision(doc, chain, "apr-1", 2, "Scope section is outdated")
    assert compute_status(chain + outcome.fresh).status == DocumentStatus.IN_REVIEW


def test_revision_request_records_snapshot(chain):
    doc = make_document(status=DocumentStatus.ON_APPROVAL)
    outcome = reset_for_revision(doc, chain, "apr-1", 2, "Scope section is outdated", approval_id=3)
    request = outcome.revision_request

    assert request.document_id == doc.id
    assert request.requested_by_id == "apr-1"
    assert request.approval_level == 2
    assert request.approval_id == 3
    assert request.revision_cycle == 1
    snapshot = request.signature_snapshot
    assert snapshot["prepared_by"]["signed_at"] == T0.isoformat()
    assert [a["approver_id"] for a in snapshot["approvals"]] == ["rev-1", "rev-2", "apr-1"]
    assert snapshot["approvals"][0]["status"] == "APPROVED"


def test_snapshot_skips_deleted_records():
    doc = make_document()
    approvals = [make_approval(1, 1, "rev-1", is_deleted=True), make_approval(2, 1, "rev-1")]
    outcome = reset_for_revision(doc, approvals, "rev-1", 1, "Needs a new diagram")
    assert len(outcome.revision_request.signature_snapshot["approvals"]) == 1
    assert len(outcome.fresh) == 1


def test_admin_level_constant():
    assert ADMIN_LEVEL == 0


def test_signature_snapshot_is_json_safe(chain):
    snapshot = signature_snapshot(make_document(), chain)
    assert isinstance(snapshot["approvals"][0]["signed_at"], str)
    assert snapshot["approvals"][2]["confirmed_at"] is None


# ---------------------------------------------------------------------------
# check_revision_allowed
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "status",
    [DocumentStatus.IN_REVIEW, DocumentStatus.ON_APPROVAL, DocumentStatus.PENDING_ACKNOWLEDGED],
)
def test_revision_allowed_while_in_flight(status):
    assert check_revision_allowed(make_document(status=status), "  Please fix the table  ") == "Please fix the table"


@pytest.mark.parametrize(
    "status",
    [DocumentStatus.DRAFT, DocumentStatus.WAITING_VALIDATION, DocumentStatus.APPROVED, DocumentStatus.ON_REVISION],
)
def test_revision_refused_outside_flight(status):
    with pytest.raises(StateError):
        check_revision_allowed(make_document(status=status), "Please fix the table")


def test_short_reason_refused():
    with pytest.raises(ValidationError) as exc_info:
        check_revision_allowed(make_document(), "too short")
    assert exc_info.value.errors == [
        {"field": "reason", "message": "Reason must be at least 10 characters"},
    ]
