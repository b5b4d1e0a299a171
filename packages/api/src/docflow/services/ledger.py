# This project was developed with assistance from AI tools.
"""Approval ledger.

Owns the per-approver approval records and their transitions: creation at
submission, sign (PENDING -> SIGNED, repeatable), confirm (SIGNED ->
APPROVED, once) and reject. Functions mutate ORM objects in place and never
touch the session; the workflow orchestrator persists and commits.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from docflow_db import Approval, Document
from docflow_db.enums import ApprovalLevel, ApprovalStatus, DocumentStatus

from .errors import AuthorizationError, NotFoundError, StateError, ValidationError

logger = logging.getLogger(__name__)

_VALID_LEVELS = {level.value for level in ApprovalLevel}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def creation_key(approval: Approval) -> tuple:
    """Sort key: creation time, ties broken by id."""
    return (approval.created_at or datetime.min.replace(tzinfo=UTC), approval.id or 0)


def active_approvals(approvals: Iterable[Approval]) -> list[Approval]:
    """Non-deleted records ordered by level, then creation order."""
    live = [a for a in approvals if not a.is_deleted]
    return sorted(live, key=lambda a: (a.level, *creation_key(a)))


def find_approval(approvals: Iterable[Approval], approval_id: int) -> Approval:
    """Return the active record with ``approval_id`` or raise NotFoundError."""
    for approval in approvals:
        if approval.id == approval_id and not approval.is_deleted:
            return approval
    raise NotFoundError("Approval not found")


def validate_assignments(assignments: Sequence) -> None:
    """Reject an empty list, a level outside 1..3, a blank approver id or a
    duplicate (level, approver_id) pair, reporting every problem at once.
    """
    if not assignments:
        raise ValidationError(
            "At least one approver is required",
            [{"field": "approvers", "message": "At least one approver is required"}],
        )

    errors: list[dict[str, str]] = []
    seen: set[tuple[int, str]] = set()
    for index, assignment in enumerate(assignments):
        approver_id = (assignment.approver_id or "").strip()
        if assignment.level not in _VALID_LEVELS:
            errors.append({
                "field": f"approvers[{index}].level",
                "message": "Level must be 1 (reviewer), 2 (approver) or 3 (acknowledger)",
            })
        if not approver_id:
            errors.append({
                "field": f"approvers[{index}].approver_id",
                "message": "Approver is required",
            })
        key = (assignment.level, approver_id)
        if approver_id and key in seen:
            errors.append({
                "field": f"approvers[{index}]",
                "message": f"Approver {approver_id} is already assigned at level {assignment.level}",
            })
        seen.add(key)

    if errors:
        raise ValidationError("Invalid approver assignments", errors)


def create_approval_entries(
    document: Document,
    assignments: Sequence,
    *,
    now: datetime | None = None,
) -> list[Approval]:
    """Build one PENDING record per ``(approver_id, level)`` assignment.

    Assignments may arrive in any order; records are created level by level,
    preserving the input order inside each level. Sequencing is enforced at
    sign time, not here.

    Raises:
        ValidationError: see ``validate_assignments``.
    """
    validate_assignments(assignments)
    created_at = now or _utcnow()
    ordered = sorted(assignments, key=lambda a: a.level)
    return [
        Approval(
            document_id=document.id,
            approver_id=assignment.approver_id.strip(),
            level=assignment.level,
            status=ApprovalStatus.PENDING,
            revision_cycle=document.revision_cycle,
            is_deleted=False,
            created_at=created_at,
        )
        for assignment in ordered
    ]


def _blocking_predecessors(approval: Approval, peers: Iterable[Approval]) -> list[Approval]:
    """Records that must be APPROVED before ``approval`` may sign."""
    own_key = creation_key(approval)
    blocking = []
    for other in peers:
        if other.is_deleted or other.id == approval.id:
            continue
        earlier = other.level < approval.level or (
            other.level == approval.level and creation_key(other) < own_key
        )
        if earlier and other.status != ApprovalStatus.APPROVED:
            blocking.append(other)
    return blocking


def sign(
    document: Document,
    approval: Approval | None,
    acting_user_id: str,
    signature_image: str,
    peers: Iterable[Approval],
    *,
    now: datetime | None = None,
) -> Approval:
    """Attach ``signature_image`` to the record and mark it SIGNED.

    Re-signing a SIGNED record replaces the image and timestamp; the record
    stays SIGNED.
    """
    if approval is None or approval.is_deleted:
        raise NotFoundError("Approval not found")
    if approval.approver_id != acting_user_id:
        raise AuthorizationError("You are not authorized to sign this approval")
    if approval.status == ApprovalStatus.APPROVED:
        raise StateError("cannot re-sign a confirmed approval")
    if approval.status not in (ApprovalStatus.PENDING, ApprovalStatus.SIGNED):
        raise StateError(f"Approval in status {approval.status.value} cannot be signed")
    if document.status not in DocumentStatus.in_flight_statuses():
        raise StateError(f"Document in {document.status.value} status is not awaiting signatures")
    if document.prepared_by_signed_at is None:
        raise StateError("Document must be signed by the creator first")
    if _blocking_predecessors(approval, peers):
        raise StateError("previous approvals must be fully approved first")

    approval.signature_image = signature_image
    approval.signed_at = now or _utcnow()
    approval.status = ApprovalStatus.SIGNED
    logger.info(
        "Approval %s (level %s) signed by %s", approval.id, approval.level, acting_user_id,
    )
    return approval


def confirm(
    approval: Approval | None,
    acting_user_id: str,
    *,
    document: Document | None = None,
    now: datetime | None = None,
) -> Approval:
    """Finalize a signed record (SIGNED -> APPROVED). Not repeatable.

    With ``document`` given, the document must still be awaiting signatures;
    a rejected or fully signed document takes no further confirmations.
    """
    if approval is None or approval.is_deleted:
        raise NotFoundError("Approval not found")
    if approval.approver_id != acting_user_id:
        raise AuthorizationError("You are not authorized to confirm this approval")
    if approval.status == ApprovalStatus.APPROVED:
        raise StateError("already confirmed")
    if approval.status != ApprovalStatus.SIGNED:
        raise StateError("must sign first")
    if document is not None and document.status not in DocumentStatus.in_flight_statuses():
        raise StateError(f"Document in {document.status.value} status is not awaiting signatures")

    confirmed_at = now or _utcnow()
    approval.status = ApprovalStatus.APPROVED
    approval.confirmed_at = confirmed_at
    approval.approved_at = confirmed_at
    logger.info(
        "Approval %s (level %s) confirmed by %s", approval.id, approval.level, acting_user_id,
    )
    return approval


def reject(
    approval: Approval | None,
    acting_user_id: str,
    reason: str,
    *,
    now: datetime | None = None,
) -> Approval:
    """Mark an unconfirmed record REJECTED with the approver's reason."""
    if approval is None or approval.is_deleted:
        raise NotFoundError("Approval not found")
    if approval.approver_id != acting_user_id:
        raise AuthorizationError("You are not authorized to reject this approval")
    if approval.status == ApprovalStatus.APPROVED:
        raise StateError("cannot reject a confirmed approval")
    if approval.status == ApprovalStatus.REJECTED:
        raise StateError("already rejected")
    if not reason or not reason.strip():
        raise ValidationError(
            "Rejection reason is required",
            [{"field": "reason", "message": "Rejection reason is required"}],
        )

    approval.status = ApprovalStatus.REJECTED
    approval.rejected_at = now or _utcnow()
    approval.comments = reason.strip()
    logger.info("Approval %s rejected by %s", approval.id, acting_user_id)
    return approval
