# This project was developed with assistance from AI tools.
"""Revision reset handler.

Sends a document back to its requester: snapshots every signature, retires
the current approval records, creates a fresh PENDING set for the next
revision cycle and writes a RevisionRequest entry. The prepared-by signature
survives the reset.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from docflow_db import Approval, Document, RevisionRequest
from docflow_db.enums import ApprovalStatus, DocumentApprovalStatus, DocumentStatus

from ..core.config import settings
from .errors import StateError, ValidationError
from .ledger import active_approvals

logger = logging.getLogger(__name__)

# Level recorded on a RevisionRequest raised by admin validation.
ADMIN_LEVEL = 0


@dataclass
class RevisionOutcome:
    """Rows produced by a reset; the caller adds them to the session."""

    revision_request: RevisionRequest
    retired: list[Approval]
    fresh: list[Approval]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def signature_snapshot(document: Document, approvals: Iterable[Approval]) -> dict:
    """JSON-safe copy of the prepared-by signature and every approval signature."""
    return {
        "prepared_by": {
            "signature": document.prepared_by_signature,
            "signed_at": _iso(document.prepared_by_signed_at),
        },
        "approvals": [
            {
                "id": a.id,
                "level": a.level,
                "approver_id": a.approver_id,
                "status": a.status.value if a.status else None,
                "signature_image": a.signature_image,
                "signed_at": _iso(a.signed_at),
                "confirmed_at": _iso(a.confirmed_at),
            }
            for a in approvals
        ],
    }


def check_revision_allowed(document: Document, reason: str | None) -> str:
    """Validate an approver-initiated revision request; return the clean reason."""
    if document.status not in DocumentStatus.in_flight_statuses():
        raise StateError(f"Cannot request revision for document in {document.status.value} status")
    cleaned = (reason or "").strip()
    if len(cleaned) < settings.REVISION_REASON_MIN_LENGTH:
        message = f"Reason must be at least {settings.REVISION_REASON_MIN_LENGTH} characters"
        raise ValidationError(message, [{"field": "reason", "message": message}])
    return cleaned


def reset_for_revision(
    document: Document,
    approvals: Iterable[Approval],
    acting_user_id: str,
    level: int,
    reason: str,
    *,
    approval_id: int | None = None,
    now: datetime | None = None,
) -> RevisionOutcome:
    """Start a new revision cycle for ``document``.

    Every active record is soft-deleted and replaced by a PENDING copy for
    the new cycle, in the same level and creation order. The record that
    raised the request (``approval_id``) is retired as NEEDS_REVISION.
    """
    timestamp = now or datetime.now(UTC)
    current = active_approvals(approvals)
    snapshot = signature_snapshot(document, current)

    document.revision_cycle = (document.revision_cycle or 0) + 1
    document.status = DocumentStatus.ON_REVISION
    document.approval_status = DocumentApprovalStatus.NEEDS_REVISION

    fresh: list[Approval] = []
    for record in current:
        record.is_deleted = True
        record.deleted_at = timestamp
        if approval_id is not None and record.id == approval_id:
            record.status = ApprovalStatus.NEEDS_REVISION
            record.comments = reason
        fresh.append(
            Approval(
                document_id=document.id,
                approver_id=record.approver_id,
                level=record.level,
                status=ApprovalStatus.PENDING,
                revision_cycle=document.revision_cycle,
                is_deleted=False,
                created_at=timestamp,
            )
        )

    revision_request = RevisionRequest(
        document_id=document.id,
        requested_by_id=acting_user_id,
        reason=reason,
        approval_level=level,
        approval_id=approval_id,
        revision_cycle=document.revision_cycle,
        signature_snapshot=snapshot,
        created_at=timestamp,
    )
    logger.info(
        "Document %s sent back for revision by %s (level %s, cycle %s)",
        document.id,
        acting_user_id,
        level,
        document.revision_cycle,
    )
    return RevisionOutcome(revision_request=revision_request, retired=current, fresh=fresh)
