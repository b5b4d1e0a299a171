# This project was developed with assistance from AI tools.
"""Workflow orchestrator.

Every mutating action runs one read-modify-write unit: lock the document row,
load its active approvals, apply a single ledger mutation, recompute the
document status, persist, audit and commit. Fan-out intents are computed
from the committed state and handed to the notification dispatcher
afterwards; delivery failures never undo a committed transition.

The acting identity always arrives as an explicit ``UserContext``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from docflow_db import Approval, Document, RevisionRequest, User
from docflow_db.enums import (
    DocumentApprovalStatus,
    DocumentStatus,
    UserRole,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..schemas.auth import UserContext
from ..schemas.workflow import DocumentSubmissionRequest, ValidationAction
from . import ledger
from .audit import AuditEntry, AuditEventType, write_audit_event
from .errors import (
    AuthorizationError,
    ConcurrencyError,
    NotFoundError,
    StateError,
    ValidationError,
    WorkflowError,
)
from .fanout import ApprovalSnapshot, LedgerTransition, WorkflowEvent, select_recipients
from .notifications import NotificationDispatcher
from .revision import ADMIN_LEVEL, check_revision_allowed, reset_for_revision
from .transition import compute_status

logger = logging.getLogger(__name__)

USE_PROFILE_SIGNATURE = "use-profile"
ADMIN_REJECTION_REASON = "Admin rejected during validation"


@dataclass
class WorkflowResult:
    """Committed state returned to the caller after a workflow action."""

    document: Document
    approvals: list[Approval]
    approval: Approval | None = None
    revision_request: RevisionRequest | None = None
    notifications: list = field(default_factory=list)


# ---------------------------------------------------------------------------
# Transaction helpers
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _unit_of_work(session: AsyncSession, document_id: int | None) -> AsyncIterator[None]:
    """Roll back on any failure; surface lost races as ConcurrencyError."""
    try:
        yield
    except (StaleDataError, IntegrityError) as exc:
        await session.rollback()
        logger.warning("Concurrent modification of document %s: %s", document_id, exc)
        raise ConcurrencyError(
            "Document was modified by another request; reload and retry"
        ) from exc
    except WorkflowError:
        await session.rollback()
        raise


async def _lock_document(session: AsyncSession, document_id: int) -> Document:
    stmt = select(Document).where(Document.id == document_id).with_for_update()
    result = await session.execute(stmt)
    document = result.scalar_one_or_none()
    if document is None:
        raise NotFoundError("Document not found")
    return document


async def _load_active_approvals(session: AsyncSession, document_id: int) -> list[Approval]:
    stmt = (
        select(Approval)
        .where(Approval.document_id == document_id, Approval.is_deleted.is_(False))
        .order_by(Approval.level, Approval.created_at, Approval.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _user_name(session: AsyncSession, user_id: str) -> str:
    user = await session.get(User, user_id)
    return user.name if user is not None else user_id


async def _active_admin_ids(session: AsyncSession) -> tuple[str, ...]:
    stmt = (
        select(User.id)
        .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
        .order_by(User.id)
    )
    result = await session.execute(stmt)
    return tuple(result.scalars().all())


async def _profile_signature(session: AsyncSession, user_id: str) -> str | None:
    profile = await session.get(User, user_id)
    return profile.signature if profile is not None else None


async def _next_document_number(
    session: AsyncSession, category_code: str, department_code: str | None,
) -> str:
    """``{CATEGORY}-{DEPARTMENT}-{NNN}``, numbered per prefix."""
    department = (department_code or settings.DOCUMENT_NUMBER_PREFIX).upper()
    prefix = f"{category_code.upper()}-{department}-"
    stmt = select(func.count(Document.id)).where(Document.document_number.like(f"{prefix}%"))
    result = await session.execute(stmt)
    return f"{prefix}{result.scalar_one() + 1:03d}"


def _apply_status(document: Document, approvals: list[Approval]) -> None:
    result = compute_status(approvals)
    document.status = result.status
    document.approval_status = result.approval_status


def _transition(
    event: WorkflowEvent,
    document: Document,
    requester_name: str,
    status_before: DocumentStatus | None,
    approvals: list[Approval],
    **extra,
) -> LedgerTransition:
    return LedgerTransition(
        event=event,
        document_id=document.id,
        document_title=document.title,
        document_number=document.document_number,
        requester_id=document.created_by_id,
        requester_name=requester_name,
        status_before=status_before,
        status_after=document.status,
        approvals_after=tuple(ApprovalSnapshot.of(a) for a in ledger.active_approvals(approvals)),
        **extra,
    )


async def _notify(dispatcher: NotificationDispatcher, transition: LedgerTransition) -> list:
    """Dispatch fan-out intents; failures are logged, never raised."""
    intents = select_recipients(transition)
    if not intents:
        return intents
    try:
        await dispatcher.dispatch(intents)
    except Exception:
        logger.exception(
            "Notification dispatch failed for document %s (%s)",
            transition.document_id,
            transition.event.value,
        )
    return intents


def _require_approver(approval: Approval, user: UserContext, action: str) -> None:
    if approval.approver_id != user.user_id:
        logger.warning(
            "User %s attempted to %s approval %s assigned to %s",
            user.user_id,
            action,
            approval.id,
            approval.approver_id,
        )
        raise AuthorizationError(f"You are not authorized to {action} this approval")


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def submit_document(
    session: AsyncSession,
    user: UserContext,
    payload: DocumentSubmissionRequest,
    dispatcher: NotificationDispatcher,
) -> WorkflowResult:
    """Create a document with its approval chain.

    Drafts keep their approver assignments but stay in DRAFT and notify
    nobody. A submitted document needs a prepared-by signature, taken from
    the payload or the requester's profile.
    """
    ledger.validate_assignments(payload.approvers)

    async with _unit_of_work(session, None):
        profile = await session.get(User, user.user_id)
        signature = payload.signature or (profile.signature if profile is not None else None)
        if signature is None and not payload.is_draft:
            message = "A prepared-by signature is required to submit"
            raise ValidationError(message, [{"field": "signature", "message": message}])
        if payload.signature and profile is not None:
            profile.signature = payload.signature

        now = datetime.now(UTC)
        document = Document(
            document_number=await _next_document_number(
                session, payload.category_code, payload.department_code,
            ),
            title=payload.title,
            description=payload.description,
            status=DocumentStatus.DRAFT,
            approval_status=DocumentApprovalStatus.PENDING,
            revision_cycle=0,
            created_by_id=user.user_id,
            owner_id=user.user_id,
            prepared_by_signature=signature,
            prepared_by_signed_at=now if signature else None,
        )
        session.add(document)
        await session.flush()

        approvals = ledger.create_approval_entries(document, payload.approvers, now=now)
        session.add_all(approvals)
        if not payload.is_draft:
            document.status = compute_status(approvals).status

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.DOCUMENT_DRAFTED if payload.is_draft else AuditEventType.DOCUMENT_SUBMITTED,
                document,
                None,
                document_number=document.document_number,
                approvers=[{"approver_id": a.approver_id, "level": a.level} for a in approvals],
            ),
        )
        await session.commit()
    await session.refresh(document)

    logger.info(
        "Document %s (%s) created by %s with %d approver(s), status=%s",
        document.id,
        document.document_number,
        user.user_id,
        len(approvals),
        document.status.value,
    )

    intents = []
    if not payload.is_draft:
        intents = await _notify(
            dispatcher,
            _transition(WorkflowEvent.SUBMITTED, document, user.name, None, approvals),
        )
    return WorkflowResult(document=document, approvals=approvals, notifications=intents)


async def resubmit_document(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    dispatcher: NotificationDispatcher,
    signature: str | None = None,
) -> WorkflowResult:
    """Send a DRAFT or revised document (back) into review."""
    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        if document.created_by_id != user.user_id:
            raise AuthorizationError("Only the requester can resubmit this document")
        if document.status not in (DocumentStatus.DRAFT, DocumentStatus.ON_REVISION):
            raise StateError(f"Cannot resubmit document in {document.status.value} status")

        approvals = await _load_active_approvals(session, document_id)
        if not approvals:
            raise ValidationError(
                "At least one approver is required",
                [{"field": "approvers", "message": "At least one approver is required"}],
            )

        signature = (
            signature
            or await _profile_signature(session, user.user_id)
            or document.prepared_by_signature
        )
        if not signature:
            message = "A prepared-by signature is required to submit"
            raise ValidationError(message, [{"field": "signature", "message": message}])

        status_before = document.status
        document.prepared_by_signature = signature
        document.prepared_by_signed_at = datetime.now(UTC)
        document.status = compute_status(approvals).status
        document.approval_status = DocumentApprovalStatus.PENDING

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(AuditEventType.DOCUMENT_RESUBMITTED, document, status_before),
        )
        await session.commit()
    await session.refresh(document)

    intents = await _notify(
        dispatcher,
        _transition(WorkflowEvent.SUBMITTED, document, user.name, status_before, approvals),
    )
    return WorkflowResult(document=document, approvals=approvals, notifications=intents)


# ---------------------------------------------------------------------------
# Approver actions
# ---------------------------------------------------------------------------


async def sign_approval(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    approval_id: int,
    signature_image: str,
    dispatcher: NotificationDispatcher,
) -> WorkflowResult:
    """Sign (or re-sign) the caller's approval record."""
    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        approvals = await _load_active_approvals(session, document_id)
        approval = ledger.find_approval(approvals, approval_id)
        _require_approver(approval, user, "sign")

        if signature_image == USE_PROFILE_SIGNATURE:
            signature_image = await _profile_signature(session, user.user_id)
            if not signature_image:
                message = "No saved signature found in your profile"
                raise ValidationError(message, [{"field": "signature_image", "message": message}])

        status_before = document.status
        ledger.sign(document, approval, user.user_id, signature_image, approvals)
        _apply_status(document, approvals)

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.APPROVAL_SIGNED, document, status_before, approval,
            ),
        )
        await session.commit()

    intents = await _notify(
        dispatcher,
        _transition(
            WorkflowEvent.SIGNED, document, "", status_before, approvals,
            acted=ApprovalSnapshot.of(approval), actor_name=user.name,
        ),
    )
    return WorkflowResult(document=document, approvals=approvals, approval=approval, notifications=intents)


async def confirm_approval(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    approval_id: int,
    dispatcher: NotificationDispatcher,
) -> WorkflowResult:
    """Finalize the caller's signed record and advance the document."""
    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        approvals = await _load_active_approvals(session, document_id)
        approval = ledger.find_approval(approvals, approval_id)

        status_before = document.status
        ledger.confirm(approval, user.user_id, document=document)
        _apply_status(document, approvals)

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.APPROVAL_CONFIRMED, document, status_before, approval,
            ),
        )

        requester_name = await _user_name(session, document.created_by_id)
        admin_ids: tuple[str, ...] = ()
        if document.status == DocumentStatus.WAITING_VALIDATION:
            admin_ids = await _active_admin_ids(session)
        await session.commit()

    logger.info(
        "Document %s: approval %s confirmed, %s -> %s",
        document.id,
        approval.id,
        status_before.value,
        document.status.value,
    )

    intents = await _notify(
        dispatcher,
        _transition(
            WorkflowEvent.CONFIRMED, document, requester_name, status_before, approvals,
            acted=ApprovalSnapshot.of(approval), actor_name=user.name, admin_ids=admin_ids,
        ),
    )
    return WorkflowResult(document=document, approvals=approvals, approval=approval, notifications=intents)


async def reject_approval(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    approval_id: int,
    reason: str,
    dispatcher: NotificationDispatcher,
) -> WorkflowResult:
    """Reject the document from the caller's approval record."""
    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        approvals = await _load_active_approvals(session, document_id)
        approval = ledger.find_approval(approvals, approval_id)
        _require_approver(approval, user, "reject")
        if document.status not in DocumentStatus.in_flight_statuses():
            raise StateError(f"Cannot reject a document in {document.status.value} status")

        status_before = document.status
        ledger.reject(approval, user.user_id, reason)
        _apply_status(document, approvals)

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.APPROVAL_REJECTED, document, status_before, approval,
                reason=approval.comments,
            ),
        )
        requester_name = await _user_name(session, document.created_by_id)
        await session.commit()

    intents = await _notify(
        dispatcher,
        _transition(
            WorkflowEvent.REJECTED, document, requester_name, status_before, approvals,
            acted=ApprovalSnapshot.of(approval), actor_name=user.name, reason=approval.comments,
        ),
    )
    return WorkflowResult(document=document, approvals=approvals, approval=approval, notifications=intents)


async def request_revision(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    approval_id: int,
    reason: str,
    dispatcher: NotificationDispatcher,
) -> WorkflowResult:
    """Send the document back to its requester and restart the approval chain."""
    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        approvals = await _load_active_approvals(session, document_id)
        approval = ledger.find_approval(approvals, approval_id)
        _require_approver(approval, user, "request revision for")
        cleaned = check_revision_allowed(document, reason)

        status_before = document.status
        outcome = reset_for_revision(
            document, approvals, user.user_id, approval.level, cleaned, approval_id=approval.id,
        )
        session.add_all(outcome.fresh)
        session.add(outcome.revision_request)

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.REVISION_REQUESTED, document, status_before, approval,
                reason=cleaned,
            ),
        )
        requester_name = await _user_name(session, document.created_by_id)
        await session.commit()

    intents = await _notify(
        dispatcher,
        _transition(
            WorkflowEvent.REVISION_REQUESTED, document, requester_name, status_before,
            outcome.fresh, actor_name=user.name, reason=cleaned,
        ),
    )
    return WorkflowResult(
        document=document,
        approvals=outcome.fresh,
        approval=approval,
        revision_request=outcome.revision_request,
        notifications=intents,
    )


# ---------------------------------------------------------------------------
# Admin validation
# ---------------------------------------------------------------------------


async def validate_document(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
    action: ValidationAction,
    dispatcher: NotificationDispatcher,
    comments: str | None = None,
) -> WorkflowResult:
    """Admin decision on a fully signed document.

    APPROVE marks the document APPROVED. REJECT runs the revision reset at
    level 0, so every approver signs again in the next cycle.
    """
    if not user.is_admin:
        raise AuthorizationError("Only administrators can validate documents")

    async with _unit_of_work(session, document_id):
        document = await _lock_document(session, document_id)
        if document.status != DocumentStatus.WAITING_VALIDATION:
            raise StateError(
                "Document must be in WAITING_VALIDATION status to validate. "
                f"Current status: {document.status.value}"
            )
        approvals = await _load_active_approvals(session, document_id)
        status_before = document.status
        revision_request = None

        if action == ValidationAction.APPROVE:
            document.status = DocumentStatus.APPROVED
            document.approval_status = DocumentApprovalStatus.APPROVED
            event = WorkflowEvent.VALIDATION_APPROVED
            reason = comments
        else:
            reason = (comments or "").strip() or ADMIN_REJECTION_REASON
            outcome = reset_for_revision(document, approvals, user.user_id, ADMIN_LEVEL, reason)
            session.add_all(outcome.fresh)
            session.add(outcome.revision_request)
            approvals = outcome.fresh
            revision_request = outcome.revision_request
            event = WorkflowEvent.VALIDATION_REJECTED

        await write_audit_event(
            session,
            user,
            AuditEntry.for_document(
                AuditEventType.DOCUMENT_VALIDATED
                if action == ValidationAction.APPROVE
                else AuditEventType.VALIDATION_REJECTED,
                document,
                status_before,
                comments=comments,
            ),
        )
        requester_name = await _user_name(session, document.created_by_id)
        await session.commit()

    logger.info("Document %s validated by %s: %s", document.id, user.user_id, action.value)

    intents = await _notify(
        dispatcher,
        _transition(
            event, document, requester_name, status_before, approvals,
            actor_name=user.name, reason=reason,
        ),
    )
    return WorkflowResult(
        document=document,
        approvals=approvals,
        revision_request=revision_request,
        notifications=intents,
    )


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


async def get_document_workflow(
    session: AsyncSession,
    user: UserContext,
    document_id: int,
) -> WorkflowResult | None:
    """Return the document and its active approvals, or None if not visible.

    Admins see every document; other users see documents they requested or
    are assigned to approve.
    """
    result = await session.execute(select(Document).where(Document.id == document_id))
    document = result.scalar_one_or_none()
    if document is None:
        return None

    approvals = ledger.active_approvals(await _load_active_approvals(session, document_id))
    if not user.is_admin and user.user_id not in (
        {document.created_by_id, document.owner_id} | {a.approver_id for a in approvals}
    ):
        logger.warning("User %s denied access to document %s", user.user_id, document_id)
        return None
    return WorkflowResult(document=document, approvals=approvals)
