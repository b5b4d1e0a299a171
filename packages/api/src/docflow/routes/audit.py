# This project was developed with assistance from AI tools.
"""Audit trail query endpoints (admin only)."""

from docflow_db import get_db
from docflow_db.enums import UserRole
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import require_roles
from ..schemas.audit import AuditByDocumentResponse, AuditChainVerifyResponse, AuditEventItem
from ..services.audit import AuditEntry, get_events_by_document, verify_audit_chain

router = APIRouter()


def _to_item(evt) -> AuditEventItem:
    entry = AuditEntry.from_event(evt)
    return AuditEventItem(
        id=evt.id,
        timestamp=evt.timestamp,
        event_type=entry.event_type.value,
        user_id=evt.user_id,
        user_role=evt.user_role,
        document_id=entry.document_id,
        approval_id=entry.approval_id,
        level=entry.level,
        from_status=entry.from_status,
        to_status=entry.to_status,
        revision_cycle=entry.revision_cycle,
        detail=entry.detail,
    )


@router.get(
    "/documents/{document_id}",
    response_model=AuditByDocumentResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def audit_by_document(
    document_id: int,
    session: AsyncSession = Depends(get_db),
) -> AuditByDocumentResponse:
    """Workflow history of one document, oldest first."""
    events = await get_events_by_document(session, document_id)
    return AuditByDocumentResponse(
        document_id=document_id,
        count=len(events),
        events=[_to_item(e) for e in events],
    )


@router.get(
    "/verify",
    response_model=AuditChainVerifyResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def audit_verify(
    session: AsyncSession = Depends(get_db),
) -> AuditChainVerifyResponse:
    """Recompute the hash chain and report the first break, if any."""
    report = await verify_audit_chain(session)
    return AuditChainVerifyResponse(
        status=report.status,
        events_checked=report.events_checked,
        first_break_id=report.first_break_id,
    )
