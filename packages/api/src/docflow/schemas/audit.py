# This project was developed with assistance from AI tools.
"""Pydantic response schemas for audit trail endpoints."""

from datetime import datetime

from docflow_db.enums import DocumentStatus
from pydantic import BaseModel


class AuditEventItem(BaseModel):
    """One recorded workflow transition."""

    id: int
    timestamp: datetime
    event_type: str
    user_id: str | None = None
    user_role: str | None = None
    document_id: int | None = None
    approval_id: int | None = None
    level: int | None = None
    from_status: DocumentStatus | None = None
    to_status: DocumentStatus
    revision_cycle: int
    detail: dict = {}


class AuditByDocumentResponse(BaseModel):
    """Workflow history of one document."""

    document_id: int
    count: int
    events: list[AuditEventItem]


class AuditChainVerifyResponse(BaseModel):
    """Response for audit hash chain verification."""

    status: str
    events_checked: int
    first_break_id: int | None = None
