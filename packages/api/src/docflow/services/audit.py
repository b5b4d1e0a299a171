# This project was developed with assistance from AI tools.
"""Workflow audit trail.

Each workflow mutation appends one ``AuditEvent`` inside the transaction that
performs it. The stored payload is an ``AuditEntry``: which record moved,
the document status before and after, the level and the revision cycle,
plus a small action-specific ``detail`` map.

Events form a hash chain. Every row stores the digest of the row before it,
and each digest covers the previous row's own ``prev_hash``, so editing or
deleting any historic row breaks every link after it. Chain writes are
serialized with a PostgreSQL transaction-scoped advisory lock.
"""

import enum
import hashlib
import json
import logging
from dataclasses import dataclass, field

from docflow_db import Approval, AuditEvent, Document
from docflow_db.enums import DocumentStatus
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext

logger = logging.getLogger(__name__)

# Fixed advisory lock key for audit trail serialization.
AUDIT_LOCK_KEY = 900_001

GENESIS = "genesis"


class AuditEventType(str, enum.Enum):
    DOCUMENT_DRAFTED = "document_drafted"
    DOCUMENT_SUBMITTED = "document_submitted"
    DOCUMENT_RESUBMITTED = "document_resubmitted"
    APPROVAL_SIGNED = "approval_signed"
    APPROVAL_CONFIRMED = "approval_confirmed"
    APPROVAL_REJECTED = "approval_rejected"
    REVISION_REQUESTED = "revision_requested"
    DOCUMENT_VALIDATED = "document_validated"
    VALIDATION_REJECTED = "validation_rejected"


@dataclass(frozen=True)
class AuditEntry:
    """One workflow transition as it is written to the trail."""

    event_type: AuditEventType
    document_id: int
    from_status: DocumentStatus | None
    to_status: DocumentStatus
    revision_cycle: int
    approval_id: int | None = None
    level: int | None = None
    detail: dict = field(default_factory=dict)

    @classmethod
    def for_document(
        cls,
        event_type: AuditEventType,
        document: Document,
        from_status: DocumentStatus | None,
        approval: Approval | None = None,
        **detail,
    ) -> "AuditEntry":
        """Capture ``document`` after the mutation, optionally scoped to one record."""
        return cls(
            event_type=event_type,
            document_id=document.id,
            from_status=from_status,
            to_status=document.status,
            revision_cycle=document.revision_cycle,
            approval_id=approval.id if approval is not None else None,
            level=approval.level if approval is not None else None,
            detail={k: v for k, v in detail.items() if v is not None},
        )

    def payload(self) -> dict:
        return {
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "revision_cycle": self.revision_cycle,
            "level": self.level,
            "detail": self.detail,
        }

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditEntry":
        data = event.event_data or {}
        from_status = data.get("from_status")
        return cls(
            event_type=AuditEventType(event.event_type),
            document_id=event.document_id,
            from_status=DocumentStatus(from_status) if from_status else None,
            to_status=DocumentStatus(data["to_status"]),
            revision_cycle=data.get("revision_cycle", 0),
            approval_id=event.approval_id,
            level=data.get("level"),
            detail=data.get("detail") or {},
        )


def event_digest(event: AuditEvent) -> str:
    """SHA-256 over a persisted event, including the link it carries."""
    canonical = json.dumps(
        {
            "id": event.id,
            "prev": event.prev_hash,
            "type": event.event_type,
            "user": event.user_id,
            "document": event.document_id,
            "approval": event.approval_id,
            "data": event.event_data,
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


async def write_audit_event(
    session: AsyncSession,
    user: UserContext,
    entry: AuditEntry,
) -> AuditEvent:
    """Append ``entry`` to the trail, linked to the latest event.

    Flushes but does not commit; the caller's commit makes the event and the
    transition it records durable together.
    """
    # Released automatically when the transaction commits or rolls back.
    await session.execute(text(f"SELECT pg_advisory_xact_lock({AUDIT_LOCK_KEY})"))

    result = await session.execute(select(AuditEvent).order_by(AuditEvent.id.desc()).limit(1))
    latest = result.scalar_one_or_none()

    event = AuditEvent(
        event_type=entry.event_type.value,
        user_id=user.user_id,
        user_role=user.role.value,
        document_id=entry.document_id,
        approval_id=entry.approval_id,
        event_data=entry.payload(),
        prev_hash=event_digest(latest) if latest is not None else GENESIS,
    )
    session.add(event)
    await session.flush()
    logger.debug(
        "Audit %s on document %s: %s -> %s",
        entry.event_type.value,
        entry.document_id,
        entry.from_status.value if entry.from_status else None,
        entry.to_status.value,
    )
    return event


@dataclass(frozen=True)
class ChainReport:
    status: str
    events_checked: int
    first_break_id: int | None = None


async def verify_audit_chain(session: AsyncSession) -> ChainReport:
    """Walk the trail in id order and report the first event whose link is wrong."""
    result = await session.execute(select(AuditEvent).order_by(AuditEvent.id.asc()))
    expected = GENESIS
    checked = 0
    for event in result.scalars().all():
        checked += 1
        if event.prev_hash != expected:
            logger.warning("Audit chain broken at event %s", event.id)
            return ChainReport("TAMPERED", checked, first_break_id=event.id)
        expected = event_digest(event)
    return ChainReport("OK", checked)


async def get_events_by_document(
    session: AsyncSession,
    document_id: int,
) -> list[AuditEvent]:
    """Return the workflow history of one document, oldest first."""
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.document_id == document_id)
        .order_by(AuditEvent.timestamp.asc(), AuditEvent.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
