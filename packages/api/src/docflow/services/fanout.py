# This project was developed with assistance from AI tools.
"""Notification fan-out selector.

Pure functions -- no DB calls, no delivery. Given what just happened to a
document's approval ledger, decide who must hear about it and with which
message. The orchestrator hands the resulting intents to the notification
dispatcher after the transaction commits.
"""

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from docflow_db.enums import (
    ApprovalLevel,
    ApprovalStatus,
    DocumentStatus,
    NotificationPriority,
    NotificationType,
)


class WorkflowEvent(str, enum.Enum):
    """Ledger action that produced a transition."""

    SUBMITTED = "SUBMITTED"
    SIGNED = "SIGNED"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    VALIDATION_APPROVED = "VALIDATION_APPROVED"
    VALIDATION_REJECTED = "VALIDATION_REJECTED"


# Message key sent to the approvers of a level when it becomes actionable.
LEVEL_MESSAGE_KEYS: dict[int, str] = {
    ApprovalLevel.REVIEWER: "REVIEW_REQUIRED",
    ApprovalLevel.APPROVER: "APPROVAL_REQUIRED",
    ApprovalLevel.ACKNOWLEDGER: "ACKNOWLEDGMENT_REQUIRED",
}


def approver_link(document_id: int) -> str:
    return f"/document-control/view/{document_id}"


def requester_link(document_id: int) -> str:
    return f"/document-control/submission?id={document_id}"


VALIDATION_LINK = "/document-control/validation"


@dataclass(frozen=True)
class ApprovalSnapshot:
    """Immutable view of one active approval record."""

    id: int | None
    approver_id: str
    level: int
    status: ApprovalStatus
    created_at: datetime | None = None

    @classmethod
    def of(cls, approval) -> "ApprovalSnapshot":
        return cls(
            id=approval.id,
            approver_id=approval.approver_id,
            level=approval.level,
            status=approval.status,
            created_at=approval.created_at,
        )

    @property
    def order_key(self) -> tuple:
        return (self.created_at or datetime.min.replace(tzinfo=UTC), self.id or 0)


@dataclass(frozen=True)
class NotificationIntent:
    """One message one user should receive."""

    user_id: str
    message_key: str
    priority: NotificationPriority
    link: str
    notification_type: NotificationType
    params: dict = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class LedgerTransition:
    """Everything the selector needs to know about one workflow action.

    ``approvals_after`` holds the active records once the action applied.
    ``acted`` is the record the action targeted (None for submission and
    admin validation). ``admin_ids`` is only consulted when the document
    enters WAITING_VALIDATION.
    """

    event: WorkflowEvent
    document_id: int
    document_title: str
    document_number: str
    requester_id: str
    requester_name: str
    status_before: DocumentStatus | None
    status_after: DocumentStatus
    approvals_after: tuple[ApprovalSnapshot, ...] = ()
    acted: ApprovalSnapshot | None = None
    actor_name: str = ""
    admin_ids: tuple[str, ...] = ()
    reason: str | None = None

    @property
    def base_params(self) -> dict:
        return {
            "doc_title": self.document_title,
            "doc_number": self.document_number,
            "requester_name": self.requester_name,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _level_records(transition: LedgerTransition, level: int) -> list[ApprovalSnapshot]:
    records = [a for a in transition.approvals_after if a.level == level]
    return sorted(records, key=lambda a: a.order_key)


def _level_broadcast(transition: LedgerTransition, level: int) -> list[NotificationIntent]:
    """Every PENDING approver of ``level``."""
    return [
        NotificationIntent(
            user_id=record.approver_id,
            message_key=LEVEL_MESSAGE_KEYS[level],
            priority=NotificationPriority.HIGH,
            link=approver_link(transition.document_id),
            notification_type=NotificationType.APPROVAL_REQUEST,
            params=transition.base_params,
        )
        for record in _level_records(transition, level)
        if record.status == ApprovalStatus.PENDING
    ]


def _entry_level(transition: LedgerTransition) -> int | None:
    """Lowest populated level."""
    levels = sorted({a.level for a in transition.approvals_after})
    return levels[0] if levels else None


def _next_populated_level(transition: LedgerTransition, level: int) -> int | None:
    higher = sorted({a.level for a in transition.approvals_after if a.level > level})
    return higher[0] if higher else None


def _to_requester(
    transition: LedgerTransition,
    message_key: str,
    notification_type: NotificationType,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    **params,
) -> NotificationIntent:
    return NotificationIntent(
        user_id=transition.requester_id,
        message_key=message_key,
        priority=priority,
        link=requester_link(transition.document_id),
        notification_type=notification_type,
        params={**transition.base_params, **params},
    )


def _validation_fanout(transition: LedgerTransition) -> list[NotificationIntent]:
    intents = [
        NotificationIntent(
            user_id=admin_id,
            message_key="VALIDATION_REQUIRED",
            priority=NotificationPriority.HIGH,
            link=VALIDATION_LINK,
            notification_type=NotificationType.VALIDATION_REQUEST,
            params=transition.base_params,
        )
        for admin_id in transition.admin_ids
    ]
    intents.append(
        _to_requester(transition, "AWAITING_VALIDATION", NotificationType.DOCUMENT_SIGNED)
    )
    return intents


def _after_confirm(transition: LedgerTransition) -> list[NotificationIntent]:
    acted = transition.acted
    intents = [
        _to_requester(
            transition,
            "DOCUMENT_SIGNED",
            NotificationType.DOCUMENT_SIGNED,
            signer_name=transition.actor_name,
            role=ApprovalLevel(acted.level).label,
        )
    ]

    if (
        transition.status_after == DocumentStatus.WAITING_VALIDATION
        and transition.status_before != DocumentStatus.WAITING_VALIDATION
    ):
        return intents + _validation_fanout(transition)

    peers = _level_records(transition, acted.level)
    if any(p.status != ApprovalStatus.APPROVED for p in peers):
        pending = [p for p in peers if p.status == ApprovalStatus.PENDING]
        if pending:
            intents.append(
                NotificationIntent(
                    user_id=pending[0].approver_id,
                    message_key=LEVEL_MESSAGE_KEYS[acted.level],
                    priority=NotificationPriority.HIGH,
                    link=approver_link(transition.document_id),
                    notification_type=NotificationType.APPROVAL_REQUEST,
                    params=transition.base_params,
                )
            )
        return intents

    next_level = _next_populated_level(transition, acted.level)
    if next_level is not None:
        intents.extend(_level_broadcast(transition, next_level))
    return intents


def _dedupe(intents: list[NotificationIntent]) -> list[NotificationIntent]:
    seen: set[tuple[str, str]] = set()
    unique = []
    for intent in intents:
        key = (intent.user_id, intent.message_key)
        if key in seen:
            continue
        seen.add(key)
        unique.append(intent)
    return unique


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def select_recipients(transition: LedgerTransition) -> list[NotificationIntent]:
    """Return the notification intents implied by ``transition``.

    Order is stable: approver or admin intents first in creation order, the
    requester's informational message where the rules put it. Repeated
    (user, message) pairs are collapsed to the first occurrence.
    """
    event = transition.event
    intents: list[NotificationIntent] = []

    if event == WorkflowEvent.SUBMITTED:
        level = _entry_level(transition)
        if level is not None:
            intents.extend(_level_broadcast(transition, level))
        intents.append(
            _to_requester(transition, "DOCUMENT_SUBMITTED", NotificationType.DOCUMENT_SUBMITTED)
        )
    elif event == WorkflowEvent.CONFIRMED and transition.acted is not None:
        intents.extend(_after_confirm(transition))
    elif event == WorkflowEvent.REJECTED:
        intents.append(
            _to_requester(
                transition,
                "DOCUMENT_REJECTED",
                NotificationType.DOCUMENT_REJECTED,
                NotificationPriority.HIGH,
                reason=transition.reason,
            )
        )
    elif event in (WorkflowEvent.REVISION_REQUESTED, WorkflowEvent.VALIDATION_REJECTED):
        intents.append(
            _to_requester(
                transition,
                "REVISION_NEEDED",
                NotificationType.REVISION_NEEDED,
                NotificationPriority.HIGH,
                reason=transition.reason,
            )
        )
    elif event == WorkflowEvent.VALIDATION_APPROVED:
        intents.append(
            _to_requester(transition, "DOCUMENT_APPROVED", NotificationType.DOCUMENT_APPROVED)
        )

    return _dedupe(intents)
