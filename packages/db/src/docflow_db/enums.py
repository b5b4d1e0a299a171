# This project was developed with assistance from AI tools.
"""
Domain enums for the document approval lifecycle.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas (api package).
"""

import enum


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    ON_APPROVAL = "ON_APPROVAL"
    PENDING_ACKNOWLEDGED = "PENDING_ACKNOWLEDGED"
    ON_REVISION = "ON_REVISION"
    WAITING_VALIDATION = "WAITING_VALIDATION"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    REVISION_REQUIRED = "REVISION_REQUIRED"
    OBSOLETE = "OBSOLETE"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def workflow_statuses(cls) -> frozenset["DocumentStatus"]:
        """Statuses derived from the approval set by the transition engine."""
        return frozenset(
            {
                cls.IN_REVIEW,
                cls.ON_APPROVAL,
                cls.PENDING_ACKNOWLEDGED,
                cls.WAITING_VALIDATION,
                cls.REVISION_REQUIRED,
            }
        )

    @classmethod
    def external_statuses(cls) -> frozenset["DocumentStatus"]:
        """Statuses set by submission, revision, validation or obsolescence."""
        return frozenset(
            {
                cls.DRAFT,
                cls.ON_REVISION,
                cls.APPROVED,
                cls.ACTIVE,
                cls.OBSOLETE,
                cls.ARCHIVED,
            }
        )

    @classmethod
    def in_flight_statuses(cls) -> frozenset["DocumentStatus"]:
        """Statuses in which approvers may still act on their records."""
        return frozenset({cls.IN_REVIEW, cls.ON_APPROVAL, cls.PENDING_ACKNOWLEDGED})


class DocumentApprovalStatus(str, enum.Enum):
    """Coarse document-level approval state."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVISION = "NEEDS_REVISION"


class ApprovalStatus(str, enum.Enum):
    """State of a single approver's record."""

    PENDING = "PENDING"
    SIGNED = "SIGNED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVISION = "NEEDS_REVISION"


class ApprovalLevel(int, enum.Enum):
    REVIEWER = 1
    APPROVER = 2
    ACKNOWLEDGER = 3

    @property
    def label(self) -> str:
        return {1: "Reviewer", 2: "Approver", 3: "Acknowledged"}[self.value]


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class NotificationType(str, enum.Enum):
    APPROVAL_REQUEST = "APPROVAL_REQUEST"
    DOCUMENT_SIGNED = "DOCUMENT_SIGNED"
    VALIDATION_REQUEST = "VALIDATION_REQUEST"
    DOCUMENT_SUBMITTED = "DOCUMENT_SUBMITTED"
    DOCUMENT_APPROVED = "DOCUMENT_APPROVED"
    DOCUMENT_REJECTED = "DOCUMENT_REJECTED"
    REVISION_NEEDED = "REVISION_NEEDED"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
