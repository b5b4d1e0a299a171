# This project was developed with assistance from AI tools.
"""
DocFlow -- domain models

Document approval workflow models covering documents, per-approver
approval records, revision requests, notifications, and audit trail.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    ApprovalStatus,
    DocumentApprovalStatus,
    DocumentStatus,
    NotificationPriority,
    NotificationType,
    UserRole,
)


class User(Base):
    """Read model of an identity-provider user (master data is managed elsewhere)."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.USER,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    language = Column(String(5), nullable=False, default="id")
    signature = Column(Text, nullable=True)
    notify_approvals = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id='{self.id}', role='{self.role}')>"


class Document(Base):
    """Controlled document moving through reviewer/approver/acknowledger signoff."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_number = Column(String(100), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(DocumentStatus, name="document_status", native_enum=False),
        nullable=False,
        default=DocumentStatus.DRAFT,
    )
    approval_status = Column(
        Enum(DocumentApprovalStatus, name="document_approval_status", native_enum=False),
        nullable=False,
        default=DocumentApprovalStatus.PENDING,
    )
    revision_cycle = Column(Integer, nullable=False, default=0, server_default="0")
    created_by_id = Column(String(255), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    prepared_by_signature = Column(Text, nullable=True)
    prepared_by_signed_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    approvals = relationship(
        "Approval",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by=lambda: [Approval.level, Approval.created_at, Approval.id],
    )
    revision_requests = relationship(
        "RevisionRequest", back_populates="document", cascade="all, delete-orphan",
    )

    # Optimistic concurrency: stale UPDATEs raise StaleDataError.
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<Document(id={self.id}, status='{self.status}')>"


class Approval(Base):
    """One assigned approver's signoff record for one document and revision cycle."""

    __tablename__ = "document_approvals"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "level", "approver_id", "revision_cycle",
            name="uq_approval_doc_level_approver_cycle",
        ),
        CheckConstraint("level BETWEEN 1 AND 3", name="ck_approval_level"),
        CheckConstraint(
            "confirmed_at IS NULL OR signed_at IS NOT NULL",
            name="ck_approval_signed_before_confirmed",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    approver_id = Column(String(255), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    status = Column(
        Enum(ApprovalStatus, name="approval_status", native_enum=False),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    signature_image = Column(Text, nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    comments = Column(Text, nullable=True)
    revision_cycle = Column(Integer, nullable=False, default=0, server_default="0")
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    document = relationship("Document", back_populates="approvals")

    def __repr__(self):
        return (
            f"<Approval(id={self.id}, doc_id={self.document_id}, "
            f"level={self.level}, status='{self.status}')>"
        )


class RevisionRequest(Base):
    """Audit entry written each time a document is sent back for revision."""

    __tablename__ = "document_revision_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    requested_by_id = Column(String(255), nullable=False)
    reason = Column(Text, nullable=False)
    approval_level = Column(Integer, nullable=False)  # 0 = admin validation
    approval_id = Column(
        Integer, ForeignKey("document_approvals.id", ondelete="SET NULL"), nullable=True,
    )
    revision_cycle = Column(Integer, nullable=False)
    signature_snapshot = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    document = relationship("Document", back_populates="revision_requests")

    def __repr__(self):
        return f"<RevisionRequest(id={self.id}, doc_id={self.document_id}, cycle={self.revision_cycle})>"


class Notification(Base):
    """In-app notification delivered to a single user."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(
        Enum(NotificationType, name="notification_type", native_enum=False),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    priority = Column(
        Enum(NotificationPriority, name="notification_priority", native_enum=False),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user='{self.user_id}', type='{self.type}')>"


class AuditEvent(Base):
    """Append-only audit trail. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    prev_hash = Column(String(64), nullable=True)
    user_id = Column(String(255), nullable=True)
    user_role = Column(String(50), nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    document_id = Column(Integer, nullable=True, index=True)
    approval_id = Column(Integer, nullable=True)
    event_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, type='{self.event_type}')>"
