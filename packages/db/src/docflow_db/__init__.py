# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, DatabaseService, SessionLocal, get_db, get_db_service
from .enums import (
    ApprovalLevel,
    ApprovalStatus,
    DocumentApprovalStatus,
    DocumentStatus,
    NotificationPriority,
    NotificationType,
    UserRole,
)
from .models import (
    Approval,
    AuditEvent,
    Document,
    Notification,
    RevisionRequest,
    User,
)

__all__ = [
    "Base",
    "DatabaseService",
    "SessionLocal",
    "get_db",
    "get_db_service",
    "__version__",
    # Enums
    "ApprovalLevel",
    "ApprovalStatus",
    "DocumentApprovalStatus",
    "DocumentStatus",
    "NotificationPriority",
    "NotificationType",
    "UserRole",
    # Models
    "Approval",
    "AuditEvent",
    "Document",
    "Notification",
    "RevisionRequest",
    "User",
]
