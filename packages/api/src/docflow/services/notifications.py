# This project was developed with assistance from AI tools.
"""Localized notification delivery.

Holds the message catalog (Indonesian and English), the default
``NotificationService`` that writes in-app notification rows, and the
``NotificationDispatcher`` the workflow orchestrator hands fan-out intents to
after commit. Delivery is best effort: a failure for one recipient is logged
and the remaining intents still go out.

The module exposes a singleton initialised at app startup via
``init_notification_service()``.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from docflow_db import Notification, SessionLocal, User
from docflow_db.enums import NotificationPriority, NotificationType
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, settings
from .fanout import NotificationIntent

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("id", "en")

# message_key -> language -> (title, message template)
MESSAGES: dict[str, dict[str, tuple[str, str]]] = {
    "REVIEW_REQUIRED": {
        "id": (
            "Dokumen Perlu Direview",
            'Dokumen "{doc_title}" dari {requester_name} membutuhkan review Anda.',
        ),
        "en": (
            "Document Review Required",
            'Document "{doc_title}" by {requester_name} requires your review.',
        ),
    },
    "APPROVAL_REQUIRED": {
        "id": (
            "Dokumen Perlu Disetujui",
            'Dokumen "{doc_title}" dari {requester_name} membutuhkan persetujuan Anda.',
        ),
        "en": (
            "Document Approval Required",
            'Document "{doc_title}" by {requester_name} requires your approval.',
        ),
    },
    "ACKNOWLEDGMENT_REQUIRED": {
        "id": (
            "Dokumen Perlu Acknowledge",
            'Dokumen "{doc_title}" dari {requester_name} membutuhkan acknowledge Anda.',
        ),
        "en": (
            "Document Acknowledgment Required",
            'Document "{doc_title}" by {requester_name} requires your acknowledgment.',
        ),
    },
    "VALIDATION_REQUIRED": {
        "id": (
            "Dokumen Menunggu Validasi",
            'Dokumen "{doc_title}" ({doc_number}) telah selesai disetujui dan menunggu validasi Anda.',
        ),
        "en": (
            "Document Awaiting Validation",
            'Document "{doc_title}" ({doc_number}) has completed all approvals and awaits your validation.',
        ),
    },
    "DOCUMENT_SIGNED": {
        "id": (
            "Dokumen Ditandatangani",
            '{signer_name} ({role}) telah menandatangani dokumen "{doc_title}".',
        ),
        "en": (
            "Document Signed",
            '{signer_name} ({role}) has signed your document "{doc_title}".',
        ),
    },
    "AWAITING_VALIDATION": {
        "id": (
            "Menunggu Validasi Admin",
            'Dokumen "{doc_title}" telah selesai ditandatangani dan menunggu validasi admin.',
        ),
        "en": (
            "Awaiting Admin Validation",
            'Your document "{doc_title}" has completed all signatures and awaits admin validation.',
        ),
    },
    "DOCUMENT_SUBMITTED": {
        "id": (
            "Dokumen Berhasil Diajukan",
            'Dokumen "{doc_title}" telah berhasil diajukan untuk direview.',
        ),
        "en": (
            "Document Submitted",
            'Your document "{doc_title}" has been submitted for review.',
        ),
    },
    "DOCUMENT_APPROVED": {
        "id": (
            "Dokumen Disetujui",
            'Dokumen "{doc_title}" telah divalidasi dan disetujui.',
        ),
        "en": (
            "Document Approved",
            'Your document "{doc_title}" has been validated and approved.',
        ),
    },
    "DOCUMENT_REJECTED": {
        "id": (
            "Dokumen Ditolak",
            'Dokumen "{doc_title}" ditolak.{reason_suffix}',
        ),
        "en": (
            "Document Rejected",
            'Your document "{doc_title}" was rejected.{reason_suffix}',
        ),
    },
    "REVISION_NEEDED": {
        "id": (
            "Revisi Dokumen Diminta",
            'Dokumen "{doc_title}" Anda memerlukan revisi.{reason_suffix}',
        ),
        "en": (
            "Document Revision Requested",
            'Your document "{doc_title}" requires revision.{reason_suffix}',
        ),
    },
}

_REASON_SUFFIX = {
    "id": (" Alasan: {reason}", " Silakan periksa dan revisi."),
    "en": (" Reason: {reason}", " Please check and revise."),
}

_FALLBACK = ("Notification", "You have a new notification.")


class _Params(dict):
    """Missing template fields render as empty strings."""

    def __missing__(self, key):
        return ""


def normalize_language(language: str | None, default: str | None = None) -> str:
    """Map a stored language code onto a supported catalog language."""
    fallback = default or settings.NOTIFICATION_DEFAULT_LANGUAGE
    if not language:
        return fallback
    code = language.lower()[:2]
    return code if code in SUPPORTED_LANGUAGES else fallback


def localize(message_key: str, language: str, params: dict | None = None) -> tuple[str, str]:
    """Return ``(title, message)`` for ``message_key`` in ``language``.

    Falls back to English when the language is missing from the catalog, and
    to a generic message for an unknown key.
    """
    entry = MESSAGES.get(message_key)
    if entry is None:
        return _FALLBACK
    lang = language if language in entry else "en"
    title, template = entry[lang]

    values = _Params(params or {})
    with_reason, without_reason = _REASON_SUFFIX[lang]
    reason = values.get("reason")
    values["reason_suffix"] = with_reason.format(reason=reason) if reason else without_reason
    return title, template.format_map(values)


# ---------------------------------------------------------------------------
# Default delivery: in-app notification rows
# ---------------------------------------------------------------------------


class NotificationService:
    """Writes localized in-app notifications in its own session.

    Runs outside the workflow transaction, so a delivery failure can never
    roll back a committed approval.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dedup_seconds: int = 5,
        default_language: str = "id",
    ):
        self._session_factory = session_factory
        self._dedup_window = timedelta(seconds=dedup_seconds)
        self._default_language = default_language

    async def send_localized_notification(
        self,
        user_id: str,
        notification_type: NotificationType,
        message_key: str,
        params: dict | None = None,
        link: str | None = None,
        priority: NotificationPriority = NotificationPriority.HIGH,
    ) -> int | None:
        """Deliver one notification; return its id, or None when the user opted out.

        An identical notification (same user, type, title and rendered message)
        written within the dedup window is reused instead of duplicated. Two
        different signers produce different messages, so both are delivered.
        """
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is not None and not user.notify_approvals:
                logger.info("User %s opted out of approval notifications", user_id)
                return None

            language = normalize_language(user.language if user else None, self._default_language)
            title, message = localize(message_key, language, params)

            since = datetime.now(UTC) - self._dedup_window
            stmt = (
                select(Notification)
                .where(
                    Notification.user_id == user_id,
                    Notification.type == notification_type,
                    Notification.title == title,
                    Notification.message == message,
                    Notification.created_at >= since,
                )
                .order_by(Notification.created_at.desc())
                .limit(1)
            )
            result = await session.execute(stmt)
            duplicate = result.scalar_one_or_none()
            if duplicate is not None:
                logger.info(
                    "Skipping duplicate notification for user %s: %r", user_id, title,
                )
                return duplicate.id

            notification = Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                link=link,
                priority=priority,
                is_read=False,
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)
            return notification.id


class NotificationDispatcher:
    """Delivers fan-out intents after the workflow transaction commits."""

    def __init__(self, service: NotificationService, enabled: bool = True):
        self._service = service
        self._enabled = enabled

    async def dispatch(self, intents: Iterable[NotificationIntent]) -> int:
        """Send each intent independently; return how many were delivered."""
        intents = list(intents)
        if not self._enabled:
            logger.info("Notifications disabled -- dropping %d intent(s)", len(intents))
            return 0

        delivered = 0
        for intent in intents:
            try:
                notification_id = await self._service.send_localized_notification(
                    intent.user_id,
                    intent.notification_type,
                    intent.message_key,
                    intent.params,
                    link=intent.link,
                    priority=intent.priority,
                )
            except Exception:
                logger.exception(
                    "Notification delivery failed (user=%s key=%s)",
                    intent.user_id,
                    intent.message_key,
                )
                continue
            if notification_id is not None:
                delivered += 1
        return delivered


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_dispatcher: NotificationDispatcher | None = None


def init_notification_service(
    cfg: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> NotificationDispatcher:
    """Initialise the singleton (called once from app lifespan)."""
    global _dispatcher  # noqa: PLW0603
    service = NotificationService(
        session_factory or SessionLocal,
        dedup_seconds=cfg.NOTIFICATION_DEDUP_SECONDS,
        default_language=cfg.NOTIFICATION_DEFAULT_LANGUAGE,
    )
    _dispatcher = NotificationDispatcher(service, enabled=cfg.NOTIFICATIONS_ENABLED)
    logger.info(
        "NotificationService initialised (enabled=%s, default_language=%s)",
        cfg.NOTIFICATIONS_ENABLED,
        cfg.NOTIFICATION_DEFAULT_LANGUAGE,
    )
    return _dispatcher


def get_notification_dispatcher() -> NotificationDispatcher:
    """Return the initialised NotificationDispatcher singleton."""
    if _dispatcher is None:
        raise RuntimeError(
            "NotificationService not initialised -- call init_notification_service() first"
        )
    return _dispatcher
