# This project was developed with assistance from AI tools.
"""Tests for the notification catalog, service and dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from docflow_db.enums import NotificationPriority, NotificationType

from docflow.core.config import Settings
from docflow.services import notifications
from docflow.services.fanout import NotificationIntent
from docflow.services.notifications import (
    MESSAGES,
    NotificationDispatcher,
    NotificationService,
    localize,
    normalize_language,
)
from factories import make_result, make_user

PARAMS = {
    "doc_title": "Cleanroom Gowning Procedure",
    "doc_number": "SOP-QA-001",
    "requester_name": "Rina Putri",
}

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def test_every_message_has_both_languages():
    for key, entry in MESSAGES.items():
        assert set(entry) == {"id", "en"}, key


def test_localize_english_review_required():
    title, message = localize("REVIEW_REQUIRED", "en", PARAMS)
    assert title == "Document Review Required"
    assert message == 'Document "Cleanroom Gowning Procedure" by Rina Putri requires your review.'


def test_localize_indonesian_validation_required():
    title, message = localize("VALIDATION_REQUIRED", "id", PARAMS)
    assert title == "Dokumen Menunggu Validasi"
    assert "(SOP-QA-001)" in message


def test_localize_signed_includes_signer_and_role():
    _, message = localize("DOCUMENT_SIGNED", "en", {**PARAMS, "signer_name": "Budi", "role": "Approver"})
    assert message.startswith("Budi (Approver) has signed")


def test_reason_suffix_with_and_without_reason():
    _, with_reason = localize("REVISION_NEEDED", "en", {**PARAMS, "reason": "Update section 2"})
    _, without_reason = localize("REVISION_NEEDED", "en", PARAMS)
    assert with_reason.endswith("Reason: Update section 2")
    assert without_reason.endswith("Please check and revise.")


def test_unknown_key_falls_back_to_generic_message():
    assert localize("NOPE", "en") == ("Notification", "You have a new notification.")


def test_missing_params_render_empty():
    _, message = localize("DOCUMENT_SUBMITTED", "en", {})
    assert message == 'Your document "" has been submitted for review.'


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, "id"), ("", "id"), ("en", "en"), ("EN-us", "en"), ("id", "id"), ("fr", "id")],
)
def test_normalize_language(raw, expected):
    assert normalize_language(raw, "id") == expected


# ---------------------------------------------------------------------------
# NotificationService
# ---------------------------------------------------------------------------


def _session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _session(user=None, duplicate=None):
    session = AsyncMock()
    session.get = AsyncMock(return_value=user)
    session.execute = AsyncMock(return_value=make_result(single=duplicate))

    def track_add(obj):
        obj.id = 77

    session.add = MagicMock(side_effect=track_add)
    return session


@pytest.mark.asyncio
async def test_service_writes_localized_row():
    session = _session(user=make_user(id="rev-1", language="en"))
    service = NotificationService(_session_factory(session))

    notification_id = await service.send_localized_notification(
        "rev-1",
        NotificationType.APPROVAL_REQUEST,
        "REVIEW_REQUIRED",
        PARAMS,
        link="/document-control/view/10",
        priority=NotificationPriority.HIGH,
    )

    assert notification_id == 77
    row = session.add.call_args[0][0]
    assert row.user_id == "rev-1"
    assert row.title == "Document Review Required"
    assert row.link == "/document-control/view/10"
    assert row.priority == NotificationPriority.HIGH
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_service_uses_default_language_for_unknown_user():
    session = _session(user=None)
    service = NotificationService(_session_factory(session), default_language="id")

    await service.send_localized_notification(
        "ghost", NotificationType.DOCUMENT_SUBMITTED, "DOCUMENT_SUBMITTED", PARAMS,
    )

    assert session.add.call_args[0][0].title == "Dokumen Berhasil Diajukan"


@pytest.mark.asyncio
async def test_service_respects_opt_out():
    session = _session(user=make_user(id="rev-1", notify_approvals=False))
    service = NotificationService(_session_factory(session))

    result = await service.send_localized_notification(
        "rev-1", NotificationType.APPROVAL_REQUEST, "REVIEW_REQUIRED", PARAMS,
    )

    assert result is None
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_service_skips_recent_duplicate():
    duplicate = MagicMock(id=55)
    session = _session(user=make_user(id="rev-1"), duplicate=duplicate)
    service = NotificationService(_session_factory(session))

    result = await service.send_localized_notification(
        "rev-1", NotificationType.APPROVAL_REQUEST, "REVIEW_REQUIRED", PARAMS,
    )

    assert result == 55
    session.add.assert_not_called()
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_duplicate_lookup_matches_rendered_message():
    """Two signers within the window render different messages; neither is a duplicate."""
    session = _session(user=make_user(id="requester-1", language="en"))
    service = NotificationService(_session_factory(session))

    await service.send_localized_notification(
        "requester-1",
        NotificationType.DOCUMENT_SIGNED,
        "DOCUMENT_SIGNED",
        {**PARAMS, "signer_name": "Budi", "role": "Reviewer"},
    )

    stmt = session.execute.await_args[0][0]
    compiled = stmt.compile()
    assert "notifications.message" in str(compiled).split("WHERE", 1)[1]
    assert 'Budi (Reviewer) has signed your document "Cleanroom Gowning Procedure".' in (
        compiled.params.values()
    )


# ---------------------------------------------------------------------------
# NotificationDispatcher
# ---------------------------------------------------------------------------


def _intent(user_id, key="REVIEW_REQUIRED"):
    return NotificationIntent(
        user_id=user_id,
        message_key=key,
        priority=NotificationPriority.HIGH,
        link="/document-control/view/10",
        notification_type=NotificationType.APPROVAL_REQUEST,
        params=PARAMS,
    )


@pytest.mark.asyncio
async def test_dispatcher_isolates_failures():
    service = MagicMock()
    service.send_localized_notification = AsyncMock(side_effect=[RuntimeError("boom"), 12, None])
    dispatcher = NotificationDispatcher(service)

    delivered = await dispatcher.dispatch([_intent("a"), _intent("b"), _intent("c")])

    assert delivered == 1
    assert service.send_localized_notification.await_count == 3


@pytest.mark.asyncio
async def test_dispatcher_passes_intent_fields():
    service = MagicMock()
    service.send_localized_notification = AsyncMock(return_value=1)
    dispatcher = NotificationDispatcher(service)

    await dispatcher.dispatch([_intent("rev-1")])

    service.send_localized_notification.assert_awaited_once_with(
        "rev-1",
        NotificationType.APPROVAL_REQUEST,
        "REVIEW_REQUIRED",
        PARAMS,
        link="/document-control/view/10",
        priority=NotificationPriority.HIGH,
    )


@pytest.mark.asyncio
async def test_disabled_dispatcher_sends_nothing():
    service = MagicMock()
    service.send_localized_notification = AsyncMock()
    dispatcher = NotificationDispatcher(service, enabled=False)

    assert await dispatcher.dispatch([_intent("rev-1")]) == 0
    service.send_localized_notification.assert_not_awaited()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------


def test_get_dispatcher_before_init_raises(monkeypatch):
    monkeypatch.setattr(notifications, "_dispatcher", None)
    with pytest.raises(RuntimeError, match="not initialised"):
        notifications.get_notification_dispatcher()


def test_init_dispatcher_uses_settings(monkeypatch):
    monkeypatch.setattr(notifications, "_dispatcher", None)
    cfg = Settings(NOTIFICATIONS_ENABLED=False, NOTIFICATION_DEDUP_SECONDS=9)
    dispatcher = notifications.init_notification_service(cfg, session_factory=MagicMock())
    assert notifications.get_notification_dispatcher() is dispatcher
    assert dispatcher._enabled is False
    assert dispatcher._service._dedup_window.total_seconds() == 9
