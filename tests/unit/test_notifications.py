"""
Unit tests for the in-app notification service.
"""
import pytest
from datetime import timedelta

from src.core.utils import utcnow
from src.notifications.database import NotificationModel, NotificationStatus


@pytest.mark.asyncio
async def test_create_sends_email_by_default(notification_service, mock_mailer, users):
    notification = await notification_service.create_notification(
        recipient_id=users["recipient"].id,
        type="SYSTEM_ALERT",
        title="Report Ready",
        message="Your report is ready.",
        action_url="/reports/download/1",
        metadata={"format": "PDF"},
    )

    assert notification.status == NotificationStatus.SENT.value
    assert notification.channels["email"]["sent"] is True
    assert notification.extra == {"format": "PDF"}

    to, subject, html = mock_mailer.send_email.call_args.args
    assert to == "ravi@example.com"
    assert subject == "Report Ready"
    assert "/reports/download/1" in html


@pytest.mark.asyncio
async def test_in_app_only_skips_email(notification_service, mock_mailer, users):
    notification = await notification_service.create_notification(
        recipient_id=users["recipient"].id,
        type="SYSTEM_ALERT",
        title="Report Ready",
        message="Ready.",
        channels={"email": {"enabled": False}, "in_app": {"enabled": True}},
    )

    mock_mailer.send_email.assert_not_called()
    assert notification.status == NotificationStatus.SENT.value
    assert notification.channels["in_app"]["read"] is False


@pytest.mark.asyncio
async def test_email_failure_marks_failed(notification_service, mock_mailer, users):
    mock_mailer.send_email.return_value = False

    notification = await notification_service.create_notification(
        recipient_id=users["owner"].id, type="SYSTEM_ALERT", title="t", message="m",
        recipient_email="asha@example.com",
    )

    assert notification.status == NotificationStatus.FAILED.value
    assert "rejected" in notification.channels["email"]["error"]


@pytest.mark.asyncio
async def test_future_notification_not_sent(notification_service, mock_mailer, users):
    notification = await notification_service.create_notification(
        recipient_id=users["owner"].id, type="CUSTOM", title="t", message="m",
        scheduled_for=utcnow() + timedelta(hours=1),
    )

    mock_mailer.send_email.assert_not_called()
    assert notification.status == NotificationStatus.PENDING.value


@pytest.mark.asyncio
async def test_scheduled_notifications_sent_once_due(notification_service, session_factory, mock_mailer, users):
    due = await notification_service.create_notification(
        recipient_id=users["recipient"].id, type="CUSTOM", title="due", message="m",
        scheduled_for=utcnow() + timedelta(minutes=5),
    )
    later = await notification_service.create_notification(
        recipient_id=users["recipient"].id, type="CUSTOM", title="later", message="m",
        scheduled_for=utcnow() + timedelta(days=1),
    )
    expired = await notification_service.create_notification(
        recipient_id=users["recipient"].id, type="CUSTOM", title="expired", message="m",
        scheduled_for=utcnow() + timedelta(minutes=5),
    )
    async with session_factory() as session:
        (await session.get(NotificationModel, expired.id)).expires_at = utcnow() + timedelta(minutes=1)
        await session.commit()

    sent = await notification_service.process_scheduled_notifications(now=utcnow() + timedelta(minutes=10))

    assert sent == 1
    assert [c.args[1] for c in mock_mailer.send_email.call_args_list] == ["due"]
    assert mock_mailer.send_email.call_args.args[0] == "ravi@example.com"
    async with session_factory() as session:
        assert (await session.get(NotificationModel, due.id)).status == NotificationStatus.SENT.value
        assert (await session.get(NotificationModel, later.id)).status == NotificationStatus.PENDING.value
        assert (await session.get(NotificationModel, expired.id)).status == NotificationStatus.PENDING.value

    assert await notification_service.process_scheduled_notifications(now=utcnow() + timedelta(minutes=10)) == 0


@pytest.mark.asyncio
async def test_scheduled_notification_failure_marks_failed(notification_service, session_factory, mock_mailer, users):
    mock_mailer.send_email.side_effect = RuntimeError("smtp down")
    created = await notification_service.create_notification(
        recipient_id=users["owner"].id, type="CUSTOM", title="t", message="m",
        scheduled_for=utcnow() + timedelta(minutes=5),
    )

    assert await notification_service.process_scheduled_notifications(now=utcnow() + timedelta(minutes=10)) == 1

    async with session_factory() as session:
        stored = await session.get(NotificationModel, created.id)
        assert stored.status == NotificationStatus.FAILED.value
        assert "smtp down" in stored.channels["email"]["error"]


@pytest.mark.asyncio
async def test_recipient_required(notification_service):
    with pytest.raises(ValueError):
        await notification_service.create_notification(recipient_id=None, type="CUSTOM", title="t", message="m")


@pytest.mark.asyncio
async def test_mark_as_read(notification_service, users):
    created = await notification_service.create_notification(
        recipient_id=users["recipient"].id, type="CUSTOM", title="t", message="m",
    )

    assert await notification_service.mark_as_read(created.id, recipient_id=users["owner"].id) is None

    read = await notification_service.mark_as_read(created.id, recipient_id=users["recipient"].id)
    assert read.status == NotificationStatus.READ.value
    assert read.channels["in_app"]["read"] is True


@pytest.mark.asyncio
async def test_list_for_user(notification_service, users):
    for title in ("first", "second"):
        await notification_service.create_notification(
            recipient_id=users["recipient"].id, type="CUSTOM", title=title, message="m",
        )
    await notification_service.create_notification(
        recipient_id=users["owner"].id, type="CUSTOM", title="other", message="m",
    )

    notifications = await notification_service.list_for_user(users["recipient"].id)

    assert [n.title for n in notifications] == ["second", "first"]
    assert all(isinstance(n, NotificationModel) for n in notifications)


def test_should_send_rules():
    now = utcnow()
    assert NotificationModel(status="PENDING").should_send(now)
    assert not NotificationModel(status="SENT").should_send(now)
    assert not NotificationModel(status="PENDING", expires_at=now - timedelta(minutes=1)).should_send(now)
    assert not NotificationModel(status="PENDING", scheduled_for=now + timedelta(minutes=1)).should_send(now)
