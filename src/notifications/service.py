"""Public service interface for the Notifications module."""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import settings
from src.core.database import async_session_factory
from src.core.notifications import email_client, EmailClient
from src.core.utils import utcnow
from src.notifications.database import (
    NotificationModel, NotificationPriority, NotificationStatus, default_channels
)
from src.staffing.database import UserModel

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Stores in-app notifications and pushes them through their enabled channels.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        mailer: Optional[EmailClient] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.mailer = mailer or email_client

    async def create_notification(
        self,
        recipient_id: int,
        type: str,
        title: str,
        message: str,
        priority: str = NotificationPriority.MEDIUM.value,
        channels: Optional[Dict[str, Any]] = None,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        recipient_email: Optional[str] = None,
        scheduled_for: Optional[datetime] = None,
    ) -> NotificationModel:
        """
        Persist a notification and send it straight away when it is due.

        Raises:
            ValueError: if no recipient is given.
        """
        if not recipient_id:
            raise ValueError("Invalid notification data: recipient is required")

        merged = default_channels()
        for name, options in (channels or {}).items():
            merged.setdefault(name, {}).update(options)

        async with self.session_factory() as session:
            notification = NotificationModel(
                recipient_id=recipient_id,
                type=type,
                title=title,
                message=message,
                priority=priority,
                status=NotificationStatus.PENDING.value,
                channels=merged,
                action_url=action_url,
                extra=metadata,
                scheduled_for=scheduled_for,
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)

            if notification.should_send():
                await self._send(session, notification, recipient_email)

        return notification

    async def process_scheduled_notifications(self, now: Optional[datetime] = None) -> int:
        """
        Send pending notifications whose scheduled time has passed.

        One notification's failure never stops the rest.

        Returns:
            Number of notifications attempted.
        """
        now = now or utcnow()
        async with self.session_factory() as session:
            stmt = (
                select(NotificationModel)
                .where(
                    NotificationModel.status == NotificationStatus.PENDING.value,
                    NotificationModel.scheduled_for.is_not(None),
                    NotificationModel.scheduled_for <= now,
                )
                .order_by(NotificationModel.scheduled_for, NotificationModel.id)
            )
            result = await session.execute(stmt)
            pending = [n.id for n in result.scalars().all() if n.should_send(now)]

        for notification_id in pending:
            try:
                async with self.session_factory() as session:
                    notification = await session.get(NotificationModel, notification_id)
                    await self._send(session, notification, None)
            except Exception as e:
                logger.error(f"Failed to send scheduled notification {notification_id}: {e}")

        if pending:
            logger.info(f"Processed {len(pending)} scheduled notifications")
        return len(pending)

    async def _send(
        self,
        session: AsyncSession,
        notification: NotificationModel,
        recipient_email: Optional[str],
    ) -> bool:
        channels = {name: dict(options) for name, options in (notification.channels or {}).items()}
        all_channels_successful = True

        email_channel = channels.get("email", {})
        if email_channel.get("enabled"):
            to_email = recipient_email or await self._lookup_email(session, notification.recipient_id)
            if to_email:
                try:
                    sent = await asyncio.to_thread(
                        self.mailer.send_email,
                        to_email,
                        notification.title,
                        self._render_email(notification),
                    )
                    if not sent:
                        raise RuntimeError("mail transport rejected the message")
                    email_channel["sent"] = True
                    email_channel["sent_at"] = utcnow().isoformat()
                except Exception as e:
                    logger.error(f"Email sending failed for notification {notification.id}: {e}")
                    email_channel["error"] = str(e)
                    all_channels_successful = False
            channels["email"] = email_channel

        notification.channels = channels
        notification.status = (
            NotificationStatus.SENT.value if all_channels_successful else NotificationStatus.FAILED.value
        )
        await session.commit()
        return all_channels_successful

    async def _lookup_email(self, session: AsyncSession, user_id: int) -> Optional[str]:
        result = await session.execute(select(UserModel.email).where(UserModel.id == user_id))
        return result.scalar_one_or_none()

    def _render_email(self, notification: NotificationModel) -> str:
        link = ""
        if notification.action_url:
            url = f"{settings.app_base_url.rstrip('/')}{notification.action_url}"
            link = f'<p><a href="{url}">View details</a></p>'
        return f"""
        <h2>{notification.title}</h2>
        <p>{notification.message}</p>
        {link}
        <p><i>Sent by {settings.system_name}</i></p>
        """

    async def mark_as_read(self, notification_id: int, recipient_id: Optional[int] = None) -> Optional[NotificationModel]:
        async with self.session_factory() as session:
            notification = await session.get(NotificationModel, notification_id)
            if not notification or (recipient_id is not None and notification.recipient_id != recipient_id):
                return None
            channels = {name: dict(options) for name, options in (notification.channels or {}).items()}
            in_app = channels.setdefault("in_app", {})
            in_app["read"] = True
            in_app["read_at"] = utcnow().isoformat()
            notification.channels = channels
            if notification.status == NotificationStatus.SENT.value:
                notification.status = NotificationStatus.READ.value
            await session.commit()
            await session.refresh(notification)
            return notification

    async def list_for_user(self, user_id: int, limit: int = 50) -> List[NotificationModel]:
        async with self.session_factory() as session:
            stmt = (
                select(NotificationModel)
                .where(NotificationModel.recipient_id == user_id)
                .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())


# Singleton
notification_service = NotificationService()
