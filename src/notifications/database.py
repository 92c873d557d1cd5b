"""Database models for in-app notifications."""
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Integer, String, DateTime, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.core.database import Base
from src.core.utils import utcnow


class NotificationType(str, PyEnum):
    TRAINING_PROGRESS = "TRAINING_PROGRESS"
    PAYMENT_REMINDER = "PAYMENT_REMINDER"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    EVALUATION_DUE = "EVALUATION_DUE"
    TRAINING_COMPLETED = "TRAINING_COMPLETED"
    CANDIDATE_STATUS_CHANGE = "CANDIDATE_STATUS_CHANGE"
    DOCUMENT_UPLOAD = "DOCUMENT_UPLOAD"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    CUSTOM = "CUSTOM"


class NotificationPriority(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationStatus(str, PyEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    READ = "READ"
    FAILED = "FAILED"


def default_channels() -> dict:
    return {
        "email": {"enabled": True, "sent": False, "sent_at": None, "error": None},
        "in_app": {"enabled": True, "read": False, "read_at": None},
    }


class NotificationModel(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipient_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=NotificationPriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(10), default=NotificationStatus.PENDING.value, index=True)

    channels: Mapped[dict] = mapped_column(JSON, default=default_channels)
    action_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_notification_recipient_status', 'recipient_id', 'status'),
    )

    def should_send(self, now: Optional[datetime] = None) -> bool:
        """Pending, not expired and not scheduled for the future."""
        now = now or utcnow()
        if self.status != NotificationStatus.PENDING.value:
            return False
        if self.expires_at and self.expires_at < now:
            return False
        if self.scheduled_for and self.scheduled_for > now:
            return False
        return True

    def __repr__(self):
        return f"<NotificationModel(id={self.id}, recipient_id={self.recipient_id}, status='{self.status}')>"
