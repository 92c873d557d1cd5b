"""
Notifications Module - In-app notifications with email fan-out.
"""

from src.notifications.service import notification_service, NotificationService

__all__ = [
    "notification_service",
    "NotificationService"
]
