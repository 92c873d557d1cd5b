"""Notifications router: in-app notification feed."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.core.schemas import StandardResponse
from src.notifications.service import notification_service
from src.web.dependencies import get_current_user_id
from src.web.responses import http_error
from src.web.serializers import serialize, serialize_list

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"]
)


@router.get("", response_model=StandardResponse[list], summary="List Notifications")
async def list_notifications(
    user_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    caller_id: int = Depends(get_current_user_id),
):
    """Latest notifications for a user (defaults to the caller)."""
    try:
        notifications = await notification_service.list_for_user(user_id or caller_id, limit=limit)
        return StandardResponse(data=serialize_list(notifications))
    except Exception as e:
        raise http_error(e, "Failed to fetch notifications")


@router.post("/{notification_id}/read", response_model=StandardResponse[dict], summary="Mark Notification Read")
async def mark_as_read(notification_id: int, caller_id: int = Depends(get_current_user_id)):
    try:
        notification = await notification_service.mark_as_read(notification_id, recipient_id=caller_id)
    except Exception as e:
        raise http_error(e, "Failed to update notification")
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return StandardResponse(data=serialize(notification), message="Notification marked as read")
