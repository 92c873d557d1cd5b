"""Shared dependencies for HTD API routers."""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.models import UserRole
from src.staffing.database import UserModel

logger = logging.getLogger(__name__)

ADMIN_ROLES = {UserRole.ADMIN.value, UserRole.SUPERADMIN.value}


# --- Caller identity ---
# Authentication happens upstream; the gateway forwards the caller's user id.

def get_current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> int:
    """Resolve the calling user from the X-User-Id header."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return x_user_id


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db),
) -> UserModel:
    user = await session.get(UserModel, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return user


async def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    """Allow only admin and superadmin users."""
    if user.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return user
