"""Notifications API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskhub.core.security import get_current_user
from taskhub.db.session import get_db
from taskhub.models.notification import NotificationType
from taskhub.models.user import User
from taskhub.schemas.schemas import ApiResponse, NotificationOut, NotificationPage, ok
from taskhub.services.filters import NotificationFilters, Page
from taskhub.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse[NotificationPage])
async def list_notifications(
    is_read: Optional[bool] = Query(None),
    type: Optional[NotificationType] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = NotificationService.list_notifications(
        db, user.id, NotificationFilters(is_read=is_read, type=type), Page(page, limit),
    )
    result["notifications"] = [NotificationOut.model_validate(n) for n in result["notifications"]]
    return ok(NotificationPage(**result))


@router.patch("/read-all", response_model=ApiResponse[dict])
async def mark_all_as_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = NotificationService.mark_all_as_read(db, user.id)
    return ok({"updated": updated}, "All notifications marked as read")


@router.patch("/{notification_id}/read", response_model=ApiResponse[NotificationOut])
async def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = NotificationService.mark_as_read(db, user.id, notification_id)
    return ok(NotificationOut.model_validate(notification), "Notification marked as read")
