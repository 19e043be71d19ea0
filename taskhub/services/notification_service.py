"""Notification service — persisted notices plus a realtime push per notice."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from taskhub.core.exceptions import AuthorizationError, ResourceNotFoundError
from taskhub.models.notification import Notification, NotificationType
from taskhub.schemas.schemas import NotificationOut
from taskhub.services.effects import Outbox
from taskhub.services.filters import NotificationFilters, Page, paginate
from taskhub.services.realtime import user_room

logger = logging.getLogger("taskhub.notifications")


class NotificationService:
    """Creates and reads user notifications."""

    @staticmethod
    def create_notification(
        db: Session,
        outbox: Outbox,
        user_id: int,
        type: NotificationType,
        message: str,
        url: Optional[str] = None,
        task_id: Optional[int] = None,
        bid_id: Optional[int] = None,
        milestone_id: Optional[int] = None,
    ) -> Notification:
        """Stage a notification row and queue its ``new_notification`` push.

        Does not commit: the row lands with the state change that caused it.
        """
        notification = Notification(
            user_id=user_id,
            type=type,
            message=message,
            url=url,
            task_id=task_id,
            bid_id=bid_id,
            milestone_id=milestone_id,
            is_read=False,
        )
        db.add(notification)
        db.flush()
        db.refresh(notification)
        outbox.push(
            user_room(user_id),
            "new_notification",
            NotificationOut.model_validate(notification).model_dump(mode="json"),
        )
        return notification

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: int,
        filters: NotificationFilters,
        page: Page,
    ) -> dict:
        query = filters.apply(db.query(Notification).filter(Notification.user_id == user_id))
        rows, total, total_pages = paginate(
            query, page, Notification.created_at.desc(), Notification.id.desc()
        )
        unread = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )
        return {
            "notifications": rows,
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_notifications": total,
            "unread_count": unread,
        }

    @staticmethod
    def mark_as_read(db: Session, user_id: int, notification_id: int) -> Notification:
        """Flag one notification read. Calling it twice is harmless."""
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise ResourceNotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise AuthorizationError("You are not authorized to update this notification")
        if not notification.is_read:
            notification.is_read = True
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        updated = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({"is_read": True}, synchronize_session=False)
        )
        db.commit()
        logger.info("User %s marked %s notifications read", user_id, updated)
        return updated
