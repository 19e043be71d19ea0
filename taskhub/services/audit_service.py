"""Audit service — append-only trail of lifecycle and admin mutations."""

import json
from typing import Optional, Any
from sqlalchemy.orm import Session

from taskhub.models.audit_log import AuditLog
from taskhub.models.user import User
from taskhub.services.filters import Page, paginate


class AuditService:
    """Records immutable audit log entries for system events."""

    @staticmethod
    def record(
        db: Session,
        actor: Optional[User],
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        detail: Optional[Any] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Stage an audit entry in the caller's transaction.

        Args:
            action: e.g. "bid.accepted", "milestone.approved", "user.suspended"
            resource_type: task, bid, milestone, category, user, transaction

        The entry is committed together with the change it describes.
        """
        entry = AuditLog(
            actor_id=actor.id if actor else None,
            actor_email=actor.email if actor else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            detail_json=json.dumps(detail, default=str) if detail else None,
            ip_address=ip_address,
        )
        db.add(entry)
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: Optional[Page] = None,
    ) -> dict:
        """Query audit logs with filters and pagination."""
        page = page or Page(1, 50)
        query = db.query(AuditLog)

        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        logs, total, total_pages = paginate(query, page, AuditLog.created_at.desc(), AuditLog.id.desc())
        return {
            "logs": logs,
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_logs": total,
        }
