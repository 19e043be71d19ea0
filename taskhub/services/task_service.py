"""Task service — posting, browsing and the task status machine.

    OPEN -> IN_PROGRESS -> IN_REVIEW -> COMPLETED
    OPEN | IN_PROGRESS -> CANCELLED

OPEN -> IN_PROGRESS happens only through bid acceptance (bid_service) and
IN_PROGRESS -> IN_REVIEW only when the last milestone is approved
(milestone_service).
"""

import logging
from typing import Optional, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskhub.core.exceptions import (
    AuthorizationError, ResourceConflictError, ResourceNotFoundError,
    ValidationError, invalid_state,
)
from taskhub.models.bid import Bid, BidStatus
from taskhub.models.category import Category
from taskhub.models.milestone import Milestone, MilestoneStatus
from taskhub.models.notification import NotificationType
from taskhub.models.task import Task, Attachment, TaskStatus
from taskhub.models.user import User, UserRole
from taskhub.services.audit_service import AuditService
from taskhub.services.effects import Outbox
from taskhub.services.filters import Page, TaskFilters, paginate
from taskhub.services.notification_service import NotificationService

logger = logging.getLogger("taskhub.tasks")

CANCELLABLE = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)
FINANCIALLY_EDITABLE = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)
CLOSED = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)
EDITABLE_FIELDS = ("title", "description", "budget", "deadline", "skills", "category_id")


def task_url(task_id: int) -> str:
    return f"/dashboard/tasks/{task_id}"


class TaskService:

    @staticmethod
    def get_task_or_404(db: Session, task_id: int) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise ResourceNotFoundError("Task not found")
        return task

    @staticmethod
    def get_owned_task(db: Session, client_id: int, task_id: int, action: str) -> Task:
        """Load a task and make sure ``client_id`` posted it."""
        task = TaskService.get_task_or_404(db, task_id)
        if task.client_id != client_id:
            raise AuthorizationError(f"You are not authorized to {action} this task")
        return task

    @staticmethod
    def _ensure_category(db: Session, category_id: int) -> None:
        if not db.query(Category).filter(Category.id == category_id).first():
            raise ResourceNotFoundError("Category not found")

    @staticmethod
    def create_task(db: Session, client: User, data: dict) -> Task:
        """Post a new task in OPEN status."""
        if client.role != UserRole.CLIENT:
            raise AuthorizationError("Only clients can post tasks")
        TaskService._ensure_category(db, data["category_id"])

        task = Task(
            title=data["title"],
            description=data["description"],
            budget=data["budget"],
            deadline=data["deadline"],
            skills=data.get("skills") or [],
            category_id=data["category_id"],
            client_id=client.id,
            status=TaskStatus.OPEN,
        )
        for item in data.get("attachments") or []:
            task.attachments.append(Attachment(**item))
        db.add(task)
        db.flush()
        AuditService.record(db, client, "task.created", "task", task.id, {"budget": task.budget})
        db.commit()
        db.refresh(task)
        logger.info("Task %s posted by client %s", task.id, client.id)
        return task

    @staticmethod
    def list_tasks(
        db: Session,
        filters: TaskFilters,
        page: Page,
        scope_user: Optional[User] = None,
    ) -> dict:
        """Browse tasks.

        Without ``scope_user`` this is the public marketplace and only OPEN
        tasks are shown unless a status filter says otherwise. With it, the
        list is that user's own work: posted tasks for a client, assigned
        tasks for a freelancer, everything for an admin.
        """
        query = db.query(Task)
        if scope_user is None:
            if filters.status is None:
                query = query.filter(Task.status == TaskStatus.OPEN)
        elif scope_user.role == UserRole.CLIENT:
            query = query.filter(Task.client_id == scope_user.id)
        elif scope_user.role == UserRole.FREELANCER:
            query = query.filter(Task.freelancer_id == scope_user.id)

        query = filters.apply(query)
        tasks, total, total_pages = paginate(query, page, *filters.ordering())
        return {
            "tasks": tasks,
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_tasks": total,
        }

    @staticmethod
    def get_task(db: Session, task_id: int, requester: Optional[User] = None) -> Tuple[Task, List[Bid]]:
        """Task plus the bids the requester may see.

        The owning client and admins see every bid, a freelancer sees only
        their own, anonymous callers see none.
        """
        task = TaskService.get_task_or_404(db, task_id)
        bids_query = task.bids.order_by(Bid.created_at.desc(), Bid.id.desc())
        if requester is None:
            bids = []
        elif requester.role == UserRole.ADMIN or requester.id == task.client_id:
            bids = bids_query.all()
        elif requester.role == UserRole.FREELANCER:
            bids = bids_query.filter(Bid.freelancer_id == requester.id).all()
        else:
            bids = []
        return task, bids

    @staticmethod
    def get_my_task_stats(db: Session, user: User) -> dict:
        """Task counts per status for the caller, plus TOTAL."""
        column = Task.freelancer_id if user.role == UserRole.FREELANCER else Task.client_id
        rows = (
            db.query(Task.status, func.count(Task.id))
            .filter(column == user.id)
            .group_by(Task.status)
            .all()
        )
        counts = {status.value: 0 for status in TaskStatus}
        for status, count in rows:
            counts[status.value] = count
        counts["TOTAL"] = sum(counts.values())
        return counts

    @staticmethod
    def update_task(db: Session, client: User, task_id: int, changes: dict) -> Task:
        """Edit task details. Status is never changed here."""
        task = TaskService.get_owned_task(db, client.id, task_id, "update")
        if task.status in CLOSED:
            raise ValidationError(f"Cannot update a task that is {task.status.value}")

        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        touches_money = "budget" in changes or "category_id" in changes
        if touches_money and task.status not in FINANCIALLY_EDITABLE:
            raise ValidationError(
                "Budget and category can only be changed while the task is OPEN or IN_PROGRESS"
            )
        if "category_id" in changes:
            TaskService._ensure_category(db, changes["category_id"])

        for field, value in changes.items():
            setattr(task, field, value)
        AuditService.record(db, client, "task.updated", "task", task.id, sorted(changes))
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def delete_task(db: Session, client: User, task_id: int) -> None:
        """Remove an OPEN task that has not attracted any bids."""
        task = TaskService.get_owned_task(db, client.id, task_id, "delete")
        if task.status != TaskStatus.OPEN:
            raise invalid_state("Task", TaskStatus.OPEN, task.status)
        if task.bids.count():
            raise ResourceConflictError("Cannot delete a task that already has bids; cancel it instead")
        AuditService.record(db, client, "task.deleted", "task", task.id, {"title": task.title})
        db.delete(task)
        db.commit()
        logger.info("Task %s deleted by client %s", task_id, client.id)

    @staticmethod
    def cancel_task(db: Session, outbox: Outbox, requester: User, task_id: int) -> Task:
        """Cancel an OPEN or IN_PROGRESS task (owner or admin).

        Pending bids are rejected and the assigned freelancer, if any, is
        notified. The status write is a compare-and-set so a cancel cannot
        overwrite a concurrent bid acceptance or completion.
        """
        task = TaskService.get_task_or_404(db, task_id)
        if task.client_id != requester.id and requester.role != UserRole.ADMIN:
            raise AuthorizationError("You are not authorized to cancel this task")
        if task.status not in CANCELLABLE:
            raise invalid_state("Task", CANCELLABLE, task.status)

        previous = task.status
        updated = (
            db.query(Task)
            .filter(Task.id == task_id, Task.status == previous)
            .update({"status": TaskStatus.CANCELLED}, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            raise ResourceConflictError("Task status changed concurrently; reload and retry")

        db.query(Bid).filter(
            Bid.task_id == task_id, Bid.status == BidStatus.PENDING
        ).update({"status": BidStatus.REJECTED}, synchronize_session=False)

        if task.freelancer_id:
            NotificationService.create_notification(
                db, outbox, task.freelancer_id, NotificationType.TASK_CANCELLED,
                f'Task "{task.title}" has been cancelled by the client.',
                url=task_url(task.id), task_id=task.id,
            )
        AuditService.record(
            db, requester, "task.cancelled", "task", task.id, {"from": previous.value}
        )
        db.commit()
        db.refresh(task)
        logger.info("Task %s cancelled (was %s) by user %s", task_id, previous.value, requester.id)
        return task

    @staticmethod
    def complete_task(db: Session, outbox: Outbox, client: User, task_id: int) -> Task:
        """Close a task once it is IN_REVIEW and every milestone is APPROVED."""
        task = TaskService.get_owned_task(db, client.id, task_id, "complete")
        if task.status != TaskStatus.IN_REVIEW:
            raise invalid_state("Task", TaskStatus.IN_REVIEW, task.status)

        outstanding = (
            db.query(Milestone)
            .filter(Milestone.task_id == task_id, Milestone.status != MilestoneStatus.APPROVED)
            .count()
        )
        if outstanding:
            raise ResourceConflictError(
                f"All milestones must be APPROVED before completion ({outstanding} outstanding)"
            )

        updated = (
            db.query(Task)
            .filter(Task.id == task_id, Task.status == TaskStatus.IN_REVIEW)
            .update({"status": TaskStatus.COMPLETED}, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            raise ResourceConflictError("Task status changed concurrently; reload and retry")

        NotificationService.create_notification(
            db, outbox, task.freelancer_id, NotificationType.TASK_COMPLETED,
            f'Task "{task.title}" has been marked as completed.',
            url=task_url(task.id), task_id=task.id,
        )
        AuditService.record(db, client, "task.completed", "task", task.id)
        db.commit()
        db.refresh(task)
        logger.info("Task %s completed", task_id)
        return task
