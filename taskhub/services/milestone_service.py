"""Milestone service — the per-milestone approval loop and escrow release.

    PENDING -> SUBMITTED -> REVISION_REQUESTED -> SUBMITTED ...
                         -> APPROVED (terminal)

Every transition is a compare-and-set on ``milestones.status`` so two
concurrent calls cannot both succeed; in particular a milestone can only be
paid out once.
"""

import logging
from typing import List, Sequence

from sqlalchemy.orm import Session

from taskhub.core.exceptions import (
    AuthorizationError, ResourceConflictError, ResourceNotFoundError, invalid_state,
)
from taskhub.models.milestone import Milestone, MilestoneStatus
from taskhub.models.notification import NotificationType
from taskhub.models.task import Task, TaskStatus
from taskhub.models.user import User, UserRole
from taskhub.services.audit_service import AuditService
from taskhub.services.effects import Outbox
from taskhub.services.notification_service import NotificationService
from taskhub.services.payment_service import PaymentService
from taskhub.services.task_service import TaskService, task_url

logger = logging.getLogger("taskhub.milestones")

SUBMITTABLE = (MilestoneStatus.PENDING, MilestoneStatus.REVISION_REQUESTED)


def _transition(db: Session, milestone: Milestone, allowed: Sequence[MilestoneStatus], values: dict) -> None:
    """Move ``milestone`` out of one of ``allowed``; conflict if someone got there first."""
    if milestone.status not in allowed:
        raise invalid_state("Milestone", allowed if len(allowed) > 1 else allowed[0], milestone.status)
    updated = (
        db.query(Milestone)
        .filter(Milestone.id == milestone.id, Milestone.status.in_(allowed))
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ResourceConflictError("Milestone status changed concurrently; reload and retry")


class MilestoneService:

    @staticmethod
    def _load(db: Session, milestone_id: int) -> Milestone:
        milestone = db.query(Milestone).filter(Milestone.id == milestone_id).first()
        if not milestone:
            raise ResourceNotFoundError("Milestone not found")
        return milestone

    @staticmethod
    def _require_active_task(task: Task) -> None:
        if task.status != TaskStatus.IN_PROGRESS:
            raise invalid_state("Task", TaskStatus.IN_PROGRESS, task.status)

    @staticmethod
    def create_milestones(
        db: Session, outbox: Outbox, client: User, task_id: int, items: List[dict]
    ) -> List[Milestone]:
        """Bulk-create PENDING milestones for an IN_PROGRESS task in one transaction."""
        task = TaskService.get_owned_task(db, client.id, task_id, "add milestones to")
        MilestoneService._require_active_task(task)
        if task.freelancer_id is None:
            raise ResourceConflictError("Task has no assigned freelancer")

        milestones = [
            Milestone(
                task_id=task.id,
                description=item["description"],
                amount=item["amount"],
                due_date=item["due_date"],
                status=MilestoneStatus.PENDING,
            )
            for item in items
        ]
        db.add_all(milestones)
        db.flush()

        total = round(sum(m.amount for m in milestones), 2)
        if total > task.budget:
            # Not enforced; kept visible for operators
            logger.warning("Milestones on task %s add up to %s over budget %s", task.id, total, task.budget)

        NotificationService.create_notification(
            db, outbox, task.freelancer_id, NotificationType.MILESTONE_CREATED,
            f'{len(milestones)} new milestone(s) were added to the task "{task.title}".',
            url=task_url(task.id), task_id=task.id, milestone_id=milestones[0].id,
        )
        AuditService.record(db, client, "milestone.created", "task", task.id, {"count": len(milestones)})
        db.commit()
        for m in milestones:
            db.refresh(m)
        return milestones

    @staticmethod
    def list_milestones(db: Session, requester: User, task_id: int) -> List[Milestone]:
        """Milestones of a task ordered by due date, for its two parties (or an admin)."""
        task = TaskService.get_task_or_404(db, task_id)
        if requester.id not in (task.client_id, task.freelancer_id) and requester.role != UserRole.ADMIN:
            raise AuthorizationError("You are not authorized to view milestones for this task")
        return (
            db.query(Milestone)
            .filter(Milestone.task_id == task_id)
            .order_by(Milestone.due_date.asc(), Milestone.id.asc())
            .all()
        )

    @staticmethod
    def submit_milestone(db: Session, outbox: Outbox, freelancer: User, milestone_id: int) -> Milestone:
        milestone = MilestoneService._load(db, milestone_id)
        task = milestone.task
        if task.freelancer_id != freelancer.id:
            raise AuthorizationError("You are not authorized to submit this milestone")
        MilestoneService._require_active_task(task)

        _transition(db, milestone, SUBMITTABLE, {"status": MilestoneStatus.SUBMITTED})
        NotificationService.create_notification(
            db, outbox, task.client_id, NotificationType.MILESTONE_SUBMITTED,
            f'A milestone for "{task.title}" was submitted for your review.',
            url=task_url(task.id), task_id=task.id, milestone_id=milestone.id,
        )
        db.commit()
        db.refresh(milestone)
        logger.info("Milestone %s submitted", milestone.id)
        return milestone

    @staticmethod
    def request_revision(
        db: Session, outbox: Outbox, client: User, milestone_id: int, comments: str
    ) -> Milestone:
        milestone = MilestoneService._load(db, milestone_id)
        task = milestone.task
        if task.client_id != client.id:
            raise AuthorizationError("You are not authorized to review this milestone")
        MilestoneService._require_active_task(task)

        _transition(
            db, milestone, (MilestoneStatus.SUBMITTED,),
            {"status": MilestoneStatus.REVISION_REQUESTED, "comments": comments},
        )
        NotificationService.create_notification(
            db, outbox, task.freelancer_id, NotificationType.MILESTONE_REVISION_REQUESTED,
            f'The client requested changes to a milestone on "{task.title}".',
            url=task_url(task.id), task_id=task.id, milestone_id=milestone.id,
        )
        db.commit()
        db.refresh(milestone)
        return milestone

    @staticmethod
    def approve_milestone(db: Session, outbox: Outbox, client: User, milestone_id: int) -> Milestone:
        """Approve a SUBMITTED milestone and release its escrow.

        In one transaction: the milestone becomes APPROVED, the ledger gets
        ESCROW_RELEASE + PLATFORM_FEE + a PENDING PAYOUT, and if nothing else
        is outstanding the task moves to IN_REVIEW. The payout transfer
        itself runs after commit.
        """
        milestone = MilestoneService._load(db, milestone_id)
        task = milestone.task
        if task.client_id != client.id:
            raise AuthorizationError("You are not authorized to approve this milestone")
        MilestoneService._require_active_task(task)

        _transition(db, milestone, (MilestoneStatus.SUBMITTED,), {"status": MilestoneStatus.APPROVED})
        payout = PaymentService.record_milestone_release(db, task, milestone)

        outstanding = (
            db.query(Milestone)
            .filter(
                Milestone.task_id == task.id,
                Milestone.id != milestone.id,
                Milestone.status != MilestoneStatus.APPROVED,
            )
            .count()
        )
        moved_to_review = False
        if outstanding == 0:
            moved_to_review = (
                db.query(Task)
                .filter(Task.id == task.id, Task.status == TaskStatus.IN_PROGRESS)
                .update({"status": TaskStatus.IN_REVIEW}, synchronize_session=False)
            ) == 1

        NotificationService.create_notification(
            db, outbox, task.freelancer_id, NotificationType.MILESTONE_APPROVED,
            f'Your milestone for "{task.title}" was approved. '
            f"A payout of ${payout.amount:,.2f} is on its way.",
            url=task_url(task.id), task_id=task.id, milestone_id=milestone.id,
        )
        AuditService.record(
            db, client, "milestone.approved", "milestone", milestone.id,
            {"amount": milestone.amount, "payout_id": payout.id, "task_in_review": moved_to_review},
        )
        db.commit()
        outbox.payout(payout.id)

        db.refresh(milestone)
        logger.info(
            "Milestone %s approved; payout %s queued%s",
            milestone.id, payout.id, "; task moved to IN_REVIEW" if moved_to_review else "",
        )
        return milestone
