"""Bid service — submitting, editing, withdrawing and accepting bids."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from taskhub.core.exceptions import (
    AuthorizationError, ResourceConflictError, ResourceNotFoundError, invalid_state,
)
from taskhub.models.bid import Bid, BidStatus
from taskhub.models.notification import NotificationType
from taskhub.models.task import Task, TaskStatus
from taskhub.models.user import User, UserRole
from taskhub.services.audit_service import AuditService
from taskhub.services.effects import Outbox
from taskhub.services.notification_service import NotificationService
from taskhub.services.task_service import TaskService, task_url

logger = logging.getLogger("taskhub.bids")


class BidService:

    @staticmethod
    def get_bid_or_404(db: Session, bid_id: int) -> Bid:
        bid = db.query(Bid).filter(Bid.id == bid_id).first()
        if not bid:
            raise ResourceNotFoundError("Bid not found")
        return bid

    @staticmethod
    def create_bid(
        db: Session, outbox: Outbox, freelancer: User, task_id: int, amount: float, proposal: str
    ) -> Bid:
        """Place a bid on an OPEN task.

        Raises:
            ResourceConflictError: If the task is not OPEN, or the freelancer
                already has a PENDING bid on it.
        """
        if freelancer.role != UserRole.FREELANCER:
            raise AuthorizationError("Only freelancers can place bids")
        task = TaskService.get_task_or_404(db, task_id)
        if task.status != TaskStatus.OPEN:
            raise ResourceConflictError(
                f"Task is not open for bidding (current status: {task.status.value})"
            )
        duplicate = (
            db.query(Bid)
            .filter(
                Bid.task_id == task_id,
                Bid.freelancer_id == freelancer.id,
                Bid.status == BidStatus.PENDING,
            )
            .first()
        )
        if duplicate:
            raise ResourceConflictError("You have already placed a bid on this task")

        bid = Bid(
            task_id=task_id,
            freelancer_id=freelancer.id,
            amount=amount,
            proposal=proposal,
            status=BidStatus.PENDING,
        )
        db.add(bid)
        db.flush()
        NotificationService.create_notification(
            db, outbox, task.client_id, NotificationType.NEW_BID,
            f'You have received a new bid of ${amount:,.2f} on your task "{task.title}".',
            url=task_url(task.id), task_id=task.id, bid_id=bid.id,
        )
        db.commit()
        db.refresh(bid)
        logger.info("Freelancer %s bid %s on task %s", freelancer.id, amount, task_id)
        return bid

    @staticmethod
    def list_bids_for_task(db: Session, client: User, task_id: int) -> List[Bid]:
        """All bids on a task, for its owner."""
        task = TaskService.get_owned_task(db, client.id, task_id, "view bids for")
        return task.bids.order_by(Bid.created_at.desc(), Bid.id.desc()).all()

    @staticmethod
    def list_my_bids(db: Session, freelancer: User, status: Optional[BidStatus] = None) -> List[Bid]:
        query = db.query(Bid).filter(Bid.freelancer_id == freelancer.id)
        if status is not None:
            query = query.filter(Bid.status == status)
        return query.order_by(Bid.created_at.desc(), Bid.id.desc()).all()

    @staticmethod
    def _get_editable_bid(db: Session, freelancer: User, bid_id: int, action: str) -> Bid:
        bid = BidService.get_bid_or_404(db, bid_id)
        if bid.freelancer_id != freelancer.id:
            raise AuthorizationError(f"You are not authorized to {action} this bid")
        if bid.task.status != TaskStatus.OPEN:
            raise invalid_state("Task", TaskStatus.OPEN, bid.task.status)
        if bid.status != BidStatus.PENDING:
            raise invalid_state("Bid", BidStatus.PENDING, bid.status)
        return bid

    @staticmethod
    def update_bid(db: Session, freelancer: User, bid_id: int, changes: dict) -> Bid:
        bid = BidService._get_editable_bid(db, freelancer, bid_id, "update")
        if changes.get("amount") is not None:
            bid.amount = changes["amount"]
        if changes.get("proposal") is not None:
            bid.proposal = changes["proposal"]
        db.commit()
        db.refresh(bid)
        return bid

    @staticmethod
    def withdraw_bid(db: Session, freelancer: User, bid_id: int) -> None:
        bid = BidService._get_editable_bid(db, freelancer, bid_id, "withdraw")
        db.delete(bid)
        db.commit()
        logger.info("Bid %s withdrawn by freelancer %s", bid_id, freelancer.id)

    @staticmethod
    def accept_bid(db: Session, outbox: Outbox, client: User, bid_id: int) -> Bid:
        """Accept one bid and assign its freelancer, as a single transaction.

        The task row is claimed with ``UPDATE ... WHERE status = 'OPEN' AND
        freelancer_id IS NULL``; whoever loses that race gets a conflict and
        nothing else is written. Inside the same transaction the bid becomes
        ACCEPTED and every other PENDING bid on the task becomes REJECTED.
        """
        bid = BidService.get_bid_or_404(db, bid_id)
        task = bid.task
        if task.client_id != client.id:
            raise AuthorizationError("You are not authorized to accept bids for this task")
        if task.status != TaskStatus.OPEN:
            raise invalid_state("Task", TaskStatus.OPEN, task.status)
        if bid.status != BidStatus.PENDING:
            raise invalid_state("Bid", BidStatus.PENDING, bid.status)

        try:
            claimed = (
                db.query(Task)
                .filter(
                    Task.id == task.id,
                    Task.status == TaskStatus.OPEN,
                    Task.freelancer_id.is_(None),
                )
                .update(
                    {"status": TaskStatus.IN_PROGRESS, "freelancer_id": bid.freelancer_id},
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                raise ResourceConflictError("Task is no longer open; another bid was accepted")

            accepted = (
                db.query(Bid)
                .filter(Bid.id == bid.id, Bid.status == BidStatus.PENDING)
                .update({"status": BidStatus.ACCEPTED}, synchronize_session=False)
            )
            if accepted != 1:
                raise ResourceConflictError("Bid is no longer pending")

            siblings = db.query(Bid).filter(
                Bid.task_id == task.id,
                Bid.id != bid.id,
                Bid.status == BidStatus.PENDING,
            )
            losers = [(b.id, b.freelancer_id) for b in siblings.all()]
            rejected = siblings.update({"status": BidStatus.REJECTED}, synchronize_session=False)

            NotificationService.create_notification(
                db, outbox, bid.freelancer_id, NotificationType.BID_ACCEPTED,
                f'Congratulations! Your bid for the task "{task.title}" has been accepted.',
                url=task_url(task.id), task_id=task.id, bid_id=bid.id,
            )
            for loser_bid_id, loser_id in losers:
                NotificationService.create_notification(
                    db, outbox, loser_id, NotificationType.BID_REJECTED,
                    f'Your bid for the task "{task.title}" was not selected.',
                    url=task_url(task.id), task_id=task.id, bid_id=loser_bid_id,
                )
            AuditService.record(
                db, client, "bid.accepted", "bid", bid.id,
                {"task_id": task.id, "freelancer_id": bid.freelancer_id, "rejected": rejected},
            )
            db.commit()
        except ResourceConflictError:
            db.rollback()
            raise

        db.refresh(bid)
        db.refresh(task)
        logger.info(
            "Task %s assigned to freelancer %s via bid %s (%s rejected)",
            task.id, bid.freelancer_id, bid.id, rejected,
        )
        return bid
