"""Payment service — Stripe escrow funding, Connect onboarding and payouts.

Money moves in three places:

* the client funds escrow through a PaymentIntent (ESCROW_FUNDING, confirmed
  by the ``payment_intent.succeeded`` webhook);
* approving a milestone writes ESCROW_RELEASE, PLATFORM_FEE and a PENDING
  PAYOUT in the approval transaction;
* the payout worker turns the PENDING PAYOUT into a Stripe transfer to the
  freelancer's connected account.
"""

import logging
from typing import Any, Dict, List

import stripe
from sqlalchemy.orm import Session

from taskhub.core.config import settings
from taskhub.core.exceptions import (
    AuthorizationError, PaymentProviderError, ResourceNotFoundError, ValidationError,
)
from taskhub.models.milestone import Milestone
from taskhub.models.notification import NotificationType
from taskhub.models.task import Task, TaskStatus
from taskhub.models.transaction import Transaction, TransactionType, TransactionStatus
from taskhub.models.user import User, UserRole
from taskhub.services.effects import Outbox
from taskhub.services.notification_service import NotificationService
from taskhub.services.task_service import TaskService, task_url

logger = logging.getLogger("taskhub.payments")

stripe.api_key = settings.STRIPE_SECRET_KEY

FUNDABLE = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def platform_fee(amount: float) -> float:
    """Platform commission on ``amount``, rounded to cents."""
    return round(amount * settings.PLATFORM_COMMISSION_PERCENTAGE / 100, 2)


class PaymentService:

    @staticmethod
    def create_payment_intent(db: Session, client: User, task_id: int, amount: float) -> Dict[str, Any]:
        """Start escrow funding for a task and record the pending ledger entry."""
        task = TaskService.get_owned_task(db, client.id, task_id, "fund")
        if task.status not in FUNDABLE:
            raise ValidationError(f"Cannot fund a task that is {task.status.value}")
        if amount > task.budget:
            raise ValidationError("Payment amount cannot exceed the task budget")

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount),
                currency=settings.STRIPE_CURRENCY,
                automatic_payment_methods={"enabled": True},
                transfer_group=f"task_{task.id}",
                metadata={"task_id": str(task.id), "client_id": str(client.id)},
            )
        except stripe.StripeError as e:
            logger.error("PaymentIntent creation failed for task %s: %s", task.id, e)
            raise PaymentProviderError(f"Error creating payment: {e.user_message or e}")

        transaction = Transaction(
            task_id=task.id,
            user_id=client.id,
            amount=amount,
            type=TransactionType.ESCROW_FUNDING,
            status=TransactionStatus.PENDING,
            stripe_reference=intent.id,
        )
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "transaction_id": transaction.id,
        }

    @staticmethod
    def record_milestone_release(db: Session, task: Task, milestone: Milestone) -> Transaction:
        """Stage the ledger rows for an approved milestone; returns the PENDING payout.

        Does not commit: the rows belong to the approval transaction.
        """
        fee = platform_fee(milestone.amount)
        rows = [
            Transaction(
                task_id=task.id, user_id=task.freelancer_id, milestone_id=milestone.id,
                amount=milestone.amount, type=TransactionType.ESCROW_RELEASE,
                status=TransactionStatus.SUCCEEDED,
            ),
            Transaction(
                task_id=task.id, user_id=task.client_id, milestone_id=milestone.id,
                amount=fee, type=TransactionType.PLATFORM_FEE,
                status=TransactionStatus.SUCCEEDED,
            ),
            Transaction(
                task_id=task.id, user_id=task.freelancer_id, milestone_id=milestone.id,
                amount=round(milestone.amount - fee, 2), type=TransactionType.PAYOUT,
                status=TransactionStatus.PENDING,
            ),
        ]
        db.add_all(rows)
        db.flush()
        return rows[-1]

    @staticmethod
    def execute_payout(db: Session, transaction_id: int) -> Transaction:
        """Transfer a PENDING payout to the freelancer's connected account.

        A payout whose freelancer has not finished Stripe onboarding stays
        PENDING so it can be retried later.
        """
        payout = db.query(Transaction).filter(Transaction.id == transaction_id).first()
        if not payout:
            raise ResourceNotFoundError(f"Transaction {transaction_id} not found")
        if payout.type != TransactionType.PAYOUT or payout.status != TransactionStatus.PENDING:
            logger.info("Payout %s already settled (%s)", payout.id, payout.status.value)
            return payout

        freelancer = payout.user
        if not freelancer.stripe_account_id or not freelancer.stripe_account_completed:
            logger.warning(
                "Payout %s deferred: freelancer %s has no active Stripe account",
                payout.id, freelancer.id,
            )
            return payout

        try:
            transfer = stripe.Transfer.create(
                amount=to_cents(payout.amount),
                currency=settings.STRIPE_CURRENCY,
                destination=freelancer.stripe_account_id,
                transfer_group=f"task_{payout.task_id}",
                metadata={"transaction_id": str(payout.id), "milestone_id": str(payout.milestone_id)},
            )
        except stripe.StripeError as e:
            logger.error("Payout %s failed: %s", payout.id, e)
            payout.status = TransactionStatus.FAILED
            db.commit()
            return payout

        payout.status = TransactionStatus.SUCCEEDED
        payout.stripe_reference = transfer.id
        db.commit()
        db.refresh(payout)
        logger.info("Payout %s sent as %s", payout.id, transfer.id)
        return payout

    @staticmethod
    def create_connect_account(db: Session, freelancer: User) -> Dict[str, str]:
        """Create (or reuse) an Express account and return an onboarding link."""
        if freelancer.role != UserRole.FREELANCER:
            raise AuthorizationError("Only freelancers can receive payouts")
        try:
            if not freelancer.stripe_account_id:
                account = stripe.Account.create(
                    type="express",
                    email=freelancer.email,
                    capabilities={"transfers": {"requested": True}},
                    metadata={"user_id": str(freelancer.id)},
                )
                freelancer.stripe_account_id = account.id
                db.commit()
            link = stripe.AccountLink.create(
                account=freelancer.stripe_account_id,
                refresh_url=f"{settings.FRONTEND_URL}/dashboard/payments/refresh",
                return_url=f"{settings.FRONTEND_URL}/dashboard/payments/complete",
                type="account_onboarding",
            )
        except stripe.StripeError as e:
            logger.error("Stripe onboarding failed for user %s: %s", freelancer.id, e)
            raise PaymentProviderError(f"Error creating Stripe account: {e.user_message or e}")
        return {"stripe_account_id": freelancer.stripe_account_id, "onboarding_url": link.url}

    @staticmethod
    def construct_event(payload: bytes, signature: str) -> Any:
        """Verify a webhook signature and parse the event."""
        try:
            return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError as e:
            raise ValidationError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise ValidationError(f"Invalid signature: {e}")

    @staticmethod
    def handle_event(db: Session, outbox: Outbox, event: Any) -> str:
        """Apply a verified Stripe event to the ledger. Returns what was done."""
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type in ("payment_intent.succeeded", "payment_intent.payment_failed"):
            succeeded = event_type == "payment_intent.succeeded"
            transactions: List[Transaction] = (
                db.query(Transaction)
                .filter(
                    Transaction.stripe_reference == obj["id"],
                    Transaction.status == TransactionStatus.PENDING,
                )
                .all()
            )
            for tx in transactions:
                tx.status = TransactionStatus.SUCCEEDED if succeeded else TransactionStatus.FAILED
                if succeeded:
                    NotificationService.create_notification(
                        db, outbox, tx.user_id, NotificationType.PAYMENT_SUCCEEDED,
                        f"Your payment of ${tx.amount:,.2f} was received and is held in escrow.",
                        url=task_url(tx.task_id), task_id=tx.task_id,
                    )
            db.commit()
            return f"{len(transactions)} transaction(s) marked {'SUCCEEDED' if succeeded else 'FAILED'}"

        if event_type == "account.updated":
            user = db.query(User).filter(User.stripe_account_id == obj["id"]).first()
            if user:
                user.stripe_account_completed = bool(
                    obj.get("charges_enabled") and obj.get("payouts_enabled")
                )
                db.commit()
                return f"account {obj['id']} completed={user.stripe_account_completed}"
            return "account not linked"

        logger.debug("Ignoring Stripe event %s", event_type)
        return "ignored"

    @staticmethod
    def get_transactions_for_task(db: Session, task_id: int) -> List[Transaction]:
        TaskService.get_task_or_404(db, task_id)
        return (
            db.query(Transaction)
            .filter(Transaction.task_id == task_id)
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            .all()
        )
