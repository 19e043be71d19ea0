"""Payments API router — escrow funding, Stripe Connect onboarding, webhook."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from sqlalchemy.orm import Session

from taskhub.core.rate_limiter import limiter
from taskhub.core.security import get_current_user, require_client, require_freelancer
from taskhub.core.exceptions import AuthorizationError
from taskhub.db.session import get_db
from taskhub.models.user import User, UserRole
from taskhub.schemas.schemas import (
    ApiResponse, ConnectOnboardingOut, PaymentIntentOut, PaymentIntentRequest,
    TransactionOut, ok,
)
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox
from taskhub.services.payment_service import PaymentService
from taskhub.services.task_service import TaskService

logger = logging.getLogger("taskhub.payments")

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/create-payment-intent",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[PaymentIntentOut],
)
async def create_payment_intent(
    body: PaymentIntentRequest,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
):
    """Start escrow funding; the frontend confirms with the client secret."""
    result = PaymentService.create_payment_intent(db, client, body.task_id, body.amount)
    return ok(PaymentIntentOut(**result), "Payment intent created")


@router.post("/connect/onboard", response_model=ApiResponse[ConnectOnboardingOut])
async def connect_onboarding(
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
):
    return ok(ConnectOnboardingOut(**PaymentService.create_connect_account(db, freelancer)))


@router.get("/tasks/{task_id}/transactions", response_model=ApiResponse[list[TransactionOut]])
async def task_transactions(
    task_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Ledger for a task, visible to its two parties."""
    task = TaskService.get_task_or_404(db, task_id)
    if user.id not in (task.client_id, task.freelancer_id) and user.role != UserRole.ADMIN:
        raise AuthorizationError("You are not authorized to view transactions for this task")
    rows = PaymentService.get_transactions_for_task(db, task_id)
    return ok([TransactionOut.model_validate(t) for t in rows])


@router.post("/webhook", response_model=ApiResponse[dict])
@limiter.exempt
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: str = Header(..., alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    """Stripe webhook: payment intent outcomes and Connect account updates."""
    payload = await request.body()
    event = PaymentService.construct_event(payload, stripe_signature)
    result = PaymentService.handle_event(db, outbox, event)
    logger.info("Stripe event %s: %s", event["type"], result)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok({"received": True, "result": result})
