"""Bids API router."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from taskhub.core.security import require_client, require_freelancer
from taskhub.db.session import get_db
from taskhub.models.bid import BidStatus
from taskhub.models.user import User
from taskhub.schemas.schemas import ApiResponse, BidCreate, BidOut, BidUpdate, ok
from taskhub.services.bid_service import BidService
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox

router = APIRouter(tags=["bids"])


@router.post(
    "/tasks/{task_id}/bids",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[BidOut],
)
async def create_bid(
    task_id: int,
    body: BidCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    bid = BidService.create_bid(db, outbox, freelancer, task_id, body.amount, body.proposal)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(BidOut.model_validate(bid), "Bid submitted successfully")


@router.get("/tasks/{task_id}/bids", response_model=ApiResponse[list[BidOut]])
async def list_bids_for_task(
    task_id: int,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
):
    bids = BidService.list_bids_for_task(db, client, task_id)
    return ok([BidOut.model_validate(b) for b in bids])


@router.get("/bids/me", response_model=ApiResponse[list[BidOut]])
async def my_bids(
    status_filter: Optional[BidStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
):
    bids = BidService.list_my_bids(db, freelancer, status_filter)
    return ok([BidOut.model_validate(b) for b in bids])


@router.patch("/bids/{bid_id}", response_model=ApiResponse[BidOut])
async def update_bid(
    bid_id: int,
    body: BidUpdate,
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
):
    bid = BidService.update_bid(db, freelancer, bid_id, body.model_dump(exclude_unset=True))
    return ok(BidOut.model_validate(bid), "Bid updated successfully")


@router.delete("/bids/{bid_id}", response_model=ApiResponse[None])
async def withdraw_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
):
    BidService.withdraw_bid(db, freelancer, bid_id)
    return ok(message="Bid withdrawn successfully")


@router.post("/bids/{bid_id}/accept", response_model=ApiResponse[BidOut])
async def accept_bid(
    bid_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    """Accept a bid: assigns the freelancer and rejects the other bids."""
    bid = BidService.accept_bid(db, outbox, client, bid_id)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(BidOut.model_validate(bid), "Bid accepted successfully")
