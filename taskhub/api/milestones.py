"""Milestones API router."""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from taskhub.core.security import get_current_user, require_client, require_freelancer
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.schemas.schemas import (
    ApiResponse, MilestoneCreateRequest, MilestoneOut, RevisionRequest, ok,
)
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox
from taskhub.services.milestone_service import MilestoneService

router = APIRouter(tags=["milestones"])


@router.post(
    "/tasks/{task_id}/milestones",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[list[MilestoneOut]],
)
async def create_milestones(
    task_id: int,
    body: MilestoneCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    items = [m.model_dump() for m in body.milestones]
    milestones = MilestoneService.create_milestones(db, outbox, client, task_id, items)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok([MilestoneOut.model_validate(m) for m in milestones], "Milestones created successfully")


@router.get("/tasks/{task_id}/milestones", response_model=ApiResponse[list[MilestoneOut]])
async def list_milestones(
    task_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    milestones = MilestoneService.list_milestones(db, user, task_id)
    return ok([MilestoneOut.model_validate(m) for m in milestones])


@router.post("/milestones/{milestone_id}/submit", response_model=ApiResponse[MilestoneOut])
async def submit_milestone(
    milestone_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    freelancer: User = Depends(require_freelancer),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    milestone = MilestoneService.submit_milestone(db, outbox, freelancer, milestone_id)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(MilestoneOut.model_validate(milestone), "Milestone submitted for review")


@router.post("/milestones/{milestone_id}/request-revision", response_model=ApiResponse[MilestoneOut])
async def request_revision(
    milestone_id: int,
    body: RevisionRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    milestone = MilestoneService.request_revision(db, outbox, client, milestone_id, body.comments)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(MilestoneOut.model_validate(milestone), "Revision requested")


@router.post("/milestones/{milestone_id}/approve", response_model=ApiResponse[MilestoneOut])
async def approve_milestone(
    milestone_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    """Approve a submitted milestone and release its escrow."""
    milestone = MilestoneService.approve_milestone(db, outbox, client, milestone_id)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(MilestoneOut.model_validate(milestone), "Milestone approved and payment released")
