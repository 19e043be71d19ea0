"""Tasks API router — browse, post, edit and drive the task lifecycle."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from taskhub.core.security import get_current_user, get_optional_user, require_client
from taskhub.db.session import get_db
from taskhub.models.task import TaskStatus
from taskhub.models.user import User
from taskhub.schemas.schemas import (
    ApiResponse, BidOut, TaskCreate, TaskDetailOut, TaskOut, TaskPage, TaskStatsOut,
    TaskUpdate, UserPublicOut, ok,
)
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox
from taskhub.services.filters import Page, SortOrder, TaskFilters, TaskSortField
from taskhub.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def task_filters(
    category_id: Optional[int] = Query(None),
    min_budget: Optional[float] = Query(None, ge=0),
    max_budget: Optional[float] = Query(None, ge=0),
    status: Optional[TaskStatus] = Query(None),
    q: Optional[str] = Query(None, max_length=100),
    sort_by: TaskSortField = Query(TaskSortField.created_at),
    sort_order: SortOrder = Query(SortOrder.desc),
) -> TaskFilters:
    return TaskFilters(
        category_id=category_id,
        min_budget=min_budget,
        max_budget=max_budget,
        status=status,
        q=q,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> Page:
    return Page(page, limit)


def _task_page(result: dict) -> TaskPage:
    result["tasks"] = [TaskOut.model_validate(t) for t in result["tasks"]]
    return TaskPage(**result)


@router.get("", response_model=ApiResponse[TaskPage])
async def browse_tasks(
    filters: TaskFilters = Depends(task_filters),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db),
):
    """Public marketplace listing (OPEN tasks unless a status is given)."""
    return ok(_task_page(TaskService.list_tasks(db, filters, page)))


@router.get("/me", response_model=ApiResponse[TaskPage])
async def my_tasks(
    filters: TaskFilters = Depends(task_filters),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Tasks the caller posted (client) or is working on (freelancer)."""
    return ok(_task_page(TaskService.list_tasks(db, filters, page, scope_user=user)))


@router.get("/me/stats", response_model=ApiResponse[TaskStatsOut])
async def my_task_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(TaskStatsOut(counts=TaskService.get_my_task_stats(db, user)))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[TaskOut])
async def create_task(
    body: TaskCreate,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
):
    task = TaskService.create_task(db, client, body.model_dump())
    return ok(TaskOut.model_validate(task), "Task created successfully")


@router.get("/{task_id}", response_model=ApiResponse[TaskDetailOut])
async def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    task, bids = TaskService.get_task(db, task_id, user)
    detail = TaskOut.model_validate(task).model_dump()
    detail["client"] = UserPublicOut.model_validate(task.client)
    detail["freelancer"] = UserPublicOut.model_validate(task.freelancer) if task.freelancer else None
    detail["bids"] = [BidOut.model_validate(b) for b in bids]
    return ok(TaskDetailOut(**detail))


@router.patch("/{task_id}", response_model=ApiResponse[TaskOut])
async def update_task(
    task_id: int,
    body: TaskUpdate,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
):
    task = TaskService.update_task(db, client, task_id, body.model_dump(exclude_unset=True))
    return ok(TaskOut.model_validate(task), "Task updated successfully")


@router.delete("/{task_id}", response_model=ApiResponse[None])
async def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
):
    TaskService.delete_task(db, client, task_id)
    return ok(message="Task deleted successfully")


@router.post("/{task_id}/cancel", response_model=ApiResponse[TaskOut])
async def cancel_task(
    task_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    task = TaskService.cancel_task(db, outbox, user, task_id)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(TaskOut.model_validate(task), "Task cancelled successfully")


@router.post("/{task_id}/complete", response_model=ApiResponse[TaskOut])
async def complete_task(
    task_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: User = Depends(require_client),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    task = TaskService.complete_task(db, outbox, client, task_id)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(TaskOut.model_validate(task), "Task marked as completed")
