"""Messages API router — task chat history and posting."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from taskhub.core.security import get_current_user
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.schemas.schemas import ApiResponse, MessageCreate, MessageOut, MessagePage, ok
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox
from taskhub.services.filters import Page
from taskhub.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/tasks/{task_id}", response_model=ApiResponse[MessagePage])
async def list_messages(
    task_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = MessageService.list_messages(db, user, task_id, Page(page, limit))
    result["messages"] = [MessageOut.model_validate(m) for m in result["messages"]]
    return ok(MessagePage(**result))


@router.post(
    "/tasks/{task_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[MessageOut],
)
async def create_message(
    task_id: int,
    body: MessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    message = MessageService.create_message(db, outbox, user, task_id, body.content)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(MessageOut.model_validate(message), "Message sent")
