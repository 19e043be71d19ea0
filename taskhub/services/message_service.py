"""Message service — per-task chat between a client and the assigned freelancer."""

from sqlalchemy.orm import Session

from taskhub.core.exceptions import AuthorizationError
from taskhub.models.message import Message
from taskhub.models.notification import NotificationType
from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.schemas.schemas import MessageOut
from taskhub.services.effects import Outbox
from taskhub.services.filters import Page, paginate
from taskhub.services.notification_service import NotificationService
from taskhub.services.realtime import task_room
from taskhub.services.task_service import TaskService


def ensure_task_party(task: Task, user_id: int) -> None:
    """Only the task's client and its assigned freelancer may chat on it."""
    if user_id not in (task.client_id, task.freelancer_id):
        raise AuthorizationError("You are not authorized to access messages for this task")


class MessageService:

    @staticmethod
    def authorize_room(db: Session, user_id: int, task_id: int) -> Task:
        task = TaskService.get_task_or_404(db, task_id)
        ensure_task_party(task, user_id)
        return task

    @staticmethod
    def list_messages(db: Session, requester: User, task_id: int, page: Page) -> dict:
        """One page of history, newest page first, each page in chronological order."""
        MessageService.authorize_room(db, requester.id, task_id)
        query = db.query(Message).filter(Message.task_id == task_id)
        rows, total, total_pages = paginate(query, page, Message.created_at.desc(), Message.id.desc())
        return {
            "messages": list(reversed(rows)),
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_messages": total,
        }

    @staticmethod
    def create_message(db: Session, outbox: Outbox, sender: User, task_id: int, content: str) -> Message:
        """Append a chat line, notify the other party and broadcast to the task room."""
        task = MessageService.authorize_room(db, sender.id, task_id)
        message = Message(task_id=task.id, sender_id=sender.id, content=content)
        db.add(message)
        db.flush()
        db.refresh(message)

        recipient_id = task.freelancer_id if sender.id == task.client_id else task.client_id
        if recipient_id:
            NotificationService.create_notification(
                db, outbox, recipient_id, NotificationType.NEW_MESSAGE,
                f'New message on "{task.title}": {content[:80]}',
                url=f"/dashboard/messages/{task.id}", task_id=task.id,
            )
        outbox.push(
            task_room(task.id),
            "receive_message",
            MessageOut.model_validate(message).model_dump(mode="json"),
        )
        db.commit()
        db.refresh(message)
        return message
