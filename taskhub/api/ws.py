"""WebSocket endpoint for task chat, typing indicators and notification pushes.

Clients connect to ``/ws?token=<access token>`` and exchange JSON frames of
the form ``{"event": ..., "data": {...}}``. Every connection joins its
personal ``user:{id}`` room; ``join_room`` adds a ``task:{id}`` room after
checking the caller is a party to the task.
"""

import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from taskhub.core.exceptions import TaskHubError
from taskhub.core.security import user_from_token
from taskhub.db.session import get_db
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher
from taskhub.services.message_service import MessageService
from taskhub.services.realtime import task_room, user_room

logger = logging.getLogger("taskhub.ws")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str = Query(...),
    db: Session = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    try:
        user = user_from_token(db, token)
    except TaskHubError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    manager = dispatcher.realtime
    await websocket.accept()
    manager.join(websocket, user_room(user.id))
    logger.info("User %s connected", user.id)

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Frames must be JSON")
                continue
            if not isinstance(frame, dict) or not isinstance(frame.get("data") or {}, dict):
                await _send_error(websocket, "Frames must be objects of the form {event, data}")
                continue
            try:
                await _handle(websocket, db, dispatcher, user, frame.get("event"), frame.get("data") or {})
            except TaskHubError as e:
                await _send_error(websocket, e.message)
    except WebSocketDisconnect:
        logger.info("User %s disconnected", user.id)
    finally:
        manager.disconnect(websocket)


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "chat_error", "data": {"message": message}})


async def _handle(websocket, db, dispatcher, user, event, data) -> None:
    manager = dispatcher.realtime

    if event == "ping":
        await websocket.send_json({"event": "pong", "data": {}})
        return

    task_id = data.get("task_id")
    if not isinstance(task_id, int):
        raise TaskHubError("task_id is required")

    if event == "join_room":
        MessageService.authorize_room(db, user.id, task_id)
        manager.join(websocket, task_room(task_id))
        await websocket.send_json({"event": "joined_room", "data": {"task_id": task_id}})
    elif event == "leave_room":
        manager.leave(websocket, task_room(task_id))
    elif event in ("typing_start", "typing_stop"):
        MessageService.authorize_room(db, user.id, task_id)
        await manager.emit(
            task_room(task_id), event, {"task_id": task_id, "user_id": user.id}, exclude=websocket,
        )
    elif event == "send_message":
        content = (data.get("content") or "").strip()
        if not content:
            raise TaskHubError("Message content cannot be empty")
        outbox = Outbox()
        MessageService.create_message(db, outbox, user, task_id, content[:5000])
        await dispatcher.dispatch(outbox)
    else:
        raise TaskHubError(f"Unknown event '{event}'")
