"""Users API router — own profile and password."""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from taskhub.core.security import get_current_user
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.schemas.schemas import (
    ApiResponse, ChangePasswordRequest, ProfileUpdateRequest, UserOut, ok,
)
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox
from taskhub.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserOut])
async def get_profile(user: User = Depends(get_current_user)):
    return ok(UserOut.model_validate(user))


@router.patch("/me", response_model=ApiResponse[UserOut])
async def update_my_profile(
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = UserService.update_my_profile(db, user.id, body.model_dump(exclude_unset=True))
    return ok(UserOut.model_validate(updated), "Profile updated successfully")


@router.post("/me/change-password", response_model=ApiResponse[None])
async def change_password(
    body: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    """Change password after confirming the current one."""
    UserService.change_password(db, outbox, user.id, body.current_password, body.new_password)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(message="Password changed successfully")
