"""Freelancer directory API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskhub.db.session import get_db
from taskhub.schemas.schemas import ApiResponse, FreelancerPage, UserPublicOut, ok
from taskhub.services.filters import FreelancerFilters, Page
from taskhub.services.user_service import UserService

router = APIRouter(prefix="/freelancers", tags=["freelancers"])


@router.get("", response_model=ApiResponse[FreelancerPage])
async def list_freelancers(
    q: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Search verified, active freelancers by name or bio."""
    result = UserService.list_freelancers(db, FreelancerFilters(q=q), Page(page, limit))
    result["freelancers"] = [UserPublicOut.model_validate(u) for u in result["freelancers"]]
    return ok(FreelancerPage(**result))


@router.get("/{user_id}", response_model=ApiResponse[UserPublicOut])
async def get_freelancer(user_id: int, db: Session = Depends(get_db)):
    return ok(UserPublicOut.model_validate(UserService.get_freelancer(db, user_id)))
