"""Admin API router — user oversight, ledger view, audit log."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskhub.core.security import require_admin
from taskhub.db.session import get_db
from taskhub.models.task import Task
from taskhub.models.transaction import Transaction, TransactionType, TransactionStatus
from taskhub.models.user import User, UserRole
from taskhub.schemas.schemas import (
    ApiResponse, AuditLogOut, TransactionOut, UserOut, UserPage, UserStatusUpdate, ok,
)
from taskhub.services.admin_service import AdminService
from taskhub.services.audit_service import AuditService
from taskhub.services.cache_service import CacheService, get_cache
from taskhub.services.filters import Page, UserFilters
from taskhub.services.payment_service import PaymentService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=ApiResponse[UserPage])
async def admin_list_users(
    role: Optional[UserRole] = Query(None),
    is_suspended: Optional[bool] = Query(None),
    q: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """List all users (admin only)."""
    result = AdminService.get_all_users(
        db, UserFilters(role=role, is_suspended=is_suspended, q=q), Page(page, limit),
    )
    result["users"] = [UserOut.model_validate(u) for u in result["users"]]
    return ok(UserPage(**result))


@router.patch("/users/{user_id}/status", response_model=ApiResponse[UserOut])
async def admin_update_user_status(
    user_id: int,
    body: UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Suspend/reinstate a user and optionally change their role."""
    user = AdminService.update_user_status(db, admin, user_id, body.is_suspended, body.role)
    return ok(UserOut.model_validate(user), "User status updated successfully")


@router.delete("/users/{user_id}", response_model=ApiResponse[None])
async def admin_delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    AdminService.delete_user(db, admin, user_id)
    return ok(message="User deleted successfully")


@router.get("/tasks/{task_id}/transactions", response_model=ApiResponse[list[TransactionOut]])
async def admin_task_transactions(
    task_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    rows = PaymentService.get_transactions_for_task(db, task_id)
    return ok([TransactionOut.model_validate(t) for t in rows])


@router.get("/audit", response_model=ApiResponse[dict])
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = AuditService.query_logs(db, actor_id, action, resource_type, Page(page, limit))
    result["logs"] = [AuditLogOut.model_validate(log) for log in result["logs"]]
    return ok(result)


@router.get("/stats", response_model=ApiResponse[dict])
async def system_stats(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Marketplace-level counters."""
    users_by_role = dict(
        (role.value, count)
        for role, count in db.query(User.role, func.count(User.id)).group_by(User.role).all()
    )
    tasks_by_status = dict(
        (status.value, count)
        for status, count in db.query(Task.status, func.count(Task.id)).group_by(Task.status).all()
    )
    fees = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(
            Transaction.type == TransactionType.PLATFORM_FEE,
            Transaction.status == TransactionStatus.SUCCEEDED,
        )
        .scalar()
    )
    return ok({
        "users_by_role": users_by_role,
        "tasks_by_status": tasks_by_status,
        "platform_fees_collected": float(fees or 0),
    })


@router.get("/health", response_model=ApiResponse[dict])
async def health_check(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """System health check — DB and Redis."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        db_ok = False
    redis_ok = cache.health_check()
    return ok({
        "database": "ok" if db_ok else "error",
        "redis": "ok" if redis_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    })
