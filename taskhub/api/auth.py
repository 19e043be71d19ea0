"""Auth API router — register, verify, login, refresh, logout, password reset."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.orm import Session

from taskhub.core.config import settings
from taskhub.core.rate_limiter import limiter
from taskhub.core.security import get_current_user
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.schemas.schemas import (
    ApiResponse, EmailOnlyRequest, LoginRequest, RefreshRequest,
    RegisterRequest, ResetPasswordRequest, TokenResponse, UserOut, VerifyEmailRequest, ok,
)
from taskhub.services.audit_service import AuditService
from taskhub.services.auth_service import AuthService
from taskhub.services.effects import EffectDispatcher, Outbox, get_dispatcher, get_outbox

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[UserOut])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    """Create an account and email a verification code."""
    user = AuthService.register(
        db, outbox, body.email, body.password, body.first_name, body.last_name, body.role,
    )
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(
        UserOut.model_validate(user),
        "Registration successful. Please check your email for the verification code.",
    )


@router.post("/verify-email", response_model=ApiResponse[UserOut])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    user = AuthService.verify_email(db, outbox, body.email, body.otp)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(UserOut.model_validate(user), "Email verified successfully")


@router.post("/resend-verification", response_model=ApiResponse[None])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def resend_verification(
    request: Request,
    body: EmailOnlyRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    AuthService.resend_verification(db, outbox, body.email)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(message="A new verification code has been sent")


@router.post("/login", response_model=ApiResponse[TokenResponse])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    user = AuthService.authenticate(db, body.email, body.password)
    AuditService.record(
        db, user, "user.login", "user", user.id,
        ip_address=request.client.host if request.client else None,
    )
    tokens = AuthService.issue_tokens(db, user)
    tokens["user"] = UserOut.model_validate(tokens["user"])
    return ok(TokenResponse(**tokens), "Login successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Refresh access token."""
    return ok(TokenResponse(**AuthService.refresh_access_token(db, body.refresh_token)))


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Revoke all refresh tokens."""
    AuthService.logout(db, user.id)
    return ok(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[UserOut])
async def get_me(user: User = Depends(get_current_user)):
    """Get current user profile."""
    return ok(UserOut.model_validate(user))


@router.post("/forgot-password", response_model=ApiResponse[None])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: EmailOnlyRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    AuthService.forgot_password(db, outbox, body.email)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(message="If an account with that email exists, a reset code has been sent")


@router.post("/reset-password", response_model=ApiResponse[None])
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    AuthService.reset_password(db, outbox, body.email, body.otp, body.new_password)
    background_tasks.add_task(dispatcher.dispatch, outbox)
    return ok(message="Password has been reset successfully")

