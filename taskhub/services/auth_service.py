"""Auth service — registration, OTP verification, login, tokens, password reset."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

from sqlalchemy.orm import Session

from taskhub.core.config import settings
from taskhub.core.exceptions import (
    AuthenticationError, AuthorizationError, ResourceConflictError,
    ResourceNotFoundError, ValidationError,
)
from taskhub.core.security import (
    hash_password, verify_password, generate_otp, otp_matches, hash_token,
    create_access_token, create_refresh_token, decode_token, token_claims,
)
from taskhub.db.base import utcnow
from taskhub.models.notification import NotificationType
from taskhub.models.user import User, Profile, RefreshToken, UserRole
from taskhub.services.effects import Outbox
from taskhub.services.email_service import EmailService
from taskhub.services.notification_service import NotificationService

logger = logging.getLogger("taskhub.auth")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _otp_expiry() -> datetime:
    return utcnow() + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)


class AuthService:
    """Handles account lifecycle and authentication."""

    @staticmethod
    def register(
        db: Session,
        outbox: Outbox,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.CLIENT,
    ) -> User:
        """Create an unverified account and email it a verification code.

        Raises:
            ResourceConflictError: If the email is already registered.
            ValidationError: If someone tries to self-register as ADMIN.
        """
        if role == UserRole.ADMIN:
            raise ValidationError("Admin accounts cannot be self-registered")
        email = normalize_email(email)
        if db.query(User).filter(User.email == email).first():
            raise ResourceConflictError("User with this email already exists")

        otp = generate_otp()
        user = User(
            email=email,
            hashed_password=hash_password(password),
            role=role,
            email_verification_otp=otp,
            email_otp_expires_at=_otp_expiry(),
        )
        user.profile = Profile(first_name=first_name, last_name=last_name, skills=[], portfolio_links=[])
        db.add(user)
        db.commit()
        db.refresh(user)

        EmailService.verification_otp(outbox, user.email, first_name, otp)
        logger.info("Registered %s user %s", role.value, user.id)
        return user

    @staticmethod
    def verify_email(db: Session, outbox: Outbox, email: str, otp: str) -> User:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")
        if not otp_matches(user.email_verification_otp, otp):
            raise ValidationError("Invalid OTP")
        if user.email_otp_expires_at is None or user.email_otp_expires_at < utcnow():
            raise ValidationError("OTP has expired")

        user.email_verified_at = utcnow()
        user.email_verification_otp = None
        user.email_otp_expires_at = None
        NotificationService.create_notification(
            db, outbox, user.id, NotificationType.EMAIL_VERIFIED,
            "Your email has been verified. Welcome aboard!",
            url="/dashboard",
        )
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def resend_verification(db: Session, outbox: Outbox, email: str) -> None:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")
        otp = generate_otp()
        user.email_verification_otp = otp
        user.email_otp_expires_at = _otp_expiry()
        db.commit()
        EmailService.verification_otp(outbox, user.email, user.profile.first_name, otp)

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        """Check credentials and account state.

        Raises:
            AuthenticationError: If credentials are invalid.
            AuthorizationError: If the email is unverified or the account suspended.
        """
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid email or password")
        if not user.is_email_verified:
            raise AuthorizationError("Please verify your email before logging in")
        if user.is_suspended:
            raise AuthorizationError("Your account has been suspended")
        return user

    @staticmethod
    def issue_tokens(db: Session, user: User) -> Dict[str, Any]:
        """Create an access/refresh pair and remember the refresh token hash."""
        access_token = create_access_token(token_claims(user))
        refresh_token_str = create_refresh_token(token_claims(user))

        payload = decode_token(refresh_token_str, expected_type="refresh")
        db.add(RefreshToken(
            user_id=user.id,
            token_hash=hash_token(refresh_token_str),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None),
        ))
        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)

        return {
            "access_token": access_token,
            "refresh_token": refresh_token_str,
            "token_type": "bearer",
            "user": user,
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Refresh access token using a valid, unrevoked refresh token."""
        payload = decode_token(refresh_token, expected_type="refresh")
        stored = db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(refresh_token),
            RefreshToken.revoked_at.is_(None),
        ).first()
        if not stored:
            raise AuthenticationError("Invalid refresh token")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user:
            raise AuthenticationError("User not found")
        if user.is_suspended:
            raise AuthorizationError("Your account has been suspended")

        return {
            "access_token": create_access_token(token_claims(user)),
            "token_type": "bearer",
        }

    @staticmethod
    def logout(db: Session, user_id: int) -> None:
        """Revoke all refresh tokens for a user."""
        db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
        ).update({"revoked_at": utcnow()}, synchronize_session=False)
        db.commit()

    @staticmethod
    def forgot_password(db: Session, outbox: Outbox, email: str) -> None:
        """Email a reset code. Unknown addresses are ignored silently."""
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user:
            logger.info("Password reset requested for unknown email")
            return
        otp = generate_otp()
        user.password_reset_otp = otp
        user.reset_otp_expires_at = _otp_expiry()
        db.commit()
        EmailService.password_reset_otp(outbox, user.email, user.profile.first_name, otp)

    @staticmethod
    def reset_password(db: Session, outbox: Outbox, email: str, otp: str, new_password: str) -> None:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        # Same message for unknown email and bad code
        if not user or not otp_matches(user.password_reset_otp, otp):
            raise ValidationError("Invalid OTP or email")
        if user.reset_otp_expires_at is None or user.reset_otp_expires_at < utcnow():
            raise ValidationError("OTP has expired")

        user.hashed_password = hash_password(new_password)
        user.password_reset_otp = None
        user.reset_otp_expires_at = None
        # Existing sessions die with the old password
        db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id,
            RefreshToken.revoked_at.is_(None),
        ).update({"revoked_at": utcnow()}, synchronize_session=False)
        NotificationService.create_notification(
            db, outbox, user.id, NotificationType.PASSWORD_RESET,
            "Your password was reset successfully.",
            url="/login",
        )
        db.commit()
        EmailService.password_changed(outbox, user.email, user.profile.first_name)
