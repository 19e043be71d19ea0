"""Password hashing, OTPs, JWT handling and role-based dependencies."""

import bcrypt
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from taskhub.core.config import settings
from taskhub.core.exceptions import AuthenticationError, AuthorizationError
from taskhub.db.session import get_db
from taskhub.models.user import User, UserRole

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def generate_otp(length: int = 6) -> str:
    """Random numeric one-time code, zero padded."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def otp_matches(expected: Optional[str], supplied: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(expected, supplied)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    # jti keeps two refresh tokens issued in the same second distinct
    to_encode.update({"exp": expire, "type": "refresh", "jti": secrets.token_hex(8)})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("type") != expected_type or payload.get("sub") is None:
        raise AuthenticationError("Invalid token payload")
    return payload


def token_claims(user: User) -> dict:
    return {"sub": str(user.id), "email": user.email, "role": user.role.value}


def user_from_token(db: Session, token: str) -> User:
    """Resolve an access token to an active (not suspended) user."""
    payload = decode_token(token)
    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        raise AuthenticationError("User no longer exists")
    if user.is_suspended:
        raise AuthorizationError("Your account has been suspended")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Load the user behind the Bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return user_from_token(db, credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None."""
    if credentials is None:
        return None
    return user_from_token(db, credentials.credentials)


class RequireRole:
    """Dependency that only lets the listed roles through."""

    def __init__(self, *roles: UserRole):
        self.roles = set(roles)

    async def __call__(self, user: User = Depends(get_current_user)) -> User:
        if user.role not in self.roles:
            allowed = ", ".join(sorted(r.value for r in self.roles))
            raise AuthorizationError(f"This action requires role {allowed}")
        return user


require_client = RequireRole(UserRole.CLIENT)
require_freelancer = RequireRole(UserRole.FREELANCER)
require_admin = RequireRole(UserRole.ADMIN)
require_client_or_admin = RequireRole(UserRole.CLIENT, UserRole.ADMIN)
