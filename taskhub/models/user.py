"""User, profile and refresh-token models."""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, JSON, func
)
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    FREELANCER = "FREELANCER"
    ADMIN = "ADMIN"


class User(Base):
    """Marketplace account. Clients post tasks, freelancers bid on them."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.CLIENT, index=True)
    email_verified_at = Column(DateTime, nullable=True)
    is_suspended = Column(Boolean, default=False, nullable=False)

    # One-time codes (email verification / password reset) share one expiry
    email_verification_otp = Column(String(6), nullable=True)
    password_reset_otp = Column(String(6), nullable=True)
    email_otp_expires_at = Column(DateTime, nullable=True)
    reset_otp_expires_at = Column(DateTime, nullable=True)

    stripe_account_id = Column(String(255), nullable=True, unique=True)
    stripe_account_completed = Column(Boolean, default=False, nullable=False)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    profile = relationship(
        "Profile", back_populates="user", uselist=False,
        cascade="all, delete-orphan", lazy="joined",
    )
    tasks_posted = relationship(
        "Task", back_populates="client", foreign_keys="[Task.client_id]",
        cascade="all, delete-orphan", lazy="dynamic",
    )
    tasks_assigned = relationship(
        "Task", back_populates="freelancer", foreign_keys="[Task.freelancer_id]",
        lazy="dynamic",
    )
    bids = relationship("Bid", back_populates="freelancer", cascade="all, delete-orphan", lazy="dynamic")
    messages = relationship("Message", back_populates="sender", cascade="all, delete-orphan", lazy="dynamic")
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan", lazy="dynamic",
    )
    transactions = relationship(
        "Transaction", back_populates="user", cascade="all, delete-orphan", lazy="dynamic",
    )
    refresh_tokens = relationship("RefreshToken", cascade="all, delete-orphan", lazy="dynamic")

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None


class Profile(Base):
    """Public-facing profile, created together with the user."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    portfolio_links = Column(JSON, nullable=False, default=list)
    avatar_url = Column(String(500), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="profile")


class RefreshToken(Base):
    """Stored hash of an issued refresh token."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
