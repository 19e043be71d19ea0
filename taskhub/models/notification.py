"""Notification model."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class NotificationType(str, enum.Enum):
    NEW_BID = "NEW_BID"
    BID_ACCEPTED = "BID_ACCEPTED"
    BID_REJECTED = "BID_REJECTED"
    MILESTONE_CREATED = "MILESTONE_CREATED"
    MILESTONE_SUBMITTED = "MILESTONE_SUBMITTED"
    MILESTONE_REVISION_REQUESTED = "MILESTONE_REVISION_REQUESTED"
    MILESTONE_APPROVED = "MILESTONE_APPROVED"
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYOUT_SENT = "PAYOUT_SENT"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_CANCELLED = "TASK_CANCELLED"
    NEW_MESSAGE = "NEW_MESSAGE"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET = "PASSWORD_RESET"


class Notification(Base):
    """Typed notice for one user. Only ``is_read`` ever changes."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(NotificationType), nullable=False, index=True)
    message = Column(String(500), nullable=False)
    url = Column(String(500), nullable=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True)
    bid_id = Column(Integer, ForeignKey("bids.id", ondelete="SET NULL"), nullable=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    user = relationship("User", back_populates="notifications")
    task = relationship("Task", back_populates="notifications")
