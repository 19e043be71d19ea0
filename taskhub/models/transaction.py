"""Ledger transaction model."""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class TransactionType(str, enum.Enum):
    ESCROW_FUNDING = "ESCROW_FUNDING"
    ESCROW_RELEASE = "ESCROW_RELEASE"
    PLATFORM_FEE = "PLATFORM_FEE"
    PAYOUT = "PAYOUT"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class Transaction(Base):
    """Escrow ledger entry.

    Rows are APPEND-ONLY. The only permitted mutation is ``status`` (and the
    provider reference) once Stripe reports the outcome.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    type = Column(Enum(TransactionType), nullable=False, index=True)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)
    stripe_reference = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    task = relationship("Task", back_populates="transactions")
    user = relationship("User", back_populates="transactions")
    milestone = relationship("Milestone", back_populates="transactions")
