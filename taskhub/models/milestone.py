"""Milestone model."""

import enum

from sqlalchemy import Column, Integer, Text, DateTime, Numeric, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class MilestoneStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    APPROVED = "APPROVED"


class Milestone(Base):
    """Budget-bearing deliverable of a task with its own approval loop."""
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    due_date = Column(DateTime, nullable=False)
    status = Column(Enum(MilestoneStatus), default=MilestoneStatus.PENDING, nullable=False)
    comments = Column(Text, nullable=True)  # latest revision request
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    task = relationship("Task", back_populates="milestones")
    transactions = relationship("Transaction", back_populates="milestone", lazy="dynamic")
