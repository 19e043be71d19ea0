"""Task and attachment models."""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, ForeignKey, Enum, JSON, func
)
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class TaskStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Task(Base):
    """A job posted by a client.

    ``freelancer_id`` stays NULL while the task is OPEN and is written once,
    when a bid is accepted.
    """
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    budget = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    deadline = Column(DateTime, nullable=False)
    skills = Column(JSON, nullable=False, default=list)
    status = Column(Enum(TaskStatus), default=TaskStatus.OPEN, nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    client = relationship("User", back_populates="tasks_posted", foreign_keys=[client_id])
    freelancer = relationship("User", back_populates="tasks_assigned", foreign_keys=[freelancer_id])
    category = relationship("Category", back_populates="tasks", lazy="joined")
    attachments = relationship("Attachment", back_populates="task", cascade="all, delete-orphan", lazy="selectin")
    bids = relationship("Bid", back_populates="task", cascade="all, delete-orphan", lazy="dynamic")
    milestones = relationship(
        "Milestone", back_populates="task", cascade="all, delete-orphan",
        order_by="Milestone.due_date", lazy="dynamic",
    )
    messages = relationship("Message", back_populates="task", cascade="all, delete-orphan", lazy="dynamic")
    transactions = relationship("Transaction", back_populates="task", cascade="all, delete-orphan", lazy="dynamic")
    notifications = relationship("Notification", back_populates="task", cascade="all, delete-orphan", lazy="dynamic")


class Attachment(Base):
    """File attached to a task (the object lives in MinIO)."""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    task = relationship("Task", back_populates="attachments")
