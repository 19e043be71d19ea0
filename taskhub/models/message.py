"""Chat message model."""

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class Message(Base):
    """Task chat line. Append-only."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    task = relationship("Task", back_populates="messages")
    sender = relationship("User", back_populates="messages", lazy="joined")
