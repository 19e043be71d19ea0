"""Bid model."""

import enum

from sqlalchemy import Column, Integer, Text, DateTime, Numeric, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from taskhub.db.base import Base


class BidStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Bid(Base):
    """A freelancer's price and pitch for an open task."""
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    proposal = Column(Text, nullable=False)
    status = Column(Enum(BidStatus), default=BidStatus.PENDING, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    task = relationship("Task", back_populates="bids")
    freelancer = relationship("User", back_populates="bids", lazy="joined")
