"""Audit log model (append-only)."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from taskhub.db.base import Base


class AuditLog(Base):
    """Trail of administrative and lifecycle mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "bid.accepted"
    resource_type = Column(String(50), nullable=False, index=True)  # task, bid, milestone, user...
    resource_id = Column(String(100), nullable=True)
    detail_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
