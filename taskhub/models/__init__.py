"""Models package — import all models so metadata.create_all sees every table."""

from taskhub.models.user import User, Profile, RefreshToken, UserRole
from taskhub.models.category import Category
from taskhub.models.task import Task, Attachment, TaskStatus
from taskhub.models.bid import Bid, BidStatus
from taskhub.models.milestone import Milestone, MilestoneStatus
from taskhub.models.transaction import Transaction, TransactionType, TransactionStatus
from taskhub.models.message import Message
from taskhub.models.notification import Notification, NotificationType
from taskhub.models.audit_log import AuditLog

__all__ = [
    "User", "Profile", "RefreshToken", "UserRole",
    "Category",
    "Task", "Attachment", "TaskStatus",
    "Bid", "BidStatus",
    "Milestone", "MilestoneStatus",
    "Transaction", "TransactionType", "TransactionStatus",
    "Message",
    "Notification", "NotificationType",
    "AuditLog",
]
