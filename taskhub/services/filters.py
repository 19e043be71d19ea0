"""Typed query filters and pagination shared by the list endpoints.

Each entity gets its own filter dataclass with an ``apply`` method, so a
router can only pass the filters that entity actually supports.
"""

import enum
import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query

from taskhub.models.notification import Notification, NotificationType
from taskhub.models.task import Task, TaskStatus
from taskhub.models.user import Profile, User, UserRole


class SortOrder(str, enum.Enum):
    asc = "asc"
    desc = "desc"


class TaskSortField(str, enum.Enum):
    created_at = "created_at"
    budget = "budget"
    deadline = "deadline"


@dataclass
class Page:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0


def paginate(query: Query, page: Page, *order_by) -> tuple:
    """Return ``(rows, total, total_pages)`` for one page of ``query``."""
    total = query.order_by(None).count()
    rows = query.order_by(*order_by).offset(page.offset).limit(page.limit).all()
    return rows, total, page.total_pages(total)


@dataclass
class TaskFilters:
    category_id: Optional[int] = None
    min_budget: Optional[float] = None
    max_budget: Optional[float] = None
    status: Optional[TaskStatus] = None
    q: Optional[str] = None
    sort_by: TaskSortField = TaskSortField.created_at
    sort_order: SortOrder = SortOrder.desc

    def apply(self, query: Query) -> Query:
        if self.category_id is not None:
            query = query.filter(Task.category_id == self.category_id)
        if self.min_budget is not None:
            query = query.filter(Task.budget >= self.min_budget)
        if self.max_budget is not None:
            query = query.filter(Task.budget <= self.max_budget)
        if self.status is not None:
            query = query.filter(Task.status == self.status)
        if self.q:
            term = f"%{self.q}%"
            query = query.filter(or_(Task.title.ilike(term), Task.description.ilike(term)))
        return query

    def ordering(self) -> tuple:
        column = getattr(Task, self.sort_by.value)
        if self.sort_order == SortOrder.asc:
            return column.asc(), Task.id.asc()
        return column.desc(), Task.id.desc()


@dataclass
class UserFilters:
    role: Optional[UserRole] = None
    is_suspended: Optional[bool] = None
    q: Optional[str] = None

    def apply(self, query: Query) -> Query:
        if self.role is not None:
            query = query.filter(User.role == self.role)
        if self.is_suspended is not None:
            query = query.filter(User.is_suspended == self.is_suspended)
        if self.q:
            term = f"%{self.q}%"
            query = query.outerjoin(Profile, Profile.user_id == User.id).filter(
                or_(
                    User.email.ilike(term),
                    Profile.first_name.ilike(term),
                    Profile.last_name.ilike(term),
                )
            )
        return query


@dataclass
class FreelancerFilters:
    q: Optional[str] = None

    def apply(self, query: Query) -> Query:
        query = query.filter(
            User.role == UserRole.FREELANCER,
            User.is_suspended.is_(False),
            User.email_verified_at.isnot(None),
        )
        if self.q:
            term = f"%{self.q}%"
            query = query.join(Profile, Profile.user_id == User.id).filter(
                or_(
                    Profile.first_name.ilike(term),
                    Profile.last_name.ilike(term),
                    Profile.bio.ilike(term),
                )
            )
        return query


@dataclass
class NotificationFilters:
    is_read: Optional[bool] = None
    type: Optional[NotificationType] = None

    def apply(self, query: Query) -> Query:
        if self.is_read is not None:
            query = query.filter(Notification.is_read == self.is_read)
        if self.type is not None:
            query = query.filter(Notification.type == self.type)
        return query
