"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any, Generic, Literal, TypeVar
from datetime import datetime

from taskhub.models.user import UserRole
from taskhub.models.task import TaskStatus
from taskhub.models.bid import BidStatus
from taskhub.models.milestone import MilestoneStatus
from taskhub.models.notification import NotificationType
from taskhub.models.transaction import TransactionType, TransactionStatus

T = TypeVar("T")


# ---- Envelope ----
class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope: ``{"success": true, "message": ..., "data": ...}``."""
    return {"success": True, "message": message, "data": data}


# ---- Auth ----
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.CLIENT

class VerifyEmailRequest(BaseModel):
    email: str = Field(..., min_length=4)
    otp: str = Field(..., pattern=r"^\d{6}$")

class EmailOnlyRequest(BaseModel):
    email: str = Field(..., min_length=4)

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=1)

class RefreshRequest(BaseModel):
    refresh_token: str

class ResetPasswordRequest(BaseModel):
    email: str = Field(..., min_length=4)
    otp: str = Field(..., pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=8, max_length=128)

class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


# ---- User ----
class ProfileOut(BaseModel):
    first_name: str
    last_name: str
    bio: Optional[str] = None
    skills: List[str] = []
    portfolio_links: List[str] = []
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True

class UserOut(BaseModel):
    id: int
    email: str
    role: UserRole
    is_email_verified: bool = False
    is_suspended: bool = False
    stripe_account_completed: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    profile: Optional[ProfileOut] = None

    class Config:
        from_attributes = True

class UserPublicOut(BaseModel):
    id: int
    role: UserRole
    profile: Optional[ProfileOut] = None

    class Config:
        from_attributes = True

class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    skills: Optional[List[str]] = None
    portfolio_links: Optional[List[str]] = None
    avatar_url: Optional[str] = Field(None, max_length=500)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[UserOut] = None


# ---- Category ----
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)

class CategoryOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


# ---- Task ----
class AttachmentIn(BaseModel):
    url: str = Field(..., max_length=1000)
    file_name: str = Field(..., max_length=255)
    file_type: str = Field(..., max_length=100)

class AttachmentOut(AttachmentIn):
    id: int

    class Config:
        from_attributes = True

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=255)
    description: str = Field(..., min_length=10)
    budget: float = Field(..., gt=0)
    deadline: datetime
    skills: List[str] = []
    category_id: int
    attachments: List[AttachmentIn] = []

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=255)
    description: Optional[str] = Field(None, min_length=10)
    budget: Optional[float] = Field(None, gt=0)
    deadline: Optional[datetime] = None
    skills: Optional[List[str]] = None
    category_id: Optional[int] = None

class TaskOut(BaseModel):
    id: int
    title: str
    description: str
    budget: float
    deadline: datetime
    skills: List[str] = []
    status: TaskStatus
    client_id: int
    freelancer_id: Optional[int] = None
    category_id: int
    category: Optional[CategoryOut] = None
    attachments: List[AttachmentOut] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TaskPage(BaseModel):
    tasks: List[TaskOut]
    page: int
    limit: int
    total_pages: int
    total_tasks: int


# ---- Bid ----
class BidCreate(BaseModel):
    amount: float = Field(..., gt=0)
    proposal: str = Field(..., min_length=10, max_length=5000)

class BidUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    proposal: Optional[str] = Field(None, min_length=10, max_length=5000)

class BidOut(BaseModel):
    id: int
    task_id: int
    freelancer_id: int
    amount: float
    proposal: str
    status: BidStatus
    created_at: Optional[datetime] = None
    freelancer: Optional[UserPublicOut] = None

    class Config:
        from_attributes = True

class TaskDetailOut(TaskOut):
    client: Optional[UserPublicOut] = None
    freelancer: Optional[UserPublicOut] = None
    bids: List[BidOut] = []


# ---- Milestone ----
class MilestoneItem(BaseModel):
    description: str = Field(..., min_length=3)
    amount: float = Field(..., gt=0)
    due_date: datetime

class MilestoneCreateRequest(BaseModel):
    milestones: List[MilestoneItem] = Field(..., min_length=1)

class RevisionRequest(BaseModel):
    comments: str = Field(..., min_length=1, max_length=5000)

class MilestoneOut(BaseModel):
    id: int
    task_id: int
    description: str
    amount: float
    due_date: datetime
    status: MilestoneStatus
    comments: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Transaction / Payments ----
class TransactionOut(BaseModel):
    id: int
    task_id: int
    user_id: int
    milestone_id: Optional[int] = None
    amount: float
    type: TransactionType
    status: TransactionStatus
    stripe_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PaymentIntentRequest(BaseModel):
    task_id: int
    amount: float = Field(..., gt=0)

class PaymentIntentOut(BaseModel):
    client_secret: str
    payment_intent_id: str
    transaction_id: int

class ConnectOnboardingOut(BaseModel):
    stripe_account_id: str
    onboarding_url: str


# ---- Message ----
class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)

class MessageOut(BaseModel):
    id: int
    task_id: int
    sender_id: int
    content: str
    created_at: Optional[datetime] = None
    sender: Optional[UserPublicOut] = None

    class Config:
        from_attributes = True

class MessagePage(BaseModel):
    messages: List[MessageOut]
    page: int
    limit: int
    total_pages: int
    total_messages: int


# ---- Notification ----
class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    message: str
    url: Optional[str] = None
    task_id: Optional[int] = None
    bid_id: Optional[int] = None
    milestone_id: Optional[int] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class NotificationPage(BaseModel):
    notifications: List[NotificationOut]
    page: int
    limit: int
    total_pages: int
    total_notifications: int
    unread_count: int


# ---- Admin ----
class UserStatusUpdate(BaseModel):
    is_suspended: bool
    role: Optional[UserRole] = None

class UserPage(BaseModel):
    users: List[UserOut]
    page: int
    limit: int
    total_pages: int
    total_users: int

class FreelancerPage(BaseModel):
    freelancers: List[UserPublicOut]
    page: int
    limit: int
    total_pages: int
    total_freelancers: int

class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    detail_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Uploads ----
class UploadUrlRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=3, max_length=100)
    folder: Literal["avatars", "task-attachments"] = "task-attachments"

class UploadUrlOut(BaseModel):
    upload_url: str
    file_url: str
    object_key: str


# ---- Stats ----
class TaskStatsOut(BaseModel):
    counts: Dict[str, int]
