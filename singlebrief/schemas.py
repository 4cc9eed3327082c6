from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Any, Literal, Optional, List
from datetime import datetime

from fastapi_users import schemas

from .models import BriefStatus, ResponseStatus

# =========================
# USER SCHEMAS
# =========================
class UserRead(schemas.BaseUser[int]):
    pass

class UserCreate(schemas.BaseUserCreate):
    # copied onto the profile at sign-up; falls back to the email
    name: Optional[str] = Field(default=None, exclude=True)

class UserUpdate(schemas.BaseUserUpdate):
    pass


# =========================
# PROFILE SCHEMAS
# =========================
class NotificationPreferences(BaseModel):
    weekly_summary: bool = False
    response_alerts: bool = True
    deadline_reminders: bool = True

class ProfileRead(BaseModel):
    user_id: int
    name: str
    email: str
    avatar_url: Optional[str] = None
    notification_preferences: NotificationPreferences
    two_factor_enabled: bool = False
    updated_at: Optional[datetime] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    avatar_url: Optional[str] = None
    notification_preferences: Optional[dict[str, Any]] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str
    confirm_password: Optional[str] = None

class TwoFactorSetupRead(BaseModel):
    secret: str
    otpauth_uri: str

class TwoFactorEnable(BaseModel):
    secret: str
    code: str


# =========================
# TEAM SCHEMAS
# =========================
class TeamMember(BaseModel):
    name: str = ""
    email: str
    designation: str = ""
    topics: List[str] = []

class TeamBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    # list of emails or a comma-separated string
    members: List[str] | str = []
    member_details: List[TeamMember] = []

class TeamCreate(TeamBase):
    pass

class TeamUpdate(TeamBase):
    pass

class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    members: List[str] = []
    member_details: List[TeamMember] = []
    created_at: datetime
    updated_at: datetime


# =========================
# TEMPLATE SCHEMAS
# =========================
class TemplateBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    prompt: str = Field(min_length=1)

class TemplateCreate(TemplateBase):
    pass

class TemplateUpdate(TemplateBase):
    pass

class TemplateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    prompt: str
    is_system: bool
    is_public: bool
    created_at: datetime
    updated_at: datetime


# =========================
# BRIEF SCHEMAS
# =========================
class ManualMember(BaseModel):
    name: str = ""
    email: str = ""
    department: str = ""
    topic: str = ""

class BriefCreate(BaseModel):
    title: str = ""
    prompt: str = ""
    template_id: Optional[int] = None
    team_ids: List[int] = []
    # narrows each selected team to these emails when any of them belong to it
    selected_members: List[str] = []
    manual_members: List[ManualMember] = []
    # comma-separated addresses, or a list
    recipients: List[str] | str = []
    deadline: Optional[datetime] = None

class ResponseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_email: str
    secure_token: str
    status: ResponseStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class BriefRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    prompt: str
    status: BriefStatus
    recipients: List[str]
    response_count: int
    total_recipients: int
    deadline: Optional[datetime] = None
    synthesis_result: Optional[Any] = None
    created_at: datetime
    updated_at: datetime

class BriefDetail(BriefRead):
    progress: int = 0
    responses: List[ResponseRead] = []

class DashboardRead(BaseModel):
    total: int
    active: int
    completed: int
    recent: List[BriefRead] = []

class SynthesisUpdate(BaseModel):
    result: Any

class DeliveryReport(BaseModel):
    total: int
    successful: int
    failed: int

class BriefActionResult(BaseModel):
    brief: BriefRead
    delivery: Optional[DeliveryReport] = None


# =========================
# RESPONDENT (token) SCHEMAS
# =========================
class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str = Field(min_length=1)

class RespondentView(BaseModel):
    brief_title: str
    brief_prompt: str
    deadline: Optional[datetime] = None
    recipient_email: str
    status: ResponseStatus
    conversation: List[dict] = []
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# =========================
# CANCELLATION FUNCTION
# =========================
class CancellationRequest(BaseModel):
    briefId: str | int
    briefTitle: str
    recipients: List[str]
