from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime,
    UniqueConstraint, Index, JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict, MutableList
from sqlalchemy import Enum as SAEnum
import enum
from datetime import datetime, timezone

from .database import Base

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests).
# Mutable wrappers key on the type instance, so every column needs its own.
def json_type():
    return JSON().with_variant(JSONB(), "postgresql")


class BriefStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    in_progress = "in_progress"
    completed = "completed"
    archived = "archived"

class ResponseStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    expired = "expired"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_notification_preferences() -> dict:
    return {"weekly_summary": False, "response_alerts": True, "deadline_reminders": True}


# ---------------------------
# USER MODEL
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String(1024), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    profile = relationship(
        "Profile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    teams = relationship("Team", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    templates = relationship("BriefTemplate", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    briefs = relationship("Brief", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


# ---------------------------
# PROFILES
# ---------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)
    avatar_url = Column(String, nullable=True)
    notification_preferences = Column(
        MutableDict.as_mutable(json_type()), default=default_notification_preferences, nullable=True
    )
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    two_factor_secret = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="profile")


# ---------------------------
# TEAMS
# ---------------------------
class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    members = Column(MutableList.as_mutable(json_type()), default=list, nullable=False)         # list[str] (legacy)
    member_details = Column(MutableList.as_mutable(json_type()), default=list, nullable=False)  # [{name, email, designation, topics}]
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="teams")


# ---------------------------
# TEMPLATES
# ---------------------------
class BriefTemplate(Base):
    __tablename__ = "brief_templates"

    id = Column(Integer, primary_key=True, index=True)
    # NULL for system templates
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    prompt = Column(Text, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="templates")


# ---------------------------
# BRIEFS
# ---------------------------
class Brief(Base):
    __tablename__ = "briefs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(300), nullable=False)
    prompt = Column(Text, nullable=False)
    recipients = Column(MutableList.as_mutable(json_type()), default=list, nullable=False)  # list[str]
    deadline = Column(DateTime(timezone=True), nullable=True)
    status = Column(SAEnum(BriefStatus, name="brief_status"), default=BriefStatus.draft, nullable=False, index=True)
    response_count = Column(Integer, default=0, nullable=False)
    total_recipients = Column(Integer, default=0, nullable=False)
    synthesis_result = Column(json_type(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="briefs")
    responses = relationship(
        "Response",
        back_populates="brief",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Response.id",
        lazy="selectin",
    )

    @property
    def progress(self) -> int:
        """Completed responses as a whole percentage of recipients."""
        if not self.total_recipients:
            return 0
        return round((self.response_count or 0) / self.total_recipients * 100)


# ---------------------------
# RESPONSES
# ---------------------------
class Response(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    brief_id = Column(Integer, ForeignKey("briefs.id", ondelete="CASCADE"), index=True, nullable=False)
    recipient_email = Column(String(320), nullable=False)
    secure_token = Column(String(64), unique=True, nullable=False, index=True)  # url-safe
    conversation = Column(MutableList.as_mutable(json_type()), default=list, nullable=False)
    status = Column(SAEnum(ResponseStatus, name="response_status"), default=ResponseStatus.pending, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    brief = relationship("Brief", back_populates="responses")

    # one response per (brief, recipient)
    __table_args__ = (
        UniqueConstraint("brief_id", "recipient_email", name="uq_response_brief_recipient"),
        Index("ix_responses_brief_status", "brief_id", "status"),
    )
