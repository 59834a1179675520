"""
API schemas for SalesCoach.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from salescoach.models.db import ProfileRole

# ===== Profiles =====


class ProfileCreate(BaseModel):
    """Request body for profile creation."""

    auth_id: str = Field(min_length=1)
    email: str = Field(pattern=r"^\s*[^@\s]+@[^@\s]+\s*$")
    first_name: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    last_name: Optional[str] = None
    role: Optional[ProfileRole] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    team_size: Optional[int] = Field(default=None, ge=0)


class ProfileResponse(BaseModel):
    """Response schema for Profile."""

    id: UUID
    auth_id: str
    company_id: Optional[UUID] = None
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    position: Optional[str] = None
    phone: Optional[str] = None
    team_size: Optional[int] = None
    role: ProfileRole
    demo_sessions_used: int
    demo_minutes_used: float
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileCreateResponse(BaseModel):
    profile: ProfileResponse
    message: str = "Profile created successfully"


# ===== Sessions =====


class SessionCreate(BaseModel):
    """Request body for starting a session."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    company_id: Optional[UUID] = None
    demo_user: bool = False
    user_id: Optional[str] = Field(default=None, alias="userId")

    class Config:
        populate_by_name = True


class SessionEnd(BaseModel):
    """Request body for finalizing a session."""

    duration_seconds: int = Field(ge=0)
    transcript: Optional[list[dict[str, Any]]] = None
    conversation_id: Optional[str] = None


class SessionDescriptorResponse(BaseModel):
    id: str
    title: str
    status: str
    processing_status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_demo: bool = False

    class Config:
        from_attributes = True


class SessionEnvelope(BaseModel):
    session: SessionDescriptorResponse


class SessionViewResponse(BaseModel):
    session: Optional[dict[str, Any]] = None
    is_demo: bool = False
    message: Optional[str] = None


# ===== Analysis =====


class AnalysisData(BaseModel):
    """Client-computed analysis; unknown keys are kept and stored as sent."""

    overall_score: Optional[float] = Field(default=None, ge=0, le=10)
    duration_seconds: int = Field(default=0, ge=0)
    message_count: int = Field(default=0, ge=0)
    title: Optional[str] = None
    model: Optional[str] = None
    conversation_summary: Optional[str] = None

    class Config:
        extra = "allow"


class AnalysisSaveRequest(BaseModel):
    """Client-computed analysis to persist."""

    conversation_id: str = Field(min_length=1)
    analysis_data: AnalysisData


class AnalysisSaveResponse(BaseModel):
    success: bool
    session_id: Optional[UUID] = None
    message: Optional[str] = None


# ===== Conversations =====


class ConversationSummary(BaseModel):
    """One voice conversation as listed on the dashboard."""

    id: str
    title: str
    date: Optional[datetime] = None
    duration: int = 0
    status: Optional[str] = None
    call_successful: Optional[str] = None
    feedback_summary: Optional[str] = None
    overall_score: Optional[float] = None
    message_count: Optional[int] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    direction: Optional[str] = None


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary] = Field(default_factory=list)
    total: int = 0


class RecentSession(BaseModel):
    id: str
    title: str
    duration: int
    minutes: int
    score: Optional[float] = None
    date: Optional[datetime] = None
    status: Optional[str] = None
    feedback: Optional[str] = None


# ===== Dashboard stats =====


class RealStatsResponse(BaseModel):
    kind: Literal["real"] = "real"
    minutes_left: float
    sessions_today: int
    total_sessions: int
    total_minutes_used: float
    average_score: float
    progress_score: float
    streak_days: int
    subscription_tier: str
    is_demo: bool = False


class DemoStatsResponse(BaseModel):
    kind: Literal["demo"] = "demo"
    reason: str
    minutes_left: float
    sessions_today: int = 0
    total_sessions: int = 0
    total_minutes_used: float = 0.0
    average_score: float = 0.0
    progress_score: float = 0.0
    streak_days: int = 0
    demo_limits: Optional[dict[str, Any]] = None
    is_demo: bool = True


DashboardStatsResponse = Annotated[
    Union[RealStatsResponse, DemoStatsResponse], Field(discriminator="kind")
]


# ===== API keys =====


class ApiKeyEntry(BaseModel):
    service: str = ""
    key: str = ""


class ApiKeysSaveRequest(BaseModel):
    api_keys: list[ApiKeyEntry]


class MaskedApiKey(BaseModel):
    id: UUID
    service: str
    key: str
    is_active: bool
    last_used: Optional[datetime] = None
    created_at: datetime


class ApiKeysResponse(BaseModel):
    api_keys: list[MaskedApiKey] = Field(default_factory=list)


class SavedKey(BaseModel):
    service: str
    status: str = "saved"


class ApiKeysSaveResponse(BaseModel):
    message: str = "API keys saved successfully"
    saved_keys: list[SavedKey] = Field(default_factory=list)
