"""Pydantic schemas for request/response validation.

The response models are also what the dashboard parses API payloads into, so
there is one canonical shape per entity on both sides of the wire.
"""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from officedesk.models.enums import (
    ActorRole,
    ContactPosition,
    ContactType,
    MemoAction,
    MemoStatus,
    MemoType,
    PriorityLevel,
    SuggestionDecision,
    SuggestionStatus,
    SuggestionType,
)


# Contact schemas
class ContactChanges(BaseModel):
    """Partial contact data; used for edits and for suggested changes."""
    model_config = ConfigDict(extra="forbid")

    institute_name: Optional[str] = Field(None, min_length=1, max_length=200)
    individual_name: Optional[str] = Field(None, min_length=1, max_length=200)
    position: Optional[ContactPosition] = None
    phone_number: Optional[str] = None
    email_address: Optional[str] = None
    organization_type: Optional[ContactType] = None
    region: Optional[str] = None
    location: Optional[str] = None
    available_hours: Optional[str] = None
    alternative_phone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("institute_name", "individual_name", "position", "organization_type")
    @classmethod
    def required_not_null(cls, value):
        # Omitting these is fine; sending null would blank a required column
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ContactCreate(ContactChanges):
    institute_name: str = Field(..., min_length=1, max_length=200)
    individual_name: str = Field(..., min_length=1, max_length=200)


class ContactUpdate(ContactChanges):
    is_active: Optional[bool] = None


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institute_name: str
    individual_name: str
    position: ContactPosition
    phone_number: Optional[str] = None
    email_address: Optional[str] = None
    organization_type: ContactType
    region: Optional[str] = None
    location: Optional[str] = None
    available_hours: Optional[str] = None
    alternative_phone: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ContactPage(BaseModel):
    contacts: List[ContactResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ContactStatistics(BaseModel):
    total_contacts: int
    active_contacts: int
    inactive_contacts: int
    by_organization_type: Dict[str, int]
    pending_suggestions: int


# Review history
class ReviewEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: str
    actor_role: ActorRole
    decision: str
    from_status: str
    to_status: str
    comment: Optional[str] = None
    created_at: datetime


# Suggestion schemas
class SuggestionCreate(BaseModel):
    suggestion_type: SuggestionType
    contact_id: Optional[int] = None
    suggested_changes: ContactChanges = Field(default_factory=ContactChanges)
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide a reason for this suggestion")
        return value


class SuggestionReview(BaseModel):
    decision: SuggestionDecision
    comment: Optional[str] = Field(None, max_length=1000)
    expected_version: Optional[int] = None


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    suggestion_type: SuggestionType
    # Plain str: an unknown status from a newer server must still parse on the dashboard
    status: str
    contact_id: Optional[int] = None
    existing_data: Optional[dict] = None
    suggested_changes: dict = Field(default_factory=dict)
    reason: str
    admin_comment: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_by: str
    version: int
    created_at: datetime
    updated_at: datetime
    review_history: List[ReviewEntryResponse] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return getattr(value, "value", value)


# Memo schemas
class MemoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    memo_type: MemoType = MemoType.GENERAL
    department: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    recipients: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    date_of_issue: Optional[date] = None
    priority_level: PriorityLevel = PriorityLevel.NORMAL
    signature: Optional[str] = None


class MemoUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    memo_type: Optional[MemoType] = None
    department: Optional[str] = Field(None, min_length=1)
    body: Optional[str] = Field(None, min_length=1)
    recipients: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    date_of_issue: Optional[date] = None
    priority_level: Optional[PriorityLevel] = None
    signature: Optional[str] = None

    @field_validator("title", "memo_type", "department", "body", "recipients", "tags", "priority_level")
    @classmethod
    def required_not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class MemoActionRequest(BaseModel):
    action: MemoAction
    comment: Optional[str] = Field(None, max_length=1000)
    expected_version: Optional[int] = None


class MemoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    memo_type: MemoType
    department: str
    body: str
    recipients: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    date_of_issue: Optional[date] = None
    priority_level: PriorityLevel
    signature: Optional[str] = None
    status: str
    created_by: str
    version: int
    created_at: datetime
    updated_at: datetime
    submitted_to_desk_head_at: Optional[datetime] = None
    submitted_to_leo_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    review_history: List[ReviewEntryResponse] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return getattr(value, "value", value)


class MemoHistoryResponse(BaseModel):
    """Stage timestamps plus the reviews taken at each stage."""
    model_config = ConfigDict(from_attributes=True)

    memo_id: int
    status: str
    created_at: datetime
    submitted_to_desk_head_at: Optional[datetime] = None
    desk_head_review: Optional[ReviewEntryResponse] = None
    submitted_to_leo_at: Optional[datetime] = None
    leo_review: Optional[ReviewEntryResponse] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    entries: List[ReviewEntryResponse] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return getattr(value, "value", value)


# Error response
class RefusalResponse(BaseModel):
    """Response when an action is refused."""
    message: str
    refusal: str
