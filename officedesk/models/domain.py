"""Domain models - contacts, and the two workflow items (suggestions and memos) with their review history."""
from datetime import datetime
from sqlalchemy import Boolean, Column, Date, String, Integer, DateTime, ForeignKey, Enum as SQLEnum, JSON, Text
from sqlalchemy.orm import relationship
from officedesk.database import Base
from officedesk.models.enums import (
    ActorRole,
    ContactPosition,
    ContactType,
    MemoStatus,
    MemoType,
    PriorityLevel,
    SuggestionStatus,
    SuggestionType,
)


class Contact(Base):
    """A directory entry. Suggestions that get approved are applied here."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    institute_name = Column(String, nullable=False, index=True)
    individual_name = Column(String, nullable=False)
    position = Column(SQLEnum(ContactPosition), nullable=False, default=ContactPosition.OTHER)
    phone_number = Column(String, nullable=True)
    email_address = Column(String, nullable=True)
    organization_type = Column(SQLEnum(ContactType), nullable=False, default=ContactType.OTHER)
    region = Column(String, nullable=True)
    location = Column(String, nullable=True)
    available_hours = Column(String, nullable=True)
    alternative_phone = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    suggestions = relationship("ContactSuggestion", back_populates="contact")


class ReviewEntry(Base):
    """
    One row per status change of a workflow item.

    Invariants:
    - Append-only; rows are never edited
    - Exactly one row per non-initial status change
    """
    __tablename__ = "review_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    item_type = Column(String, nullable=False, index=True)  # "ContactSuggestion" or "Memo"
    item_id = Column(Integer, nullable=False, index=True)
    actor_id = Column(String, nullable=False)
    actor_role = Column(SQLEnum(ActorRole), nullable=False)
    decision = Column(String, nullable=False)
    from_status = Column(String, nullable=False)
    to_status = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ContactSuggestion(Base):
    """
    A proposed change to the contact directory: PENDING -> APPROVED | REJECTED.

    Invariants:
    - Created PENDING (handled in service layer)
    - existing_data is a snapshot of the target contact at submission time
    """
    __tablename__ = "contact_suggestions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    suggestion_type = Column(SQLEnum(SuggestionType), nullable=False)
    status = Column(SQLEnum(SuggestionStatus), nullable=False, default=SuggestionStatus.PENDING)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)
    existing_data = Column(JSON, nullable=True)
    suggested_changes = Column(JSON, nullable=False, default=dict)
    reason = Column(Text, nullable=False)

    admin_comment = Column(Text, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_by = Column(String, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    contact = relationship("Contact", back_populates="suggestions")
    review_history = relationship(
        "ReviewEntry",
        primaryjoin="and_(ReviewEntry.item_type == 'ContactSuggestion', "
                    "foreign(ReviewEntry.item_id) == ContactSuggestion.id)",
        order_by="ReviewEntry.id",
        viewonly=True,
    )


class Memo(Base):
    """
    A memo routed DRAFT -> PENDING_DESK_HEAD -> PENDING_LEO -> APPROVED, with REJECTED
    reachable from either review stage.

    Invariants:
    - Payload is editable only while DRAFT
    - Each stage sets its own timestamp exactly once
    """
    __tablename__ = "memos"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False)
    memo_type = Column(SQLEnum(MemoType), nullable=False, default=MemoType.GENERAL)
    department = Column(String, nullable=False, index=True)
    body = Column(Text, nullable=False)
    recipients = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    date_of_issue = Column(Date, nullable=True)
    priority_level = Column(SQLEnum(PriorityLevel), nullable=False, default=PriorityLevel.NORMAL)
    signature = Column(String, nullable=True)

    status = Column(SQLEnum(MemoStatus), nullable=False, default=MemoStatus.DRAFT)
    created_by = Column(String, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_to_desk_head_at = Column(DateTime, nullable=True)
    submitted_to_leo_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    review_history = relationship(
        "ReviewEntry",
        primaryjoin="and_(ReviewEntry.item_type == 'Memo', "
                    "foreign(ReviewEntry.item_id) == Memo.id)",
        order_by="ReviewEntry.id",
        viewonly=True,
    )
