"""
Internal audit logging model - NOT a user-facing domain object.

Every mutation and every refused transition leaves one row here. The review
history on workflow items is user-facing; this log is for reconstructing what
was attempted, including the attempts that were refused.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON
from officedesk.database import Base


class AuditEvent(Base):
    """
    Immutable audit event.

    Invariants:
    - Once written, never edited or deleted
    - Append-only
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    event_type = Column(String, nullable=False, index=True)  # e.g., "transition_refused"
    entity_type = Column(String, nullable=False)  # e.g., "ContactSuggestion", "Memo"
    entity_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)  # Nullable for system events
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    payload_json = Column(JSON, nullable=True)


class AuditEventType:
    """Enumeration of audit event types."""
    # Contact directory
    CONTACT_CREATED = "contact_created"
    CONTACT_UPDATED = "contact_updated"
    CONTACT_DEACTIVATED = "contact_deactivated"
    CONTACT_DELETED = "contact_deleted"

    # Suggestion lifecycle
    SUGGESTION_CREATED = "suggestion_created"
    SUGGESTION_DELETED = "suggestion_deleted"

    # Memo lifecycle
    MEMO_CREATED = "memo_created"
    MEMO_UPDATED = "memo_updated"
    MEMO_DELETED = "memo_deleted"

    # Workflow
    TRANSITION_APPLIED = "transition_applied"
    TRANSITION_REFUSED = "transition_refused"
