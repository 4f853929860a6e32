"""Enums for officedesk - these define the valid values for statuses, actions and roles."""
from enum import Enum


class ActorRole(str, Enum):
    """Roles an actor can hold. AUTHOR is a gate meaning 'the item's creator', never a session role."""
    STAFF = "STAFF"
    ADMIN = "ADMIN"
    DESK_HEAD = "DESK_HEAD"
    LEO = "LEO"
    AUTHOR = "AUTHOR"


class SuggestionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SuggestionDecision(str, Enum):
    """Decisions an admin can take on a pending suggestion."""
    APPROVE = "approve"
    REJECT = "reject"


class SuggestionType(str, Enum):
    UPDATE = "UPDATE"
    ADD = "ADD"
    DELETE = "DELETE"


class MemoStatus(str, Enum):
    """Memo routing states. APPROVED and REJECTED are terminal."""
    DRAFT = "DRAFT"
    PENDING_DESK_HEAD = "PENDING_DESK_HEAD"
    PENDING_LEO = "PENDING_LEO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MemoAction(str, Enum):
    SUBMIT = "submit"
    FORWARD = "forward"
    APPROVE = "approve"
    REJECT = "reject"


class MemoType(str, Enum):
    GENERAL = "GENERAL"
    INSTRUCTIONAL = "INSTRUCTIONAL"
    INFORMATIONAL = "INFORMATIONAL"


class PriorityLevel(str, Enum):
    NORMAL = "NORMAL"
    URGENT = "URGENT"
    CONFIDENTIAL = "CONFIDENTIAL"


class ContactType(str, Enum):
    """Organization types in the contact directory."""
    MOH_AGENCIES = "MOH_AGENCIES"
    REGIONAL_HEALTH_BUREAU = "REGIONAL_HEALTH_BUREAU"
    FEDERAL_HOSPITALS = "FEDERAL_HOSPITALS"
    ADDIS_ABABA_HOSPITALS = "ADDIS_ABABA_HOSPITALS"
    UNIVERSITY_HOSPITALS = "UNIVERSITY_HOSPITALS"
    ASSOCIATIONS = "ASSOCIATIONS"
    PARTNERS = "PARTNERS"
    MOH = "MOH"
    OTHER = "OTHER"


class ContactPosition(str, Enum):
    HEAD = "HEAD"
    DEPUTY_HEAD = "DEPUTY_HEAD"
    MEDICAL_SERVICE_LEAD = "MEDICAL_SERVICE_LEAD"
    CHIEF_EXECUTIVE_DIRECTOR = "CHIEF_EXECUTIVE_DIRECTOR"
    MEDICAL_DIRECTOR = "MEDICAL_DIRECTOR"
    CEO = "CEO"
    OTHER = "OTHER"
