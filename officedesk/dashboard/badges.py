"""Status badges and queue membership for workflow items."""
from typing import List, NamedTuple

from officedesk.models.enums import ActorRole, MemoStatus, SuggestionStatus, SuggestionType
from officedesk.services.workflow import MEMO_WORKFLOW, WorkflowDefinition


class Badge(NamedTuple):
    color_class: str
    label: str


UNKNOWN_BADGE = Badge("bg-gray-100 text-gray-800", "Unknown")

SUGGESTION_STATUS_BADGES = {
    SuggestionStatus.PENDING: Badge("bg-yellow-100 text-yellow-800", "Pending"),
    SuggestionStatus.APPROVED: Badge("bg-green-100 text-green-800", "Approved"),
    SuggestionStatus.REJECTED: Badge("bg-red-100 text-red-800", "Rejected"),
}

SUGGESTION_TYPE_BADGES = {
    SuggestionType.ADD: Badge("bg-blue-100 text-blue-800", "Add New Contact"),
    SuggestionType.UPDATE: Badge("bg-purple-100 text-purple-800", "Update Contact"),
    SuggestionType.DELETE: Badge("bg-red-100 text-red-800", "Delete Contact"),
}

MEMO_STATUS_BADGES = {
    MemoStatus.DRAFT: Badge("bg-gray-100 text-gray-800", "Draft"),
    MemoStatus.PENDING_DESK_HEAD: Badge("bg-yellow-100 text-yellow-800", "Pending Desk Head"),
    MemoStatus.PENDING_LEO: Badge("bg-blue-100 text-blue-800", "Pending LEO"),
    MemoStatus.APPROVED: Badge("bg-green-100 text-green-800", "Approved"),
    MemoStatus.REJECTED: Badge("bg-red-100 text-red-800", "Rejected"),
}


def _lookup(table: dict, enum_type, value) -> Badge:
    try:
        return table.get(enum_type(getattr(value, "value", value)), UNKNOWN_BADGE)
    except (ValueError, TypeError):
        return UNKNOWN_BADGE


def suggestion_status_badge(status) -> Badge:
    """Never raises: statuses this build does not know render as Unknown."""
    return _lookup(SUGGESTION_STATUS_BADGES, SuggestionStatus, status)


def suggestion_type_badge(suggestion_type) -> Badge:
    return _lookup(SUGGESTION_TYPE_BADGES, SuggestionType, suggestion_type)


def memo_status_badge(status) -> Badge:
    return _lookup(MEMO_STATUS_BADGES, MemoStatus, status)


def pending_queues(status, workflow: WorkflowDefinition = MEMO_WORKFLOW) -> List[ActorRole]:
    """The reviewer queue(s) an item in this status shows up in. Empty once terminal."""
    reviewer = workflow.current_reviewer(status)
    if reviewer is None or reviewer == ActorRole.AUTHOR:
        return []
    return [reviewer]
