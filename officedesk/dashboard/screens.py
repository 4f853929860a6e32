"""
Screen controllers for the workflow pages.

Each screen holds the state a page renders (items, loading flags, dialog state,
error messages) and performs the service calls. Rendering itself lives in the
page shell; nothing here draws anything.
"""
import logging
from typing import Dict, List, Optional

from officedesk.api.schemas import (
    ContactPage,
    ContactResponse,
    ContactStatistics,
    MemoHistoryResponse,
    MemoResponse,
    SuggestionResponse,
)
from officedesk.auth import AuthContext
from officedesk.dashboard.badges import (
    Badge,
    memo_status_badge,
    suggestion_status_badge,
    suggestion_type_badge,
)
from officedesk.dashboard.client import ApiError
from officedesk.dashboard.queues import PendingQueueFetcher, QueueSnapshot
from officedesk.dashboard.services import ContactService, MemoService
from officedesk.models.enums import (
    MemoAction,
    MemoStatus,
    MemoType,
    PriorityLevel,
    SuggestionDecision,
    SuggestionType,
)
from officedesk.services.workflow import MEMO_WORKFLOW, SUGGESTION_WORKFLOW, WorkflowDefinition

logger = logging.getLogger(__name__)

ALL_STATUSES = ""

CONTACTS_PATH = "/contacts"
SUGGESTIONS_PATH = "/contacts/suggestions"
MEMOS_PATH = "/memos"

# Page titles in the shell, keyed by the path prefix a screen navigates to (longest first)
PAGES_BY_PATH = (
    (SUGGESTIONS_PATH, "Contact Suggestions"),
    (CONTACTS_PATH, "Contact Directory"),
    (MEMOS_PATH, "Memos"),
)

LOADING = "loading"
FAILED = "failed"
EMPTY = "empty"
READY = "ready"

IN_FLIGHT_LABELS = {
    "approve": "Approving...",
    "reject": "Rejecting...",
    "forward": "Forwarding...",
    "submit": "Submitting...",
}


def most_recent_first(items: list) -> list:
    """Newest first; equal timestamps fall back to id so re-fetches never reshuffle."""
    return sorted(items, key=lambda item: (item.created_at, item.id), reverse=True)


def page_for(path: Optional[str]) -> Optional[str]:
    """The shell page a navigate_to path lands on, or None for unknown paths."""
    if not path:
        return None
    for prefix, page in PAGES_BY_PATH:
        if path == prefix or path.startswith(prefix + "/"):
            return page
    return None


class FilteredListScreen:
    """A list of workflow items with an optional status filter."""

    workflow: WorkflowDefinition = None

    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.status_filter = ALL_STATUSES
        self.items: list = []
        self.loading = False
        self.load_error: Optional[str] = None

    def _fetch(self, status: Optional[str]) -> list:
        raise NotImplementedError

    def set_filter(self, status: Optional[str]) -> None:
        self.status_filter = status or ALL_STATUSES
        self.load()

    def load(self) -> None:
        self.loading = True
        try:
            items = self._fetch(self.status_filter or None)
        except ApiError as e:
            logger.error("Failed to load %s list: %s", self.workflow.name, e.message)
            self.items = []
            self.load_error = e.message
        else:
            self.items = most_recent_first(items)
            self.load_error = None
        finally:
            self.loading = False

    @property
    def state(self) -> str:
        if self.loading:
            return LOADING
        if self.load_error is not None:
            return FAILED
        if not self.items:
            return EMPTY
        return READY

    def empty_message(self) -> Optional[str]:
        """Failed loads and genuinely empty lists read differently."""
        if self.state == FAILED:
            return f"Could not load {self.workflow.name}s: {self.load_error}. Try again."
        if self.state == EMPTY:
            if self.status_filter:
                return f"No {self.workflow.name}s with this status. Clear the filter to see all."
            return f"No {self.workflow.name}s found."
        return None

    def ids(self) -> List[int]:
        return [item.id for item in self.items]

    def replace(self, updated) -> None:
        self.items = [updated if item.id == updated.id else item for item in self.items]

    def can_act(self, item) -> bool:
        """Whether any action control renders for this item. Never true for terminal items."""
        return bool(self.workflow.allowed_actions(item.status, self.auth, item.created_by))


class SuggestionListScreen(FilteredListScreen):
    workflow = SUGGESTION_WORKFLOW

    def __init__(self, contacts: ContactService, auth: AuthContext):
        super().__init__(auth)
        self.contacts = contacts
        self.selected: Optional[SuggestionResponse] = None
        self.review_comment = ""
        self.reviewing = False
        self.review_error: Optional[str] = None

    def _fetch(self, status: Optional[str]) -> List[SuggestionResponse]:
        return self.contacts.get_suggestions(status)

    @property
    def subtitle(self) -> str:
        if self.auth.is_admin:
            return "Review and manage contact suggestions"
        return "View your contact suggestions"

    def open_review(self, suggestion: SuggestionResponse) -> bool:
        if not self.can_act(suggestion):
            return False
        self.selected = suggestion
        self.review_comment = ""
        self.review_error = None
        return True

    def cancel_review(self) -> None:
        if self.reviewing:
            return
        self.selected = None
        self.review_comment = ""
        self.review_error = None

    def button_label(self, decision: SuggestionDecision) -> str:
        if self.reviewing:
            return IN_FLIGHT_LABELS[decision.value]
        return decision.value.capitalize()

    def review(self, decision: SuggestionDecision) -> Optional[SuggestionResponse]:
        """
        Send the decision for the suggestion in the open dialog.

        On failure the dialog stays open with the error and the list keeps the
        suggestion exactly as it was.
        """
        if self.selected is None or self.reviewing:
            return None
        decision = SuggestionDecision(decision)
        target = self.selected
        self.reviewing = True
        self.review_error = None
        try:
            updated = self.contacts.review_suggestion(
                target.id,
                decision.value,
                comment=self.review_comment.strip() or None,
                expected_version=target.version,
            )
        except ApiError as e:
            logger.error("Failed to %s suggestion %s: %s", decision.value, target.id, e.message)
            self.review_error = e.message
            return None
        finally:
            self.reviewing = False

        self.replace(updated)
        self.selected = None
        self.review_comment = ""
        return updated

    def card(self, suggestion: SuggestionResponse) -> Dict:
        """Everything one suggestion card shows."""
        return {
            "id": suggestion.id,
            "type_badge": suggestion_type_badge(suggestion.suggestion_type),
            "status_badge": suggestion_status_badge(suggestion.status),
            "created_at": suggestion.created_at,
            "suggested_changes": suggestion.suggested_changes,
            "existing_data": suggestion.existing_data,
            "reason": suggestion.reason,
            "submitted_by": suggestion.created_by,
            "admin_comment": suggestion.admin_comment,
            "reviewed_by": suggestion.reviewed_by,
            "show_review": self.can_act(suggestion),
            "show_delete": self.auth.is_admin,
        }

    def delete(self, suggestion: SuggestionResponse) -> bool:
        """Administrative delete; the card disappears only once the server confirms."""
        if not self.auth.is_admin:
            return False
        try:
            self.contacts.delete_suggestion(suggestion.id)
        except ApiError as e:
            logger.error("Failed to delete suggestion %s: %s", suggestion.id, e.message)
            self.review_error = e.message
            return False
        self.items = [item for item in self.items if item.id != suggestion.id]
        if self.selected is not None and self.selected.id == suggestion.id:
            self.selected = None
        return True


class ContactDirectoryScreen:
    """Searchable, paginated contact directory with the headline statistics."""

    def __init__(self, contacts: ContactService, auth: AuthContext, limit: int = 20):
        self.contacts = contacts
        self.auth = auth
        self.limit = limit
        self.search = ""
        self.organization_type: Optional[str] = None
        self.page = 1
        self.result: Optional[ContactPage] = None
        self.statistics: Optional[ContactStatistics] = None
        self.loading = False
        self.load_error: Optional[str] = None

    def load(self) -> None:
        self.loading = True
        try:
            self.result = self.contacts.get_contacts(
                search=self.search.strip() or None,
                organization_type=self.organization_type or None,
                page=self.page,
                limit=self.limit,
            )
            self.statistics = self.contacts.get_statistics()
            self.load_error = None
        except ApiError as e:
            logger.error("Failed to load the contact directory: %s", e.message)
            self.result = None
            self.load_error = e.message
        finally:
            self.loading = False

    def set_search(self, search: str, organization_type: Optional[str] = None) -> None:
        self.search = search or ""
        self.organization_type = organization_type or None
        self.page = 1
        self.load()

    @property
    def contacts_on_page(self) -> List[ContactResponse]:
        return self.result.contacts if self.result else []

    @property
    def has_next(self) -> bool:
        return bool(self.result) and self.page < self.result.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def next_page(self) -> None:
        if self.has_next:
            self.page += 1
            self.load()

    def previous_page(self) -> None:
        if self.has_previous:
            self.page -= 1
            self.load()

    @property
    def state(self) -> str:
        if self.loading:
            return LOADING
        if self.load_error is not None:
            return FAILED
        if not self.contacts_on_page:
            return EMPTY
        return READY


class SuggestionFormScreen:
    """Suggest an addition, an update or a removal for the directory."""

    def __init__(self, contacts: ContactService, contact_id: Optional[int] = None,
                 suggestion_type: SuggestionType = SuggestionType.UPDATE):
        self.contacts = contacts
        self.contact_id = contact_id
        self.suggestion_type = SuggestionType(suggestion_type) if contact_id is not None else SuggestionType.ADD
        self.contact = None
        self.suggested_changes: Dict = {}
        self.reason = ""
        self.errors: Dict[str, str] = {}
        self.submitting = False
        self.submit_error: Optional[str] = None
        self.navigate_to: Optional[str] = None

    def load_contact(self) -> bool:
        """Prefill the form with the contact being changed; go back to the directory if it cannot load."""
        if self.contact_id is None:
            return True
        try:
            self.contact = self.contacts.get_contact(self.contact_id)
        except ApiError as e:
            logger.error("Failed to load contact %s: %s", self.contact_id, e.message)
            self.navigate_to = CONTACTS_PATH
            return False
        self.suggested_changes = self.contact.model_dump(
            mode="json",
            exclude={"id", "is_active", "created_at", "updated_at"},
        )
        return True

    def validate(self) -> Dict[str, str]:
        errors = {}
        if not self.reason.strip():
            errors["reason"] = "Please provide a reason for this suggestion"
        if self.suggestion_type != SuggestionType.ADD and self.contact_id is None:
            errors["contact_id"] = "Choose the contact this suggestion is about"
        if self.suggestion_type != SuggestionType.DELETE and not any(self.suggested_changes.values()):
            errors["suggested_changes"] = "Suggest at least one change"
        if self.suggestion_type == SuggestionType.ADD:
            for field in ("institute_name", "individual_name"):
                if not self.suggested_changes.get(field):
                    errors[field] = "Required for a new contact"
        return errors

    def submit(self) -> bool:
        """Validate, then send exactly one create request. Nothing is sent when validation fails."""
        if self.submitting:
            return False
        self.errors = self.validate()
        if self.errors:
            return False

        changes = {} if self.suggestion_type == SuggestionType.DELETE else {
            k: v for k, v in self.suggested_changes.items() if v not in (None, "")
        }
        self.submitting = True
        self.submit_error = None
        try:
            self.contacts.create_suggestion(
                self.suggestion_type.value,
                self.reason.strip(),
                suggested_changes=changes,
                contact_id=self.contact_id if self.suggestion_type != SuggestionType.ADD else None,
            )
        except ApiError as e:
            logger.error("Failed to create suggestion: %s", e.message)
            self.submit_error = "Failed to submit suggestion. Please try again."
            return False
        finally:
            self.submitting = False

        self.navigate_to = SUGGESTIONS_PATH
        return True


class MemoListScreen(FilteredListScreen):
    workflow = MEMO_WORKFLOW

    def __init__(self, memos: MemoService, auth: AuthContext, department: Optional[str] = None):
        super().__init__(auth)
        self.memos = memos
        self.department = department

    def _fetch(self, status: Optional[str]) -> List[MemoResponse]:
        return self.memos.get_all(status=status, department=self.department)

    def badge(self, memo: MemoResponse) -> Badge:
        return memo_status_badge(memo.status)


class MemoFormScreen:
    """Create a memo, or edit one of the actor's own drafts."""

    text_fields = ("title", "department", "body", "signature")

    def __init__(self, memos: MemoService, auth: AuthContext, memo_id: Optional[int] = None):
        self.memos = memos
        self.auth = auth
        self.memo_id = memo_id
        self.title = ""
        self.department = ""
        self.body = ""
        self.signature = ""
        self.memo_type = MemoType.GENERAL
        self.priority_level = PriorityLevel.NORMAL
        self.recipients: List[str] = []
        self.tags: List[str] = []
        self.errors: Dict[str, str] = {}
        self.submitting = False
        self.submit_error: Optional[str] = None
        self.navigate_to: Optional[str] = None

    @property
    def editing(self) -> bool:
        return self.memo_id is not None

    def load(self) -> bool:
        """Prefill from the draft being edited; anything but the actor's own draft goes back to the list."""
        if not self.editing:
            return True
        try:
            memo = self.memos.get_by_id(self.memo_id)
        except ApiError as e:
            logger.error("Failed to load memo %s: %s", self.memo_id, e.message)
            self.navigate_to = MEMOS_PATH
            return False
        if memo.status != MemoStatus.DRAFT.value or memo.created_by != self.auth.actor_id:
            logger.warning("Memo %s is not an editable draft for %s", memo.id, self.auth.actor_id)
            self.navigate_to = f"{MEMOS_PATH}/{memo.id}"
            return False
        for field in self.text_fields:
            setattr(self, field, getattr(memo, field) or "")
        self.memo_type = MemoType(memo.memo_type)
        self.priority_level = PriorityLevel(memo.priority_level)
        self.recipients = list(memo.recipients)
        self.tags = list(memo.tags)
        return True

    def validate(self) -> Dict[str, str]:
        errors = {}
        for field in ("title", "department", "body"):
            if not getattr(self, field).strip():
                errors[field] = "Required"
        if len(self.title.strip()) > 200:
            errors["title"] = "At most 200 characters"
        return errors

    def payload(self) -> Dict:
        return {
            "title": self.title.strip(),
            "department": self.department.strip(),
            "body": self.body.strip(),
            "memo_type": MemoType(self.memo_type).value,
            "priority_level": PriorityLevel(self.priority_level).value,
            "recipients": [r.strip() for r in self.recipients if r.strip()],
            "tags": [t.strip() for t in self.tags if t.strip()],
            "signature": self.signature.strip() or None,
        }

    def submit(self) -> Optional[MemoResponse]:
        """Validate, then send exactly one create or update request."""
        if self.submitting:
            return None
        self.errors = self.validate()
        if self.errors:
            return None

        self.submitting = True
        self.submit_error = None
        try:
            if self.editing:
                memo = self.memos.update(self.memo_id, self.payload())
            else:
                memo = self.memos.create(self.payload())
        except ApiError as e:
            logger.error("Failed to save memo: %s", e.message)
            self.submit_error = f"Failed to save memo: {e.message}"
            return None
        finally:
            self.submitting = False

        self.navigate_to = f"{MEMOS_PATH}/{memo.id}"
        return memo


class MemoWorkflowScreen:
    """One memo: its status, the actions this user may take, and its review history."""

    def __init__(self, memos: MemoService, auth: AuthContext, memo: MemoResponse):
        self.memos = memos
        self.auth = auth
        self.memo = memo
        self.history: Optional[MemoHistoryResponse] = None
        self.history_error: Optional[str] = None
        self.pending_action: Optional[MemoAction] = None
        self.comment = ""
        self.busy = False
        self.error: Optional[str] = None
        self.deleted = False

    @property
    def badge(self) -> Badge:
        return memo_status_badge(self.memo.status)

    @property
    def can_edit(self) -> bool:
        return self.memo.status == MemoStatus.DRAFT.value and self.memo.created_by == self.auth.actor_id

    def sync(self, memo: MemoResponse) -> bool:
        """
        Adopt a fresher copy of the same memo, e.g. from a list re-fetch.

        Older or equal versions are ignored. An open action the new status no
        longer allows is dropped, and the cached history is discarded.
        """
        if memo.id != self.memo.id or memo.version <= self.memo.version:
            return False
        self.memo = memo
        self.history = None
        if self.pending_action is not None and self.pending_action not in self.available_actions():
            self.pending_action = None
            self.comment = ""
            self.error = None
        return True

    def refresh(self) -> None:
        try:
            memo = self.memos.get_by_id(self.memo.id)
        except ApiError as e:
            logger.error("Failed to reload memo %s: %s", self.memo.id, e.message)
            self.error = e.message
            return
        self.sync(memo)

    def delete(self) -> bool:
        """Administrative delete of the memo shown."""
        if not self.auth.is_admin or self.busy:
            return False
        try:
            self.memos.delete(self.memo.id)
        except ApiError as e:
            logger.error("Failed to delete memo %s: %s", self.memo.id, e.message)
            self.error = e.message
            return False
        self.deleted = True
        self.pending_action = None
        return True

    def available_actions(self) -> List[MemoAction]:
        return MEMO_WORKFLOW.allowed_actions(self.memo.status, self.auth, self.memo.created_by)

    def load_history(self) -> None:
        try:
            self.history = self.memos.get_workflow_history(self.memo.id)
            self.history_error = None
        except ApiError as e:
            logger.error("Failed to load workflow history for memo %s: %s", self.memo.id, e.message)
            self.history_error = e.message

    def open_action(self, action: MemoAction) -> bool:
        action = MemoAction(action)
        if action not in self.available_actions():
            return False
        self.pending_action = action
        self.comment = ""
        self.error = None
        return True

    def cancel_action(self) -> None:
        if self.busy:
            return
        self.pending_action = None
        self.comment = ""
        self.error = None

    def comment_required(self) -> bool:
        transition = MEMO_WORKFLOW.transition_for(self.memo.status, self.pending_action)
        return bool(transition and transition.comment_required)

    def confirm(self) -> Optional[MemoResponse]:
        """
        Send the pending action. A missing required comment stops here without a request.

        On failure the dialog stays open and self.memo is untouched.
        """
        if self.pending_action is None or self.busy:
            return None
        comment = self.comment.strip()
        if self.comment_required() and not comment:
            self.error = "A comment is required for this action"
            return None

        self.busy = True
        self.error = None
        try:
            updated = self.memos.act(
                self.memo.id,
                self.pending_action.value,
                comment=comment or None,
                expected_version=self.memo.version,
            )
        except ApiError as e:
            logger.error("Failed to %s memo %s: %s", self.pending_action.value, self.memo.id, e.message)
            self.error = e.message
            return None
        finally:
            self.busy = False

        self.memo = updated
        self.pending_action = None
        self.comment = ""
        self.load_history()
        return updated

    def submit_to_desk_head(self) -> Optional[MemoResponse]:
        """Submitting a draft needs no dialog."""
        if not self.open_action(MemoAction.SUBMIT):
            return None
        return self.confirm()


class WorkflowDashboardScreen:
    """The desk-head and LEO queues side by side."""

    def __init__(self, memos: MemoService):
        self.fetcher = PendingQueueFetcher(memos)
        self.loading = False
        self.snapshot = QueueSnapshot()

    def load(self) -> None:
        self.loading = True
        try:
            self.snapshot = self.fetcher.fetch()
        finally:
            self.loading = False

    @property
    def state(self) -> str:
        if self.loading:
            return LOADING
        if self.snapshot.failed:
            return FAILED
        if not self.snapshot.desk_head and not self.snapshot.leo:
            return EMPTY
        return READY
