"""
Dashboard screens driven end to end through the API.

The screens talk to the real app via TestClient, so these cover the request
each user action produces and what the screen shows afterwards.
"""
from datetime import datetime

import pytest
import requests

from officedesk.api.schemas import SuggestionResponse
from officedesk.auth import AuthContext
from officedesk.dashboard.client import ApiClient, ApiError
from officedesk.dashboard.screens import (
    CONTACTS_PATH,
    EMPTY,
    FAILED,
    LOADING,
    MEMOS_PATH,
    READY,
    SUGGESTIONS_PATH,
    ContactDirectoryScreen,
    MemoFormScreen,
    MemoListScreen,
    MemoWorkflowScreen,
    SuggestionFormScreen,
    SuggestionListScreen,
    page_for,
)
from officedesk.dashboard.services import ContactService, MemoService
from officedesk.models.domain import Contact
from officedesk.models.enums import (
    ActorRole,
    ContactPosition,
    ContactType,
    MemoAction,
    SuggestionDecision,
    SuggestionType,
)


class DownSession:
    """A session whose server is unreachable."""

    def __init__(self):
        self.calls = 0

    def request(self, method, url, **kwargs):
        self.calls += 1
        raise requests.ConnectionError("connection refused")


def _offline(auth):
    session = DownSession()
    return ApiClient(auth, base_url="http://testserver/api", session=session), session


def _suggestion(status, created_by="staff_1", **overrides):
    data = {
        "id": 1,
        "suggestion_type": "UPDATE",
        "status": status,
        "contact_id": 1,
        "suggested_changes": {"phone_number": "1"},
        "reason": "needs update",
        "created_by": created_by,
        "version": 1,
        "created_at": datetime(2024, 1, 1, 9, 0),
        "updated_at": datetime(2024, 1, 1, 9, 0),
    }
    data.update(overrides)
    return SuggestionResponse.model_validate(data)


class TestSuggestionReview:
    def test_admin_rejects_with_comment(self, dashboard, admin, pending_suggestion):
        client, session = dashboard(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.load()
        assert screen.ids() == [pending_suggestion.id]

        assert screen.open_review(screen.items[0]) is True
        screen.review_comment = "duplicate entry"
        updated = screen.review(SuggestionDecision.REJECT)

        patches = session.calls_to("PATCH")
        assert len(patches) == 1
        _, url, body = patches[0]
        assert url.endswith(f"/contacts/suggestions/{pending_suggestion.id}/review")
        assert body["decision"] == "reject"
        assert body["comment"] == "duplicate entry"
        assert body["expected_version"] == 1

        assert updated.status == "REJECTED"
        assert screen.selected is None
        card = screen.card(screen.items[0])
        assert card["status_badge"].label == "Rejected"
        assert card["admin_comment"] == "duplicate entry"
        assert card["show_review"] is False

    def test_failed_review_leaves_item_untouched(self, dashboard, admin, pending_suggestion):
        client, _ = dashboard(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.load()
        screen.open_review(screen.items[0])

        # Someone else decides first
        other_client, _ = dashboard(AuthContext("admin_2", ActorRole.ADMIN))
        ContactService(other_client).review_suggestion(pending_suggestion.id, "approve")

        assert screen.review(SuggestionDecision.APPROVE) is None
        assert screen.review_error
        assert screen.selected is not None
        assert screen.items[0].status == "PENDING"
        assert screen.reviewing is False

    def test_staff_gets_no_review_control(self, dashboard, staff, pending_suggestion):
        client, _ = dashboard(staff)
        screen = SuggestionListScreen(ContactService(client), staff)
        screen.load()

        assert screen.subtitle == "View your contact suggestions"
        assert screen.can_act(screen.items[0]) is False
        assert screen.open_review(screen.items[0]) is False

    def test_button_label_while_in_flight(self, admin):
        client, _ = _offline(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.reviewing = True
        assert screen.button_label(SuggestionDecision.APPROVE) == "Approving..."
        screen.reviewing = False
        assert screen.button_label(SuggestionDecision.REJECT) == "Reject"


class TestListStates:
    def test_refetch_keeps_order(self, dashboard, admin, staff, sample_contact):
        staff_client, _ = dashboard(staff)
        contacts = ContactService(staff_client)
        for reason in ("first", "second", "third"):
            contacts.create_suggestion("UPDATE", reason, {"notes": reason}, contact_id=sample_contact.id)

        client, _ = dashboard(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.load()
        first = screen.ids()
        screen.load()

        assert screen.ids() == first
        assert [s.reason for s in screen.items] == ["third", "second", "first"]

    def test_empty_and_filtered_messages(self, dashboard, staff):
        client, _ = dashboard(staff)
        screen = SuggestionListScreen(ContactService(client), staff)
        screen.load()
        assert screen.state == EMPTY
        assert screen.empty_message() == "No suggestions found."

        screen.set_filter("APPROVED")
        assert "Clear the filter" in screen.empty_message()

    def test_failed_load_reads_differently(self, staff):
        client, _ = _offline(staff)
        screen = SuggestionListScreen(ContactService(client), staff)
        screen.load()

        assert screen.state == FAILED
        assert screen.items == []
        assert screen.empty_message().startswith("Could not load suggestions")

    def test_memo_list_reports_loading(self, staff):
        client, _ = _offline(staff)
        screen = MemoListScreen(MemoService(client), staff)
        screen.loading = True
        assert screen.state == LOADING
        assert screen.empty_message() is None

        screen.load()
        assert screen.loading is False
        assert screen.state == FAILED

    @pytest.mark.parametrize("status", ["APPROVED", "REJECTED"])
    def test_terminal_items_have_no_controls_for_any_role(self, status):
        for role in (ActorRole.STAFF, ActorRole.ADMIN, ActorRole.DESK_HEAD, ActorRole.LEO):
            auth = AuthContext("staff_1", role)
            client, _ = _offline(auth)
            screen = SuggestionListScreen(ContactService(client), auth)
            assert screen.can_act(_suggestion(status)) is False

    def test_unknown_status_renders_without_controls(self, admin):
        client, _ = _offline(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        suggestion = _suggestion("ESCALATED")

        assert screen.card(suggestion)["status_badge"].label == "Unknown"
        assert screen.can_act(suggestion) is False


class TestSuggestionForm:
    def test_update_suggestion_submits_once_and_navigates(self, dashboard, staff, sample_contact):
        client, session = dashboard(staff)
        form = SuggestionFormScreen(ContactService(client), contact_id=sample_contact.id)
        assert form.load_contact() is True
        assert form.suggested_changes["institute_name"] == "St. Paul's Hospital"

        form.suggested_changes["phone_number"] = "+251-11-333-3333"
        form.reason = "needs update"
        assert form.submit() is True

        posts = session.calls_to("POST")
        assert len(posts) == 1
        assert posts[0][1].endswith("/contacts/suggestions")
        assert posts[0][2]["reason"] == "needs update"
        assert posts[0][2]["suggestion_type"] == "UPDATE"
        assert form.navigate_to == SUGGESTIONS_PATH

    def test_blank_reason_sends_nothing(self, dashboard, staff):
        client, session = dashboard(staff)
        form = SuggestionFormScreen(ContactService(client), suggestion_type=SuggestionType.ADD)
        form.suggested_changes = {"institute_name": "Clinic", "individual_name": "Sr. Meron"}
        form.reason = "   "

        assert form.submit() is False
        assert "reason" in form.errors
        assert session.calls == []
        assert form.navigate_to is None

    def test_add_needs_both_names(self, dashboard, staff):
        client, session = dashboard(staff)
        form = SuggestionFormScreen(ContactService(client))
        form.suggested_changes = {"institute_name": "Clinic"}
        form.reason = "new clinic"

        assert form.submit() is False
        assert form.suggestion_type == SuggestionType.ADD
        assert "individual_name" in form.errors
        assert session.calls == []

    def test_submit_failure_stays_on_form(self, staff):
        client, session = _offline(staff)
        form = SuggestionFormScreen(ContactService(client))
        form.suggested_changes = {"institute_name": "Clinic", "individual_name": "Sr. Meron"}
        form.reason = "new clinic"

        assert form.submit() is False
        assert session.calls == 1
        assert form.submit_error == "Failed to submit suggestion. Please try again."
        assert form.navigate_to is None
        assert form.submitting is False

    def test_missing_contact_goes_back_to_directory(self, dashboard, staff):
        client, _ = dashboard(staff)
        form = SuggestionFormScreen(ContactService(client), contact_id=999)

        assert form.load_contact() is False
        assert form.navigate_to == CONTACTS_PATH


class TestMemoWorkflow:
    def _draft(self, dashboard, staff):
        client, _ = dashboard(staff)
        memos = MemoService(client)
        memo = memos.create({"title": "Holiday notice", "department": "HR", "body": "Office closed Monday."})
        return memos, memo

    def test_route_through_both_reviewers(self, dashboard, staff, desk_head, leo):
        memos, memo = self._draft(dashboard, staff)
        author_screen = MemoWorkflowScreen(memos, staff, memo)
        assert author_screen.available_actions() == [MemoAction.SUBMIT]
        memo = author_screen.submit_to_desk_head()
        assert memo.status == "PENDING_DESK_HEAD"
        assert author_screen.available_actions() == []

        client, session = dashboard(desk_head)
        screen = MemoWorkflowScreen(MemoService(client), desk_head, memo)
        assert screen.open_action(MemoAction.FORWARD) is True
        assert screen.comment_required() is True

        # Required comment missing: stopped before any request
        assert screen.confirm() is None
        assert screen.error == "A comment is required for this action"
        assert session.calls == []

        screen.comment = "Checked with HR"
        memo = screen.confirm()
        assert memo.status == "PENDING_LEO"
        assert screen.pending_action is None
        assert screen.history.desk_head_review.comment == "Checked with HR"

        leo_client, _ = dashboard(leo)
        leo_screen = MemoWorkflowScreen(MemoService(leo_client), leo, memo)
        assert set(leo_screen.available_actions()) == {MemoAction.APPROVE, MemoAction.REJECT}
        leo_screen.open_action(MemoAction.APPROVE)
        leo_screen.comment = "Publish"
        assert leo_screen.confirm().status == "APPROVED"
        assert leo_screen.badge.label == "Approved"
        assert leo_screen.available_actions() == []

    def test_failed_action_keeps_memo_and_dialog(self, dashboard, staff, desk_head):
        memos, memo = self._draft(dashboard, staff)
        memo = MemoWorkflowScreen(memos, staff, memo).submit_to_desk_head()

        client, _ = dashboard(desk_head)
        screen = MemoWorkflowScreen(MemoService(client), desk_head, memo)
        screen.open_action(MemoAction.REJECT)
        screen.comment = "Wrong format"

        # Another desk head forwards it first
        other_client, _ = dashboard(AuthContext("desk_2", ActorRole.DESK_HEAD))
        MemoService(other_client).act(memo.id, "forward", comment="ok")

        assert screen.confirm() is None
        assert screen.error
        assert screen.memo.status == "PENDING_DESK_HEAD"
        assert screen.pending_action == MemoAction.REJECT
        assert screen.busy is False

    def test_other_staff_cannot_submit(self, dashboard, staff):
        memos, memo = self._draft(dashboard, staff)
        other = AuthContext("staff_2", ActorRole.STAFF)
        client, session = dashboard(other)
        screen = MemoWorkflowScreen(MemoService(client), other, memo)

        assert screen.submit_to_desk_head() is None
        assert session.calls == []

    def test_memo_list_filter_and_badges(self, dashboard, staff):
        memos, memo = self._draft(dashboard, staff)
        screen = MemoListScreen(memos, staff)
        screen.load()
        assert screen.state == READY
        assert screen.badge(screen.items[0]).label == "Draft"

        screen.set_filter("PENDING_LEO")
        assert screen.state == EMPTY


class TestSuggestionDelete:
    def test_admin_deletes_and_card_disappears(self, dashboard, admin, pending_suggestion):
        client, session = dashboard(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.load()
        assert screen.card(screen.items[0])["show_delete"] is True

        assert screen.delete(screen.items[0]) is True

        deletes = session.calls_to("DELETE")
        assert len(deletes) == 1
        assert deletes[0][1].endswith(f"/contacts/suggestions/{pending_suggestion.id}")
        assert screen.items == []
        screen.load()
        assert screen.state == EMPTY

    def test_staff_cannot_delete(self, dashboard, staff, pending_suggestion):
        client, session = dashboard(staff)
        screen = SuggestionListScreen(ContactService(client), staff)
        screen.load()
        assert screen.card(screen.items[0])["show_delete"] is False

        assert screen.delete(screen.items[0]) is False
        assert session.calls_to("DELETE") == []
        assert screen.ids() == [pending_suggestion.id]

    def test_failed_delete_keeps_the_card(self, admin):
        client, _ = _offline(admin)
        screen = SuggestionListScreen(ContactService(client), admin)
        screen.items = [_suggestion("PENDING")]

        assert screen.delete(screen.items[0]) is False
        assert screen.ids() == [1]
        assert screen.review_error.startswith("Could not reach the server")


class TestContactDirectory:
    def _add_contacts(self, db_session, count):
        for i in range(count):
            db_session.add(Contact(
                institute_name=f"Health Center {i}",
                individual_name=f"Sr. Hana {i}",
                position=ContactPosition.HEAD,
                organization_type=ContactType.REGIONAL_HEALTH_BUREAU,
            ))
        db_session.commit()

    def test_load_with_statistics_and_search(self, dashboard, staff, sample_contact):
        client, _ = dashboard(staff)
        screen = ContactDirectoryScreen(ContactService(client), staff)
        screen.load()

        assert screen.state == READY
        assert [c.id for c in screen.contacts_on_page] == [sample_contact.id]
        assert screen.statistics.total_contacts == 1

        screen.set_search("no such hospital")
        assert screen.state == EMPTY
        assert screen.page == 1

        screen.set_search("paul")
        assert [c.institute_name for c in screen.contacts_on_page] == ["St. Paul's Hospital"]

    def test_pagination(self, dashboard, staff, db_session):
        self._add_contacts(db_session, 3)
        client, session = dashboard(staff)
        screen = ContactDirectoryScreen(ContactService(client), staff, limit=2)
        screen.load()
        assert len(screen.contacts_on_page) == 2
        assert screen.has_next is True
        assert screen.has_previous is False

        screen.next_page()
        assert screen.page == 2
        assert len(screen.contacts_on_page) == 1
        assert screen.has_next is False

        calls = len(session.calls)
        screen.next_page()
        assert screen.page == 2
        assert len(session.calls) == calls

        screen.previous_page()
        assert screen.page == 1

    def test_failed_load(self, staff):
        client, _ = _offline(staff)
        screen = ContactDirectoryScreen(ContactService(client), staff)
        screen.load()

        assert screen.state == FAILED
        assert screen.contacts_on_page == []
        assert screen.has_next is False

    def test_suggest_removal_of_a_listed_contact(self, dashboard, staff, sample_contact):
        client, session = dashboard(staff)
        contacts = ContactService(client)
        directory = ContactDirectoryScreen(contacts, staff)
        directory.load()

        form = SuggestionFormScreen(contacts, directory.contacts_on_page[0].id, SuggestionType.DELETE)
        assert form.load_contact() is True
        form.reason = "Hospital closed"
        assert form.submit() is True

        posts = session.calls_to("POST")
        assert len(posts) == 1
        assert posts[0][2]["suggestion_type"] == "DELETE"
        assert posts[0][2]["contact_id"] == sample_contact.id
        assert posts[0][2]["suggested_changes"] == {}
        assert page_for(form.navigate_to) == "Contact Suggestions"


class TestMemoForm:
    def test_create_sends_one_post_and_opens_the_memo(self, dashboard, staff):
        client, session = dashboard(staff)
        form = MemoFormScreen(MemoService(client), staff)
        form.title = " Holiday notice "
        form.department = "HR"
        form.body = "Office closed Monday."
        form.recipients = [" all_staff", "", "hr "]

        memo = form.submit()

        posts = session.calls_to("POST")
        assert len(posts) == 1
        assert posts[0][1].endswith("/memos")
        assert posts[0][2]["title"] == "Holiday notice"
        assert posts[0][2]["signature"] is None
        assert memo.recipients == ["all_staff", "hr"]
        assert memo.status == "DRAFT"
        assert form.navigate_to == f"{MEMOS_PATH}/{memo.id}"
        assert page_for(form.navigate_to) == "Memos"

    def test_missing_body_sends_nothing(self, dashboard, staff):
        client, session = dashboard(staff)
        form = MemoFormScreen(MemoService(client), staff)
        form.title = "Holiday notice"
        form.department = "HR"

        assert form.submit() is None
        assert set(form.errors) == {"body"}
        assert session.calls == []
        assert form.navigate_to is None

    def test_edit_own_draft(self, dashboard, staff, draft_memo):
        client, session = dashboard(staff)
        form = MemoFormScreen(MemoService(client), staff, draft_memo.id)
        assert form.load() is True
        assert form.title == "Quarterly review meeting"
        assert form.recipients == ["all_staff"]

        form.title = "Quarterly review moved"
        memo = form.submit()

        assert session.calls_to("POST") == []
        patches = session.calls_to("PATCH")
        assert len(patches) == 1
        assert patches[0][1].endswith(f"/memos/{draft_memo.id}")
        assert memo.title == "Quarterly review moved"
        assert memo.body == "The quarterly review will be held on Monday."

    def test_other_staff_cannot_open_the_draft(self, dashboard, draft_memo):
        other = AuthContext("staff_2", ActorRole.STAFF)
        client, session = dashboard(other)
        form = MemoFormScreen(MemoService(client), other, draft_memo.id)

        assert form.load() is False
        assert form.navigate_to == f"{MEMOS_PATH}/{draft_memo.id}"
        assert session.calls_to("PATCH") == []

    def test_submitted_memo_is_not_editable(self, dashboard, staff, draft_memo):
        client, _ = dashboard(staff)
        memos = MemoService(client)
        memos.act(draft_memo.id, "submit")

        form = MemoFormScreen(memos, staff, draft_memo.id)
        assert form.load() is False
        assert form.title == ""

    def test_save_failure_stays_on_form(self, staff):
        client, session = _offline(staff)
        form = MemoFormScreen(MemoService(client), staff)
        form.title = "Holiday notice"
        form.department = "HR"
        form.body = "Office closed Monday."

        assert form.submit() is None
        assert session.calls == 1
        assert form.submit_error.startswith("Failed to save memo")
        assert form.navigate_to is None
        assert form.submitting is False


class TestMemoDetailRefresh:
    """The detail screen cached per memo follows newer copies of the memo."""

    def _pending(self, dashboard, staff):
        client, _ = dashboard(staff)
        memos = MemoService(client)
        memo = memos.create({"title": "Holiday notice", "department": "HR", "body": "Office closed Monday."})
        return memos.act(memo.id, "submit")

    def test_newer_copy_replaces_stale_memo_and_drops_dialog(self, dashboard, staff, desk_head):
        memo = self._pending(dashboard, staff)
        client, _ = dashboard(desk_head)
        memos = MemoService(client)
        detail = MemoWorkflowScreen(memos, desk_head, memo)
        assert detail.open_action(MemoAction.FORWARD) is True

        other_client, _ = dashboard(AuthContext("desk_2", ActorRole.DESK_HEAD))
        MemoService(other_client).act(memo.id, "reject", comment="Wrong format")
        fresh = memos.get_by_id(memo.id)

        assert detail.sync(fresh) is True
        assert detail.memo.status == "REJECTED"
        assert detail.available_actions() == []
        assert detail.pending_action is None
        assert detail.history is None

    def test_older_or_other_copies_are_ignored(self, dashboard, staff, desk_head):
        memo = self._pending(dashboard, staff)
        client, _ = dashboard(desk_head)
        detail = MemoWorkflowScreen(MemoService(client), desk_head, memo)
        stale = memo.model_copy(update={"version": memo.version - 1, "status": "DRAFT"})
        other = memo.model_copy(update={"id": memo.id + 1, "version": memo.version + 1})

        assert detail.sync(stale) is False
        assert detail.sync(other) is False
        assert detail.memo.status == "PENDING_DESK_HEAD"
        assert set(detail.available_actions()) == {MemoAction.FORWARD, MemoAction.REJECT}

    def test_refresh_reaches_terminal_state(self, dashboard, staff, desk_head, leo):
        memo = self._pending(dashboard, staff)
        desk_client, _ = dashboard(desk_head)
        memo = MemoService(desk_client).act(memo.id, "forward", comment="Checked")

        leo_client, _ = dashboard(leo)
        memos = MemoService(leo_client)
        detail = MemoWorkflowScreen(memos, leo, memo)
        assert detail.available_actions()

        memos.act(memo.id, "approve", comment="Publish")
        detail.refresh()

        assert detail.memo.status == "APPROVED"
        assert detail.available_actions() == []

    def test_refresh_failure_keeps_memo(self, dashboard, staff):
        memo = self._pending(dashboard, staff)
        client, _ = _offline(staff)
        detail = MemoWorkflowScreen(MemoService(client), staff, memo)

        detail.refresh()

        assert detail.memo == memo
        assert detail.error.startswith("Could not reach the server")

    def test_can_edit_only_own_draft(self, dashboard, staff, draft_memo):
        client, _ = dashboard(staff)
        memos = MemoService(client)
        memo = memos.get_by_id(draft_memo.id)

        assert MemoWorkflowScreen(memos, staff, memo).can_edit is True
        assert MemoWorkflowScreen(memos, AuthContext("staff_2", ActorRole.STAFF), memo).can_edit is False

        detail = MemoWorkflowScreen(memos, staff, memo)
        detail.submit_to_desk_head()
        assert detail.can_edit is False

    def test_admin_delete(self, dashboard, admin, draft_memo):
        client, session = dashboard(admin)
        memos = MemoService(client)
        detail = MemoWorkflowScreen(memos, admin, memos.get_by_id(draft_memo.id))

        assert detail.delete() is True
        assert detail.deleted is True
        assert len(session.calls_to("DELETE")) == 1
        with pytest.raises(ApiError) as exc:
            memos.get_by_id(draft_memo.id)
        assert exc.value.status_code == 404

    def test_staff_cannot_delete(self, dashboard, staff, draft_memo):
        client, session = dashboard(staff)
        memos = MemoService(client)
        detail = MemoWorkflowScreen(memos, staff, memos.get_by_id(draft_memo.id))

        assert detail.delete() is False
        assert detail.deleted is False
        assert session.calls_to("DELETE") == []


class TestPageFor:
    @pytest.mark.parametrize("path, page", [
        (SUGGESTIONS_PATH, "Contact Suggestions"),
        (CONTACTS_PATH, "Contact Directory"),
        ("/contacts/7", "Contact Directory"),
        (MEMOS_PATH, "Memos"),
        ("/memos/5", "Memos"),
        ("/memosx", None),
        (None, None),
    ])
    def test_navigation_targets(self, path, page):
        assert page_for(path) == page
