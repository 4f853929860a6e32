"""Streamlit page shell hosting the workflow screens.

Run with: streamlit run officedesk/dashboard/app.py
"""
import streamlit as st

from officedesk.auth import AuthContext
from officedesk.config import API_BASE, DASHBOARD_ACTOR_ID, DASHBOARD_ACTOR_ROLE
from officedesk.dashboard.badges import memo_status_badge, pending_queues
from officedesk.dashboard.client import ApiClient
from officedesk.dashboard.screens import (
    ALL_STATUSES,
    FAILED,
    LOADING,
    MEMOS_PATH,
    ContactDirectoryScreen,
    MemoFormScreen,
    MemoListScreen,
    MemoWorkflowScreen,
    SuggestionFormScreen,
    SuggestionListScreen,
    WorkflowDashboardScreen,
    page_for,
)
from officedesk.dashboard.services import ContactService, MemoService
from officedesk.models.enums import (
    ContactPosition,
    ContactType,
    MemoStatus,
    MemoType,
    PriorityLevel,
    SuggestionDecision,
    SuggestionStatus,
    SuggestionType,
)

st.set_page_config(page_title="Office Desk", layout="wide")

PAGES = [
    "Contact Directory",
    "Contact Suggestions",
    "Suggest a Contact",
    "Memos",
    "Write a Memo",
    "Memo Workflow",
]


def _session():
    """Auth context and services, resolved once per browser session."""
    if "auth" not in st.session_state:
        auth = AuthContext.from_values(DASHBOARD_ACTOR_ID, DASHBOARD_ACTOR_ROLE)
        client = ApiClient(auth, base_url=API_BASE)
        st.session_state["auth"] = auth
        st.session_state["contacts"] = ContactService(client)
        st.session_state["memos"] = MemoService(client)
    return st.session_state["auth"], st.session_state["contacts"], st.session_state["memos"]


def _screen(key, factory):
    if key not in st.session_state:
        screen = factory()
        if hasattr(screen, "load"):
            screen.load()
        st.session_state[key] = screen
    return st.session_state[key]


def _navigate(path, *stale):
    """Follow a screen's navigate_to on the next run, dropping the cached screens it invalidates."""
    for key in stale:
        st.session_state.pop(key, None)
    target = page_for(path)
    if target:
        st.session_state["next_page"] = target
    if path and path.startswith(MEMOS_PATH + "/"):
        st.session_state["focus_memo"] = int(path.rsplit("/", 1)[1])
    st.rerun()


def _choice(label, enum, current):
    options = [""] + [e.value for e in enum]
    current = getattr(current, "value", current) or ""
    return st.selectbox(label, options, index=options.index(current) if current in options else 0,
                        format_func=lambda v: v.replace("_", " ").title() if v else "-")


def _suggestion_fields(form):
    """Inputs for the contact fields a suggestion can carry."""
    changes = form.suggested_changes
    changes["institute_name"] = st.text_input("Institution *", value=changes.get("institute_name") or "")
    changes["individual_name"] = st.text_input("Individual *", value=changes.get("individual_name") or "")
    changes["position"] = _choice("Position", ContactPosition, changes.get("position"))
    changes["organization_type"] = _choice("Organization type", ContactType, changes.get("organization_type"))
    changes["phone_number"] = st.text_input("Phone", value=changes.get("phone_number") or "")
    changes["email_address"] = st.text_input("Email", value=changes.get("email_address") or "")
    changes["region"] = st.text_input("Region", value=changes.get("region") or "")


def _form_messages(form):
    for field, message in form.errors.items():
        st.error(f"{field}: {message}")
    if form.submit_error:
        st.error(form.submit_error)


auth, contacts, memos = _session()

if "next_page" in st.session_state:
    st.session_state["page"] = st.session_state.pop("next_page")

st.sidebar.header("Office Desk")
st.sidebar.caption(f"Signed in as {auth.actor_id} ({auth.role.value})")
page = st.sidebar.radio("Go to", PAGES, key="page")


if page == "Contact Directory":
    directory = _screen("contact_directory", lambda: ContactDirectoryScreen(contacts, auth))
    st.markdown("### Contact Directory")

    if directory.statistics is not None:
        stats = directory.statistics
        cols = st.columns(3)
        cols[0].metric("Contacts", stats.total_contacts)
        cols[1].metric("Active", stats.active_contacts)
        cols[2].metric("Pending Suggestions", stats.pending_suggestions)

    org_options = [""] + [o.value for o in ContactType]
    search_col, org_col = st.columns([3, 1])
    search = search_col.text_input("Search", value=directory.search)
    org = org_col.selectbox("Organization type", org_options,
                            index=org_options.index(directory.organization_type or ""),
                            format_func=lambda v: v.replace("_", " ").title() if v else "All")
    if search != directory.search or (org or None) != directory.organization_type:
        directory.set_search(search, org)

    if directory.state == LOADING:
        st.info("Loading...")
    elif directory.state == FAILED:
        st.error(f"Could not load contacts: {directory.load_error}. Try again.")
    elif not directory.contacts_on_page:
        st.info("No contacts found.")

    for contact in directory.contacts_on_page:
        with st.container(border=True):
            position = contact.position.value.replace("_", " ").title()
            st.markdown(f"**{contact.institute_name}** | {contact.individual_name} | {position}")
            st.caption(" | ".join(v for v in (contact.phone_number, contact.email_address, contact.region) if v))
            change_col, remove_col = st.columns(2)
            for column, label, kind in ((change_col, "Suggest change", SuggestionType.UPDATE),
                                        (remove_col, "Suggest removal", SuggestionType.DELETE)):
                if column.button(label, key=f"{kind.value}-{contact.id}"):
                    form = SuggestionFormScreen(contacts, contact.id, kind)
                    form.load_contact()
                    st.session_state["contact_change"] = form

    if directory.result is not None:
        prev_col, info_col, next_col = st.columns([1, 2, 1])
        if prev_col.button("Previous", disabled=not directory.has_previous):
            directory.previous_page()
            st.rerun()
        info_col.caption(f"Page {directory.page} of {max(directory.result.total_pages, 1)}")
        if next_col.button("Next", disabled=not directory.has_next):
            directory.next_page()
            st.rerun()

    form = st.session_state.get("contact_change")
    if form is not None:
        verb = "Change" if form.suggestion_type == SuggestionType.UPDATE else "Removal"
        st.markdown(f"#### Suggest {verb}: {form.contact.institute_name if form.contact else form.contact_id}")
        if form.contact is None:
            st.error("Could not load this contact.")
        elif form.suggestion_type == SuggestionType.UPDATE:
            _suggestion_fields(form)
        form.reason = st.text_area("Reason *", value=form.reason)
        submit_col, cancel_col = st.columns(2)
        if submit_col.button("Submitting..." if form.submitting else "Submit Suggestion",
                             disabled=form.submitting or form.contact is None):
            if form.submit():
                _navigate(form.navigate_to, "contact_change", "suggestion_list", "contact_directory")
        if cancel_col.button("Cancel", key="cancel-contact-change"):
            st.session_state.pop("contact_change", None)
            st.rerun()
        _form_messages(form)


elif page == "Contact Suggestions":
    screen = _screen("suggestion_list", lambda: SuggestionListScreen(contacts, auth))
    st.markdown("### Contact Suggestions")
    st.caption(screen.subtitle)

    options = [ALL_STATUSES] + [s.value for s in SuggestionStatus]
    chosen = st.selectbox("Filter by Status", options, index=options.index(screen.status_filter),
                          format_func=lambda v: v.title() if v else "All Status")
    if chosen != screen.status_filter:
        screen.set_filter(chosen)

    if screen.state == LOADING:
        st.info("Loading...")
    elif screen.empty_message():
        (st.error if screen.state == FAILED else st.info)(screen.empty_message())

    for suggestion in screen.items:
        card = screen.card(suggestion)
        with st.container(border=True):
            st.markdown(f"**{card['type_badge'].label}** | **{card['status_badge'].label}** | {card['created_at']:%b %d, %Y %H:%M}")
            cols = st.columns(2)
            cols[0].markdown("Suggested Changes")
            cols[0].json(card["suggested_changes"])
            if card["existing_data"]:
                cols[1].markdown("Current Data")
                cols[1].json(card["existing_data"])
            st.markdown(f"**Reason:** {card['reason']}")
            st.caption(f"Submitted by {card['submitted_by']}")
            if card["admin_comment"]:
                st.markdown(f"**Admin Comment:** {card['admin_comment']}")
                if card["reviewed_by"]:
                    st.caption(f"Reviewed by {card['reviewed_by']}")
            if card["show_review"] and st.button("Review", key=f"review-{card['id']}"):
                screen.open_review(suggestion)
            if card["show_delete"] and st.button("Delete", key=f"delete-{card['id']}"):
                if screen.delete(suggestion):
                    st.rerun()

    if screen.selected is None and screen.review_error:
        st.error(screen.review_error)

    if screen.selected is not None:
        st.markdown("#### Review Suggestion")
        screen.review_comment = st.text_area("Comment (optional)", value=screen.review_comment)
        approve_col, reject_col, cancel_col = st.columns(3)
        if approve_col.button(screen.button_label(SuggestionDecision.APPROVE), disabled=screen.reviewing):
            screen.review(SuggestionDecision.APPROVE)
            st.rerun()
        if reject_col.button(screen.button_label(SuggestionDecision.REJECT), disabled=screen.reviewing):
            screen.review(SuggestionDecision.REJECT)
            st.rerun()
        if cancel_col.button("Cancel"):
            screen.cancel_review()
            st.rerun()
        if screen.review_error:
            st.error(screen.review_error)




elif page == "Suggest a Contact":
    st.markdown("### Suggest a New Contact")
    form = _screen("suggestion_form", lambda: SuggestionFormScreen(contacts, suggestion_type=SuggestionType.ADD))
    _suggestion_fields(form)
    form.reason = st.text_area("Reason *", value=form.reason)
    if st.button("Submitting..." if form.submitting else "Submit Suggestion", disabled=form.submitting):
        if form.submit():
            _navigate(form.navigate_to, "suggestion_form", "suggestion_list")
    _form_messages(form)


elif page == "Memos":
    screen = _screen("memo_list", lambda: MemoListScreen(memos, auth))
    st.markdown("### Memos")
    options = [ALL_STATUSES] + [s.value for s in MemoStatus]
    filter_col, refresh_col = st.columns([3, 1])
    chosen = filter_col.selectbox("Filter by Status", options, index=options.index(screen.status_filter),
                                  format_func=lambda v: v.replace("_", " ").title() if v else "All Status")
    if chosen != screen.status_filter:
        screen.set_filter(chosen)
    if refresh_col.button("Refresh"):
        screen.load()

    if screen.state == LOADING:
        st.info("Loading...")
    elif screen.empty_message():
        (st.error if screen.state == FAILED else st.info)(screen.empty_message())

    focus = st.session_state.get("focus_memo")
    for memo in screen.items:
        detail = _screen(f"memo-{memo.id}", lambda: MemoWorkflowScreen(memos, auth, memo))
        detail.sync(memo)
        memo = detail.memo
        with st.expander(f"{memo.title} [{screen.badge(memo).label}]", expanded=memo.id == focus):
            st.caption(f"{memo.department} | {memo.memo_type.value.title()} | {memo.priority_level.value.title()}"
                       f" | by {memo.created_by}")
            st.write(memo.body)
            queues = pending_queues(memo.status)
            if queues:
                st.caption("Waiting on: " + ", ".join(role.value for role in queues))
            for action in detail.available_actions():
                if st.button(action.value.title(), key=f"{memo.id}-{action.value}"):
                    detail.open_action(action)
            if detail.can_edit and st.button("Edit", key=f"{memo.id}-edit"):
                st.session_state["memo_form"] = MemoFormScreen(memos, auth, memo.id)
                st.session_state["memo_form"].load()
                st.session_state["next_page"] = "Write a Memo"
                st.rerun()
            if auth.is_admin and st.button("Delete", key=f"{memo.id}-delete"):
                if detail.delete():
                    st.session_state.pop(f"memo-{memo.id}", None)
                    screen.load()
                    st.rerun()
            if detail.pending_action is not None:
                detail.comment = st.text_area(
                    "Comment *" if detail.comment_required() else "Comment",
                    value=detail.comment, key=f"{memo.id}-comment",
                )
                confirm_col, cancel_col = st.columns(2)
                if confirm_col.button("Processing..." if detail.busy else "Confirm", key=f"{memo.id}-confirm",
                                      disabled=detail.busy):
                    if detail.confirm() is not None:
                        screen.replace(detail.memo)
                        st.rerun()
                if cancel_col.button("Cancel", key=f"{memo.id}-cancel"):
                    detail.cancel_action()
                    st.rerun()
            if detail.error:
                st.error(detail.error)
            if st.checkbox("Show history", key=f"{memo.id}-history"):
                if detail.history is None:
                    detail.load_history()
                if detail.history_error:
                    st.error(detail.history_error)
                for entry in detail.history.entries if detail.history else []:
                    st.caption(f"{entry.created_at:%b %d, %Y %H:%M} {entry.actor_id} ({entry.actor_role.value}): "
                               f"{entry.from_status} -> {entry.to_status}. {entry.comment or ''}")


elif page == "Write a Memo":
    form = _screen("memo_form", lambda: MemoFormScreen(memos, auth))
    if form.navigate_to:
        # The draft could not be opened for editing
        _navigate(form.navigate_to, "memo_form")
    st.markdown("### Edit Memo" if form.editing else "### New Memo")
    form.title = st.text_input("Title *", value=form.title)
    form.department = st.text_input("Department *", value=form.department)
    type_col, priority_col = st.columns(2)
    form.memo_type = type_col.selectbox("Type", list(MemoType), index=list(MemoType).index(MemoType(form.memo_type)),
                                        format_func=lambda v: v.value.title())
    form.priority_level = priority_col.selectbox(
        "Priority", list(PriorityLevel), index=list(PriorityLevel).index(PriorityLevel(form.priority_level)),
        format_func=lambda v: v.value.title(),
    )
    form.body = st.text_area("Body *", value=form.body, height=200)
    form.recipients = st.text_input("Recipients (comma separated)", value=", ".join(form.recipients)).split(",")
    form.tags = st.text_input("Tags (comma separated)", value=", ".join(form.tags)).split(",")
    form.signature = st.text_input("Signature", value=form.signature)
    save_col, cancel_col = st.columns(2)
    if save_col.button("Saving..." if form.submitting else "Save Draft", disabled=form.submitting):
        if form.submit() is not None:
            _navigate(form.navigate_to, "memo_form", "memo_list", f"memo-{form.memo_id}")
    if form.editing and cancel_col.button("Cancel"):
        _navigate(f"{MEMOS_PATH}/{form.memo_id}", "memo_form")
    _form_messages(form)


elif page == "Memo Workflow":
    dashboard = _screen("memo_dashboard", lambda: WorkflowDashboardScreen(memos))
    st.markdown("### Memo Workflow Dashboard")
    if st.button("Refresh"):
        dashboard.load()
    if dashboard.state == FAILED:
        st.error(f"Failed to load pending memos: {dashboard.snapshot.error}")
    left, right = st.columns(2)
    for column, title, queue in (
        (left, "Pending Desk Head Review", dashboard.snapshot.desk_head),
        (right, "Pending LEO Review", dashboard.snapshot.leo),
    ):
        column.markdown(f"#### {title} ({len(queue)})")
        if not queue and dashboard.state != FAILED:
            column.info("Nothing waiting.")
        for memo in queue:
            column.markdown(f"**{memo.title}** | {memo.department} | {memo_status_badge(memo.status).label}")
            if column.button("Open", key=f"open-{memo.id}"):
                _navigate(f"{MEMOS_PATH}/{memo.id}")
