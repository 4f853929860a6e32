"""
Server-side state machine for contact suggestions and memos.

All status changes go through the workflow tables in officedesk.services.workflow;
this module persists them, appends the review history, applies approved
suggestions to the directory and keeps the audit log.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from officedesk.auth import AuthContext
from officedesk.models.audit import AuditEvent, AuditEventType
from officedesk.models.domain import Contact, ContactSuggestion, Memo, ReviewEntry
from officedesk.models.enums import (
    ActorRole,
    ContactPosition,
    ContactType,
    MemoStatus,
    SuggestionDecision,
    SuggestionStatus,
    SuggestionType,
)
from officedesk.services.workflow import (
    MEMO_WORKFLOW,
    SUGGESTION_WORKFLOW,
    NotPermitted,
    RefusalError,
    Transition,
    VersionConflict,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)

CONTACT_FIELDS = (
    "institute_name",
    "individual_name",
    "position",
    "phone_number",
    "email_address",
    "organization_type",
    "region",
    "location",
    "available_hours",
    "alternative_phone",
    "notes",
)

MEMO_FIELDS = (
    "title",
    "memo_type",
    "department",
    "body",
    "recipients",
    "tags",
    "date_of_issue",
    "priority_level",
    "signature",
)

REQUIRED_CONTACT_FIELDS = ("institute_name", "individual_name", "position", "organization_type")
REQUIRED_MEMO_FIELDS = ("title", "memo_type", "department", "body", "recipients", "tags", "priority_level")

QUEUE_READERS = (ActorRole.DESK_HEAD, ActorRole.LEO, ActorRole.ADMIN)

MEMO_STAGE_TIMESTAMPS = {
    MemoStatus.PENDING_DESK_HEAD: "submitted_to_desk_head_at",
    MemoStatus.PENDING_LEO: "submitted_to_leo_at",
    MemoStatus.APPROVED: "approved_at",
    MemoStatus.REJECTED: "rejected_at",
}


class ValidationError(Exception):
    """Raised when submitted data is incomplete or inconsistent."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def _payload_values(changes: dict, fields: tuple, required: tuple) -> dict:
    """Keep known fields; a null for a required field means 'leave as is'."""
    return {
        k: v for k, v in changes.items()
        if k in fields and not (v is None and k in required)
    }


def _contact_values(changes: dict) -> dict:
    """Keep only directory fields and turn enum-valued fields back into enums."""
    values = _payload_values(changes, CONTACT_FIELDS, REQUIRED_CONTACT_FIELDS)
    if values.get("position") is not None:
        values["position"] = ContactPosition(values["position"])
    if values.get("organization_type") is not None:
        values["organization_type"] = ContactType(values["organization_type"])
    return values


def _contact_snapshot(contact: Contact) -> dict:
    snapshot = {}
    for field in CONTACT_FIELDS:
        value = getattr(contact, field)
        snapshot[field] = value.value if hasattr(value, "value") else value
    return snapshot


def _require_admin(actor: AuthContext, what: str) -> None:
    if not actor.is_admin:
        raise NotPermitted(f"Only ADMIN can {what}")


class ReviewStateMachine:
    """Persists workflow items and enforces their transition rules."""

    def __init__(self, db: Session):
        self.db = db

    # Audit

    def _audit(
        self,
        event_type: str,
        entity_type: str,
        entity_id,
        user_id: Optional[str],
        payload: Optional[dict] = None,
    ) -> None:
        self.db.add(AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=str(entity_id),
            user_id=user_id,
            payload_json=payload,
        ))

    # Transitions

    def _apply_transition(
        self,
        item,
        workflow: WorkflowDefinition,
        action,
        actor: AuthContext,
        comment: Optional[str],
        expected_version: Optional[int],
    ) -> Tuple[Transition, datetime]:
        """
        Resolve and apply one transition without committing.

        Refusals are audited and committed on their own before being re-raised,
        so the item itself is never touched by a refused call.
        """
        item_type = type(item).__name__
        comment = (comment or "").strip() or None
        try:
            transition = workflow.resolve(item.status, action, actor, item.created_by, comment)
            if expected_version is not None and expected_version != item.version:
                raise VersionConflict(
                    f"This {workflow.name} was changed by someone else "
                    f"(version {item.version}, expected {expected_version}). Reload and try again."
                )
        except RefusalError as e:
            logger.warning(
                "Refused %s on %s %s (status=%s, actor=%s/%s): %s",
                action, item_type, item.id, item.status.value, actor.actor_id, actor.role.value, e.message,
            )
            self._audit(
                AuditEventType.TRANSITION_REFUSED,
                item_type,
                item.id,
                actor.actor_id,
                {
                    "action": getattr(action, "value", action),
                    "status": item.status.value,
                    "reason": e.message,
                    "refusal": type(e).__name__,
                },
            )
            self.db.commit()
            raise

        now = datetime.utcnow()
        from_status = item.status
        item.status = transition.target
        item.version = item.version + 1
        item.updated_at = now

        self.db.add(ReviewEntry(
            item_type=item_type,
            item_id=item.id,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            decision=transition.action.value,
            from_status=from_status.value,
            to_status=transition.target.value,
            comment=comment,
            created_at=now,
        ))
        self._audit(
            AuditEventType.TRANSITION_APPLIED,
            item_type,
            item.id,
            actor.actor_id,
            {
                "action": transition.action.value,
                "from": from_status.value,
                "to": transition.target.value,
                "version": item.version,
            },
        )
        logger.info(
            "%s %s: %s -> %s by %s (%s)",
            item_type, item.id, from_status.value, transition.target.value, actor.actor_id, actor.role.value,
        )
        return transition, now

    # Contacts

    def get_contact(self, contact_id: int) -> Contact:
        contact = self.db.query(Contact).filter(Contact.id == contact_id).first()
        if not contact:
            raise NotFoundError("Contact not found")
        return contact

    def list_contacts(
        self,
        search: Optional[str] = None,
        organization_type: Optional[ContactType] = None,
        region: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Contact], int]:
        query = self.db.query(Contact)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Contact.institute_name.ilike(pattern),
                Contact.individual_name.ilike(pattern),
                Contact.email_address.ilike(pattern),
            ))
        if organization_type is not None:
            query = query.filter(Contact.organization_type == organization_type)
        if region:
            query = query.filter(Contact.region == region)
        if is_active is not None:
            query = query.filter(Contact.is_active == is_active)

        total = query.count()
        contacts = (
            query.order_by(Contact.institute_name.asc(), Contact.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return contacts, total

    def contact_statistics(self) -> dict:
        total = self.db.query(func.count(Contact.id)).scalar() or 0
        active = self.db.query(func.count(Contact.id)).filter(Contact.is_active == True).scalar() or 0  # noqa: E712
        by_type = {
            org_type.value: count
            for org_type, count in self.db.query(Contact.organization_type, func.count(Contact.id))
            .group_by(Contact.organization_type)
            .all()
        }
        pending = (
            self.db.query(func.count(ContactSuggestion.id))
            .filter(ContactSuggestion.status == SuggestionStatus.PENDING)
            .scalar() or 0
        )
        return {
            "total_contacts": total,
            "active_contacts": active,
            "inactive_contacts": total - active,
            "by_organization_type": by_type,
            "pending_suggestions": pending,
        }

    def create_contact(self, actor: AuthContext, data: dict) -> Contact:
        _require_admin(actor, "create contacts")
        contact = Contact(**_contact_values(data))
        self.db.add(contact)
        self.db.flush()
        self._audit(AuditEventType.CONTACT_CREATED, "Contact", contact.id, actor.actor_id,
                    {"institute_name": contact.institute_name})
        self.db.commit()
        self.db.refresh(contact)
        return contact

    def update_contact(self, actor: AuthContext, contact: Contact, changes: dict) -> Contact:
        _require_admin(actor, "edit contacts")
        values = _contact_values(changes)
        for field, value in values.items():
            setattr(contact, field, value)
        if "is_active" in changes and changes["is_active"] is not None:
            contact.is_active = bool(changes["is_active"])
        contact.updated_at = datetime.utcnow()
        self._audit(AuditEventType.CONTACT_UPDATED, "Contact", contact.id, actor.actor_id,
                    {"fields": sorted(values)})
        self.db.commit()
        self.db.refresh(contact)
        return contact

    def delete_contact(self, actor: AuthContext, contact: Contact) -> None:
        _require_admin(actor, "delete contacts")
        # Suggestions keep their snapshot in existing_data
        for suggestion in contact.suggestions:
            suggestion.contact_id = None
        self._audit(AuditEventType.CONTACT_DELETED, "Contact", contact.id, actor.actor_id,
                    _contact_snapshot(contact))
        self.db.delete(contact)
        self.db.commit()

    # Suggestions

    def get_suggestion(self, suggestion_id: int) -> ContactSuggestion:
        suggestion = self.db.query(ContactSuggestion).filter(ContactSuggestion.id == suggestion_id).first()
        if not suggestion:
            raise NotFoundError("Suggestion not found")
        return suggestion

    def list_suggestions(
        self,
        actor: AuthContext,
        status: Optional[SuggestionStatus] = None,
    ) -> List[ContactSuggestion]:
        """Admins see every suggestion, everyone else sees their own."""
        query = self.db.query(ContactSuggestion)
        if not actor.is_admin:
            query = query.filter(ContactSuggestion.created_by == actor.actor_id)
        if status is not None:
            query = query.filter(ContactSuggestion.status == status)
        return query.order_by(ContactSuggestion.created_at.desc(), ContactSuggestion.id.desc()).all()

    def create_suggestion(
        self,
        actor: AuthContext,
        suggestion_type: SuggestionType,
        reason: str,
        suggested_changes: Optional[dict] = None,
        contact_id: Optional[int] = None,
    ) -> ContactSuggestion:
        """
        Submit a suggestion in PENDING.

        Validation:
        - reason must not be blank
        - UPDATE and DELETE must target an existing contact
        - ADD and UPDATE must carry at least one change; ADD needs both names
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for this suggestion")

        changes = _payload_values(suggested_changes or {}, CONTACT_FIELDS, REQUIRED_CONTACT_FIELDS)
        existing_data = None
        if suggestion_type in (SuggestionType.UPDATE, SuggestionType.DELETE):
            if contact_id is None:
                raise ValidationError(f"A {suggestion_type.value} suggestion must name a contact")
            existing_data = _contact_snapshot(self.get_contact(contact_id))
        else:
            contact_id = None

        if suggestion_type == SuggestionType.DELETE:
            changes = {}
        elif not changes:
            raise ValidationError("Suggest at least one change")
        if suggestion_type == SuggestionType.ADD:
            missing = [f for f in ("institute_name", "individual_name") if not changes.get(f)]
            if missing:
                raise ValidationError(f"A new contact needs: {', '.join(missing)}")

        suggestion = ContactSuggestion(
            suggestion_type=suggestion_type,
            status=SUGGESTION_WORKFLOW.initial,
            contact_id=contact_id,
            existing_data=existing_data,
            suggested_changes=changes,
            reason=reason,
            created_by=actor.actor_id,
            version=1,
        )
        self.db.add(suggestion)
        self.db.flush()
        self._audit(AuditEventType.SUGGESTION_CREATED, "ContactSuggestion", suggestion.id, actor.actor_id,
                    {"suggestion_type": suggestion_type.value, "contact_id": contact_id})
        self.db.commit()
        self.db.refresh(suggestion)
        logger.info("Suggestion %s (%s) submitted by %s", suggestion.id, suggestion_type.value, actor.actor_id)
        return suggestion

    def review_suggestion(
        self,
        actor: AuthContext,
        suggestion: ContactSuggestion,
        decision: SuggestionDecision,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ContactSuggestion:
        """
        Approve or reject a pending suggestion.

        Approval applies the change to the directory in the same commit:
        ADD creates a contact, UPDATE patches it, DELETE deactivates it.
        """
        target = None
        if (
            SUGGESTION_WORKFLOW.coerce_action(decision) == SuggestionDecision.APPROVE
            and actor.is_admin
            and suggestion.status == SuggestionStatus.PENDING
            and suggestion.suggestion_type != SuggestionType.ADD
        ):
            target = self.db.query(Contact).filter(Contact.id == suggestion.contact_id).first()
            if target is None:
                raise ValidationError("The contact this suggestion targets no longer exists")

        transition, now = self._apply_transition(
            suggestion, SUGGESTION_WORKFLOW, decision, actor, comment, expected_version
        )
        suggestion.admin_comment = (comment or "").strip() or None
        suggestion.reviewed_by = actor.actor_id
        suggestion.reviewed_at = now

        if transition.target == SuggestionStatus.APPROVED:
            self._apply_suggestion(actor, suggestion, target)

        self.db.commit()
        self.db.refresh(suggestion)
        return suggestion

    def _apply_suggestion(self, actor: AuthContext, suggestion: ContactSuggestion, target: Optional[Contact]) -> None:
        if suggestion.suggestion_type == SuggestionType.ADD:
            contact = Contact(**_contact_values(suggestion.suggested_changes))
            self.db.add(contact)
            self.db.flush()
            suggestion.contact_id = contact.id
            self._audit(AuditEventType.CONTACT_CREATED, "Contact", contact.id, actor.actor_id,
                        {"suggestion_id": suggestion.id})
        elif suggestion.suggestion_type == SuggestionType.UPDATE:
            values = _contact_values(suggestion.suggested_changes)
            for field, value in values.items():
                setattr(target, field, value)
            target.updated_at = datetime.utcnow()
            self._audit(AuditEventType.CONTACT_UPDATED, "Contact", target.id, actor.actor_id,
                        {"suggestion_id": suggestion.id, "fields": sorted(values)})
        else:
            target.is_active = False
            target.updated_at = datetime.utcnow()
            self._audit(AuditEventType.CONTACT_DEACTIVATED, "Contact", target.id, actor.actor_id,
                        {"suggestion_id": suggestion.id})

    def delete_suggestion(self, actor: AuthContext, suggestion: ContactSuggestion) -> None:
        """Administrative delete, outside the normal lifecycle."""
        _require_admin(actor, "delete suggestions")
        self._delete_item(actor, suggestion, AuditEventType.SUGGESTION_DELETED)

    # Memos

    def get_memo(self, memo_id: int) -> Memo:
        memo = self.db.query(Memo).filter(Memo.id == memo_id).first()
        if not memo:
            raise NotFoundError("Memo not found")
        return memo

    def list_memos(
        self,
        status: Optional[MemoStatus] = None,
        department: Optional[str] = None,
    ) -> List[Memo]:
        query = self.db.query(Memo)
        if status is not None:
            query = query.filter(Memo.status == status)
        if department:
            query = query.filter(Memo.department == department)
        return query.order_by(Memo.created_at.desc(), Memo.id.desc()).all()

    def pending_queue(self, actor: AuthContext, reviewer: ActorRole) -> List[Memo]:
        """Memos waiting on the given reviewer role."""
        if actor.role not in QUEUE_READERS:
            raise NotPermitted("Only reviewers can read the pending queues")
        status = MEMO_WORKFLOW.pending_status_for(reviewer)
        if status is None:
            raise ValidationError(f"{reviewer.value} has no pending queue")
        return self.list_memos(status=status)

    def create_memo(self, actor: AuthContext, data: dict) -> Memo:
        values = _payload_values(data, MEMO_FIELDS, REQUIRED_MEMO_FIELDS)
        memo = Memo(
            **values,
            status=MEMO_WORKFLOW.initial,
            created_by=actor.actor_id,
            version=1,
        )
        self.db.add(memo)
        self.db.flush()
        self._audit(AuditEventType.MEMO_CREATED, "Memo", memo.id, actor.actor_id,
                    {"title": memo.title, "department": memo.department})
        self.db.commit()
        self.db.refresh(memo)
        return memo

    def update_memo(self, actor: AuthContext, memo: Memo, changes: dict) -> Memo:
        """Edit the payload. Only the author, and only while DRAFT."""
        if memo.created_by != actor.actor_id:
            raise NotPermitted("Only the author can edit this memo")
        if memo.status != MemoStatus.DRAFT:
            raise ValidationError(f"Memo is {memo.status.value}; only drafts can be edited")
        values = _payload_values(changes, MEMO_FIELDS, REQUIRED_MEMO_FIELDS)
        for field, value in values.items():
            setattr(memo, field, value)
        memo.updated_at = datetime.utcnow()
        self._audit(AuditEventType.MEMO_UPDATED, "Memo", memo.id, actor.actor_id, {"fields": sorted(values)})
        self.db.commit()
        self.db.refresh(memo)
        return memo

    def act_on_memo(
        self,
        actor: AuthContext,
        memo: Memo,
        action,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Memo:
        """Move a memo one step along its route and stamp the stage timestamp."""
        transition, now = self._apply_transition(memo, MEMO_WORKFLOW, action, actor, comment, expected_version)
        setattr(memo, MEMO_STAGE_TIMESTAMPS[transition.target], now)
        self.db.commit()
        self.db.refresh(memo)
        return memo

    def memo_history(self, memo: Memo) -> dict:
        def review_at(stage: MemoStatus) -> Optional[ReviewEntry]:
            for entry in memo.review_history:
                if entry.from_status == stage.value:
                    return entry
            return None

        return {
            "memo_id": memo.id,
            "status": memo.status,
            "created_at": memo.created_at,
            "submitted_to_desk_head_at": memo.submitted_to_desk_head_at,
            "desk_head_review": review_at(MemoStatus.PENDING_DESK_HEAD),
            "submitted_to_leo_at": memo.submitted_to_leo_at,
            "leo_review": review_at(MemoStatus.PENDING_LEO),
            "approved_at": memo.approved_at,
            "rejected_at": memo.rejected_at,
            "entries": list(memo.review_history),
        }

    def delete_memo(self, actor: AuthContext, memo: Memo) -> None:
        """Administrative delete, outside the normal lifecycle."""
        _require_admin(actor, "delete memos")
        self._delete_item(actor, memo, AuditEventType.MEMO_DELETED)

    def _delete_item(self, actor: AuthContext, item, event_type: str) -> None:
        item_type = type(item).__name__
        self.db.query(ReviewEntry).filter(
            ReviewEntry.item_type == item_type,
            ReviewEntry.item_id == item.id,
        ).delete(synchronize_session=False)
        self._audit(event_type, item_type, item.id, actor.actor_id,
                    {"status": item.status.value, "version": item.version})
        self.db.delete(item)
        self.db.commit()
        logger.info("%s %s deleted by %s", item_type, item.id, actor.actor_id)
