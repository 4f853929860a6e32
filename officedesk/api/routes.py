"""API routes for contacts, contact suggestions and memo routing."""
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from officedesk.auth import AuthContext
from officedesk.database import get_db
from officedesk.models.enums import ActorRole, ContactType, MemoStatus, SuggestionStatus
from officedesk.services.state_machine import NotFoundError, ReviewStateMachine, ValidationError
from officedesk.services.workflow import (
    CommentRequired,
    InvalidTransition,
    NotPermitted,
    RefusalError,
    VersionConflict,
)
from officedesk.api.schemas import (
    ContactCreate,
    ContactPage,
    ContactResponse,
    ContactStatistics,
    ContactUpdate,
    MemoActionRequest,
    MemoCreate,
    MemoHistoryResponse,
    MemoResponse,
    MemoUpdate,
    RefusalResponse,
    SuggestionCreate,
    SuggestionResponse,
    SuggestionReview,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REFUSAL_STATUS = {
    NotPermitted: status.HTTP_403_FORBIDDEN,
    InvalidTransition: status.HTTP_409_CONFLICT,
    VersionConflict: status.HTTP_409_CONFLICT,
    CommentRequired: status.HTTP_422_UNPROCESSABLE_CONTENT,
}

REFUSAL_RESPONSES = {
    403: {"model": RefusalResponse, "description": "Refusal - actor does not match the review gate"},
    409: {"model": RefusalResponse, "description": "Refusal - invalid transition or stale version"},
}


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> AuthContext:
    """Resolve the acting user once per request from the identity headers."""
    try:
        return AuthContext.from_values(x_actor_id, x_actor_role)
    except ValueError as e:
        logger.warning("Rejected request without a usable identity: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": str(e), "refusal": "Unauthenticated"},
        )


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"message": e.message, "refusal": "NotFound"})
    if isinstance(e, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={"message": e.message, "refusal": "ValidationError"},
        )
    return HTTPException(
        status_code=REFUSAL_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
        detail={"message": e.message, "refusal": type(e).__name__},
    )


DOMAIN_ERRORS = (RefusalError, ValidationError, NotFoundError)


# Contact endpoints
@router.get("/contacts", response_model=ContactPage)
def list_contacts(
    search: Optional[str] = None,
    organization_type: Optional[ContactType] = None,
    region: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """Search the directory. Admin and staff use the same endpoint."""
    sm = ReviewStateMachine(db)
    contacts, total = sm.list_contacts(search, organization_type, region, is_active, page, limit)
    return ContactPage(
        contacts=contacts,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/contacts/stats", response_model=ContactStatistics)
def contact_statistics(db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    return ReviewStateMachine(db).contact_statistics()


@router.post("/contacts", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    contact_data: ContactCreate,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    sm = ReviewStateMachine(db)
    try:
        return sm.create_contact(actor, contact_data.model_dump(exclude_unset=True))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


# Suggestion endpoints (declared before /contacts/{contact_id} so the static paths win)
@router.post("/contacts/suggestions", response_model=SuggestionResponse, status_code=status.HTTP_201_CREATED)
def create_suggestion(
    suggestion_data: SuggestionCreate,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """Submit a suggestion. It starts PENDING and waits for an admin."""
    sm = ReviewStateMachine(db)
    try:
        return sm.create_suggestion(
            actor,
            suggestion_type=suggestion_data.suggestion_type,
            reason=suggestion_data.reason,
            suggested_changes=suggestion_data.suggested_changes.model_dump(exclude_unset=True, mode="json"),
            contact_id=suggestion_data.contact_id,
        )
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.get("/contacts/suggestions", response_model=List[SuggestionResponse])
def list_suggestions(
    status_filter: Optional[SuggestionStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """Admins get every suggestion, everyone else their own. Most recent first."""
    return ReviewStateMachine(db).list_suggestions(actor, status_filter)


@router.get("/contacts/suggestions/{suggestion_id}", response_model=SuggestionResponse)
def get_suggestion(suggestion_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    sm = ReviewStateMachine(db)
    try:
        suggestion = sm.get_suggestion(suggestion_id)
    except NotFoundError as e:
        raise _http_error(e)
    if not actor.is_admin and suggestion.created_by != actor.actor_id:
        raise _http_error(NotFoundError("Suggestion not found"))
    return suggestion


@router.patch(
    "/contacts/suggestions/{suggestion_id}/review",
    response_model=SuggestionResponse,
    responses=REFUSAL_RESPONSES,
)
def review_suggestion(
    suggestion_id: int,
    review: SuggestionReview,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """
    Approve or reject a pending suggestion.

    WILL REFUSE if:
    - The actor is not ADMIN
    - The suggestion is already APPROVED or REJECTED
    - expected_version is given and stale
    """
    sm = ReviewStateMachine(db)
    try:
        suggestion = sm.get_suggestion(suggestion_id)
        return sm.review_suggestion(
            actor,
            suggestion,
            decision=review.decision,
            comment=review.comment,
            expected_version=review.expected_version,
        )
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.delete("/contacts/suggestions/{suggestion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_suggestion(suggestion_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    sm = ReviewStateMachine(db)
    try:
        sm.delete_suggestion(actor, sm.get_suggestion(suggestion_id))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/contacts/{contact_id}", response_model=ContactResponse)
def get_contact(contact_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    try:
        return ReviewStateMachine(db).get_contact(contact_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.patch("/contacts/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    changes: ContactUpdate,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    sm = ReviewStateMachine(db)
    try:
        return sm.update_contact(actor, sm.get_contact(contact_id), changes.model_dump(exclude_unset=True))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(contact_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    sm = ReviewStateMachine(db)
    try:
        sm.delete_contact(actor, sm.get_contact(contact_id))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Memo endpoints
@router.post("/memos", response_model=MemoResponse, status_code=status.HTTP_201_CREATED)
def create_memo(memo_data: MemoCreate, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    """Create a memo in DRAFT, authored by the acting user."""
    return ReviewStateMachine(db).create_memo(actor, memo_data.model_dump())


@router.get("/memos", response_model=List[MemoResponse])
def list_memos(
    status_filter: Optional[MemoStatus] = Query(None, alias="status"),
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    return ReviewStateMachine(db).list_memos(status_filter, department)


@router.get("/memos/pending/desk-head", response_model=List[MemoResponse])
def memos_pending_desk_head(db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    try:
        return ReviewStateMachine(db).pending_queue(actor, ActorRole.DESK_HEAD)
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.get("/memos/pending/leo", response_model=List[MemoResponse])
def memos_pending_leo(db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    try:
        return ReviewStateMachine(db).pending_queue(actor, ActorRole.LEO)
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.get("/memos/{memo_id}", response_model=MemoResponse)
def get_memo(memo_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    try:
        return ReviewStateMachine(db).get_memo(memo_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.patch("/memos/{memo_id}", response_model=MemoResponse)
def update_memo(
    memo_id: int,
    changes: MemoUpdate,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """Edit a memo. Only the author may, and only while it is a DRAFT."""
    sm = ReviewStateMachine(db)
    try:
        return sm.update_memo(actor, sm.get_memo(memo_id), changes.model_dump(exclude_unset=True))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.post("/memos/{memo_id}/actions", response_model=MemoResponse, responses=REFUSAL_RESPONSES)
def act_on_memo(
    memo_id: int,
    request: MemoActionRequest,
    db: Session = Depends(get_db),
    actor: AuthContext = Depends(get_actor),
):
    """
    Move a memo one step along its route.

    WILL REFUSE if:
    - The action is not defined from the memo's current status
    - The actor does not hold the role the current stage is gated on
    - A review stage action comes without a comment
    """
    sm = ReviewStateMachine(db)
    try:
        memo = sm.get_memo(memo_id)
        return sm.act_on_memo(
            actor,
            memo,
            action=request.action,
            comment=request.comment,
            expected_version=request.expected_version,
        )
    except DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.get("/memos/{memo_id}/history", response_model=MemoHistoryResponse)
def memo_history(memo_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    sm = ReviewStateMachine(db)
    try:
        return sm.memo_history(sm.get_memo(memo_id))
    except NotFoundError as e:
        raise _http_error(e)


@router.delete("/memos/{memo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_memo(memo_id: int, db: Session = Depends(get_db), actor: AuthContext = Depends(get_actor)):
    sm = ReviewStateMachine(db)
    try:
        sm.delete_memo(actor, sm.get_memo(memo_id))
    except DOMAIN_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
