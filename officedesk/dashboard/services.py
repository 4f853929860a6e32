"""Service wrappers: one method per API call, payloads parsed into the API's response models."""
from typing import List, Optional

from pydantic import ValidationError as SchemaError

from officedesk.api.schemas import (
    ContactPage,
    ContactResponse,
    ContactStatistics,
    MemoHistoryResponse,
    MemoResponse,
    SuggestionResponse,
)
from officedesk.dashboard.client import ApiClient, ApiError


def _parse(model, payload):
    try:
        return model.model_validate(payload)
    except SchemaError as e:
        raise ApiError(f"Unexpected response from the server: {e.error_count()} invalid field(s)") from e


def _parse_list(model, payload) -> list:
    if not isinstance(payload, list):
        raise ApiError("Unexpected response from the server: expected a list")
    return [_parse(model, item) for item in payload]


class ContactService:
    base_path = "/contacts"

    def __init__(self, client: ApiClient):
        self.client = client

    def get_contacts(self, search: Optional[str] = None, organization_type: Optional[str] = None,
                     region: Optional[str] = None, page: int = 1, limit: int = 20) -> ContactPage:
        params = {
            "search": search or None,
            "organization_type": organization_type,
            "region": region,
            "page": page,
            "limit": limit,
        }
        return _parse(ContactPage, self.client.get(self.base_path, params=params))

    def get_contact(self, contact_id: int) -> ContactResponse:
        return _parse(ContactResponse, self.client.get(f"{self.base_path}/{contact_id}"))

    def get_statistics(self) -> ContactStatistics:
        return _parse(ContactStatistics, self.client.get(f"{self.base_path}/stats"))

    def create_suggestion(self, suggestion_type: str, reason: str, suggested_changes: Optional[dict] = None,
                          contact_id: Optional[int] = None) -> SuggestionResponse:
        payload = {
            "suggestion_type": suggestion_type,
            "contact_id": contact_id,
            "suggested_changes": suggested_changes or {},
            "reason": reason,
        }
        return _parse(SuggestionResponse, self.client.post(f"{self.base_path}/suggestions", json=payload))

    def get_suggestions(self, status: Optional[str] = None) -> List[SuggestionResponse]:
        """The server scopes the list to the actor; admins get everything."""
        payload = self.client.get(f"{self.base_path}/suggestions", params={"status": status or None})
        return _parse_list(SuggestionResponse, payload)

    def review_suggestion(self, suggestion_id: int, decision: str, comment: Optional[str] = None,
                          expected_version: Optional[int] = None) -> SuggestionResponse:
        payload = {"decision": decision, "comment": comment, "expected_version": expected_version}
        return _parse(
            SuggestionResponse,
            self.client.patch(f"{self.base_path}/suggestions/{suggestion_id}/review", json=payload),
        )

    def delete_suggestion(self, suggestion_id: int) -> None:
        self.client.delete(f"{self.base_path}/suggestions/{suggestion_id}")


class MemoService:
    base_path = "/memos"

    def __init__(self, client: ApiClient):
        self.client = client

    def fork(self) -> "MemoService":
        """Same actor and server, own HTTP session; for worker threads."""
        return MemoService(self.client.fork())

    def close(self) -> None:
        self.client.close()

    def create(self, data: dict) -> MemoResponse:
        return _parse(MemoResponse, self.client.post(self.base_path, json=data))

    def update(self, memo_id: int, data: dict) -> MemoResponse:
        return _parse(MemoResponse, self.client.patch(f"{self.base_path}/{memo_id}", json=data))

    def get_all(self, status: Optional[str] = None, department: Optional[str] = None) -> List[MemoResponse]:
        payload = self.client.get(self.base_path, params={"status": status or None, "department": department})
        return _parse_list(MemoResponse, payload)

    def get_by_id(self, memo_id: int) -> MemoResponse:
        return _parse(MemoResponse, self.client.get(f"{self.base_path}/{memo_id}"))

    def get_memos_pending_desk_head(self) -> List[MemoResponse]:
        return _parse_list(MemoResponse, self.client.get(f"{self.base_path}/pending/desk-head"))

    def get_memos_pending_leo(self) -> List[MemoResponse]:
        return _parse_list(MemoResponse, self.client.get(f"{self.base_path}/pending/leo"))

    def act(self, memo_id: int, action: str, comment: Optional[str] = None,
            expected_version: Optional[int] = None) -> MemoResponse:
        payload = {"action": action, "comment": comment, "expected_version": expected_version}
        return _parse(MemoResponse, self.client.post(f"{self.base_path}/{memo_id}/actions", json=payload))

    def get_workflow_history(self, memo_id: int) -> MemoHistoryResponse:
        return _parse(MemoHistoryResponse, self.client.get(f"{self.base_path}/{memo_id}/history"))

    def delete(self, memo_id: int) -> None:
        self.client.delete(f"{self.base_path}/{memo_id}")
