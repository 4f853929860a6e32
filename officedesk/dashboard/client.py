"""HTTP client the dashboard screens talk to the API through."""
import logging
from typing import Optional

import requests

from officedesk.auth import AuthContext
from officedesk.config import API_BASE, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request that did not produce a usable response (transport failure or non-2xx)."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict) and detail.get("message"):
        return detail["message"]
    if isinstance(detail, list) and detail:
        # FastAPI request validation errors
        return "; ".join(str(d.get("msg", d)) for d in detail)
    if detail:
        return str(detail)
    return f"HTTP {response.status_code}"


class ApiClient:
    """
    Thin wrapper over a requests.Session.

    The session's AuthContext is fixed at construction and sent with every call,
    so screens never re-derive who the user is.
    """

    def __init__(
        self,
        auth: AuthContext,
        base_url: str = API_BASE,
        session=None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.owns_session = session is None
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def fork(self) -> "ApiClient":
        """
        A client for use from another thread.

        requests.Session is not thread-safe, so a client that created its own
        session hands out a fresh one. An injected session is shared as is.
        """
        return ApiClient(
            self.auth,
            base_url=self.base_url,
            session=None if self.owns_session else self.session,
            timeout=self.timeout,
        )

    def close(self) -> None:
        if self.owns_session:
            self.session.close()

    def request(self, method: str, path: str, params: Optional[dict] = None, json: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = self.session.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=self.auth.headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(f"Could not reach the server: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get(self, path: str, params: Optional[dict] = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[dict] = None):
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Optional[dict] = None):
        return self.request("PATCH", path, json=json)

    def delete(self, path: str):
        return self.request("DELETE", path)
