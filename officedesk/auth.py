"""Authorization context shared by the API and the dashboard."""
from dataclasses import dataclass

from officedesk.models.enums import ActorRole

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"

SESSION_ROLES = (ActorRole.STAFF, ActorRole.ADMIN, ActorRole.DESK_HEAD, ActorRole.LEO)


@dataclass(frozen=True)
class AuthContext:
    """Who is acting. Resolved once per request (server) or per session (dashboard)."""
    actor_id: str
    role: ActorRole

    @classmethod
    def from_values(cls, actor_id: str, role: str) -> "AuthContext":
        actor_id = (actor_id or "").strip()
        if not actor_id:
            raise ValueError("Actor id is required")
        try:
            actor_role = ActorRole((role or "").strip().upper())
        except ValueError:
            raise ValueError(f"Unknown role: {role!r}")
        if actor_role not in SESSION_ROLES:
            raise ValueError(f"Role {actor_role.value} cannot be held by a session")
        return cls(actor_id=actor_id, role=actor_role)

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def headers(self) -> dict:
        return {ACTOR_ID_HEADER: self.actor_id, ACTOR_ROLE_HEADER: self.role.value}
