"""
Workflow engine: statuses, transition tables and gate checks.

Stateless and free of I/O so the API and the dashboard resolve transitions the
same way. Every status change in the system MUST be resolved through here.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Type

from officedesk.auth import AuthContext
from officedesk.models.enums import (
    ActorRole,
    MemoAction,
    MemoStatus,
    SuggestionDecision,
    SuggestionStatus,
)


class RefusalError(Exception):
    """
    Raised when a transition is refused.
    This is NOT a crash - it's the workflow doing its job.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidTransition(RefusalError):
    """The action is not defined from the item's current status (terminal statuses define none)."""


class NotPermitted(RefusalError):
    """The actor does not match the gate of the transition."""


class CommentRequired(RefusalError):
    """The transition needs a non-blank comment."""


class VersionConflict(RefusalError):
    """The item changed since the caller last saw it."""


@dataclass(frozen=True)
class Transition:
    source: Enum
    action: Enum
    target: Enum
    gate: ActorRole
    comment_required: bool = False


class WorkflowDefinition:
    """A closed status set plus the table of transitions between its statuses."""

    def __init__(
        self,
        name: str,
        status_type: Type[Enum],
        action_type: Type[Enum],
        initial: Enum,
        transitions: List[Transition],
    ):
        self.name = name
        self.status_type = status_type
        self.action_type = action_type
        self.initial = initial
        self._table: Dict[Tuple[Enum, Enum], Transition] = {}
        for t in transitions:
            if (t.source, t.action) in self._table:
                raise ValueError(f"Duplicate transition {t.source.value}/{t.action.value} in {name}")
            self._table[(t.source, t.action)] = t

        sources = {t.source for t in transitions}
        self.terminal: FrozenSet[Enum] = frozenset(s for s in status_type if s not in sources)
        self._check_monotonic()

    def _check_monotonic(self) -> None:
        """Refuse tables with a cycle: no status may be reachable from itself."""
        for start in self.status_type:
            seen = set()
            frontier = [t.target for t in self.transitions() if t.source == start]
            while frontier:
                status = frontier.pop()
                if status == start:
                    raise ValueError(f"{self.name}: {start.value} can be re-entered")
                if status in seen:
                    continue
                seen.add(status)
                frontier.extend(t.target for t in self.transitions() if t.source == status)

    def transitions(self) -> List[Transition]:
        return list(self._table.values())

    def coerce_status(self, status) -> Optional[Enum]:
        """Map a raw status value to the enum, or None when the value is unknown."""
        if isinstance(status, self.status_type):
            return status
        if isinstance(status, Enum):
            status = status.value
        try:
            return self.status_type(status)
        except ValueError:
            return None

    def coerce_action(self, action) -> Optional[Enum]:
        if isinstance(action, self.action_type):
            return action
        if isinstance(action, Enum):
            action = action.value
        try:
            return self.action_type(str(action).lower())
        except ValueError:
            return None

    def transition_for(self, status, action) -> Optional[Transition]:
        return self._table.get((self.coerce_status(status), self.coerce_action(action)))

    def is_terminal(self, status) -> bool:
        return self.coerce_status(status) in self.terminal

    def current_reviewer(self, status) -> Optional[ActorRole]:
        """The gate of the next step, or None for terminal and unknown statuses."""
        status = self.coerce_status(status)
        gates = {t.gate for t in self._table.values() if t.source == status}
        if not gates:
            return None
        if len(gates) > 1:
            raise ValueError(f"{self.name}: {status.value} has more than one gate")
        return gates.pop()

    def pending_status_for(self, role: ActorRole) -> Optional[Enum]:
        """The status whose queue belongs to the given reviewer role."""
        for status in self.status_type:
            if self.current_reviewer(status) == role:
                return status
        return None

    def matches_gate(self, gate: ActorRole, actor: AuthContext, created_by: Optional[str]) -> bool:
        if gate == ActorRole.AUTHOR:
            return created_by is not None and actor.actor_id == created_by
        return actor.role == gate

    def allowed_actions(self, status, actor: AuthContext, created_by: Optional[str] = None) -> List[Enum]:
        """Actions the actor may take right now. Empty for terminal or unknown statuses."""
        status = self.coerce_status(status)
        return [
            t.action
            for t in self._table.values()
            if t.source == status and self.matches_gate(t.gate, actor, created_by)
        ]

    def resolve(
        self,
        status,
        action,
        actor: AuthContext,
        created_by: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Transition:
        """
        Look up the transition for (status, action) and check the actor against its gate.

        Raises:
        - InvalidTransition when no such transition exists from this status
        - NotPermitted when the actor does not match the gate
        - CommentRequired when the transition needs a comment and none was given
        """
        current = self.coerce_status(status)
        wanted = self.coerce_action(action)
        if current is None:
            raise InvalidTransition(f"{self.name}: unknown status {status!r}")
        if wanted is None:
            raise InvalidTransition(f"{self.name}: unknown action {action!r}")

        if current in self.terminal:
            raise InvalidTransition(
                f"{self.name} is {current.value}, which is terminal. No further actions are allowed."
            )

        transition = self._table.get((current, wanted))
        if transition is None:
            raise InvalidTransition(
                f"Cannot {wanted.value} a {self.name} that is {current.value}"
            )

        if not self.matches_gate(transition.gate, actor, created_by):
            if transition.gate == ActorRole.AUTHOR:
                raise NotPermitted(f"Only the author can {wanted.value} this {self.name}")
            raise NotPermitted(
                f"Only {transition.gate.value} can {wanted.value} a {self.name} that is {current.value}"
            )

        if transition.comment_required and not (comment or "").strip():
            raise CommentRequired(f"A comment is required to {wanted.value} this {self.name}")

        return transition


SUGGESTION_WORKFLOW = WorkflowDefinition(
    name="suggestion",
    status_type=SuggestionStatus,
    action_type=SuggestionDecision,
    initial=SuggestionStatus.PENDING,
    transitions=[
        Transition(SuggestionStatus.PENDING, SuggestionDecision.APPROVE, SuggestionStatus.APPROVED, ActorRole.ADMIN),
        Transition(SuggestionStatus.PENDING, SuggestionDecision.REJECT, SuggestionStatus.REJECTED, ActorRole.ADMIN),
    ],
)

# A memo rejected at either review stage is terminal; it is not sent back to DRAFT.
MEMO_WORKFLOW = WorkflowDefinition(
    name="memo",
    status_type=MemoStatus,
    action_type=MemoAction,
    initial=MemoStatus.DRAFT,
    transitions=[
        Transition(MemoStatus.DRAFT, MemoAction.SUBMIT, MemoStatus.PENDING_DESK_HEAD, ActorRole.AUTHOR),
        Transition(MemoStatus.PENDING_DESK_HEAD, MemoAction.FORWARD, MemoStatus.PENDING_LEO,
                   ActorRole.DESK_HEAD, comment_required=True),
        Transition(MemoStatus.PENDING_DESK_HEAD, MemoAction.REJECT, MemoStatus.REJECTED,
                   ActorRole.DESK_HEAD, comment_required=True),
        Transition(MemoStatus.PENDING_LEO, MemoAction.APPROVE, MemoStatus.APPROVED,
                   ActorRole.LEO, comment_required=True),
        Transition(MemoStatus.PENDING_LEO, MemoAction.REJECT, MemoStatus.REJECTED,
                   ActorRole.LEO, comment_required=True),
    ],
)
