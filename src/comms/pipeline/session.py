from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from rich.console import Console

from ..schemas.models import CanonicalCandidate, CommunicationsView, Conversation

console = Console()


@dataclass
class SessionContext:
    """
    State owned by one dashboard session.

    Holds the moderation decisions, the conversations and candidates of the
    view currently on screen, and the token of the most recent fetch request.
    Everything here is mutated from a single thread of control.
    """

    decisions: Dict[Tuple[str, str], str] = field(default_factory=dict)
    conversations: Dict[str, Conversation] = field(default_factory=dict)
    candidates: Dict[str, CanonicalCandidate] = field(default_factory=dict)
    view: Optional[CommunicationsView] = None
    latest_token: int = 0

    def begin_request(self) -> int:
        self.latest_token += 1
        return self.latest_token

    def is_current(self, token: int) -> bool:
        return token == self.latest_token

    def apply_view(
        self,
        token: int,
        view: CommunicationsView,
        candidates: Iterable[CanonicalCandidate],
    ) -> bool:
        """
        Install a freshly built view unless a newer request was issued meanwhile.
        """
        if not self.is_current(token):
            console.print(
                f"[yellow]Discarding stale response[/yellow]: request {token} superseded by {self.latest_token}"
            )
            return False
        self.view = view
        self.conversations = {c.candidate_id: c for c in view.conversations}
        self.candidates = {c.id: c for c in candidates}
        return True

    def decision(self, candidate_id: str, channel: str) -> Optional[str]:
        return self.decisions.get((candidate_id, channel))

    def record_decision(self, candidate_id: str, channel: str, state: str) -> None:
        self.decisions[(candidate_id, channel)] = state

    def put_conversation(self, conversation: Conversation) -> None:
        self.conversations[conversation.candidate_id] = conversation
        if self.view is not None:
            updated = [
                conversation if c.candidate_id == conversation.candidate_id else c for c in self.view.conversations
            ]
            self.view = self.view.model_copy(update={"conversations": updated})
