from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from rich.console import Console

from ..normalize.dates import to_iso, utc_now
from ..pipeline.assemble import append_message, assemble_conversation
from ..pipeline.session import SessionContext
from ..schemas.models import CHANNELS, CanonicalCandidate, CraftedPrompt, Message, ModerationDecision
from .dispatch import MessageSender

console = Console()

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


class ModerationError(Exception):
    pass


class MissingIdentityKeyError(ModerationError):
    pass


@dataclass
class ModerationOutcome:
    candidate_id: str
    channel: str
    state: Optional[str]
    applied: bool
    delivered: Optional[bool] = None
    message: Optional[Message] = None


def crafted_state(ctx: SessionContext, candidate: CanonicalCandidate, channel: str) -> Optional[str]:
    """
    None when there is no draft for the channel; otherwise the recorded decision or pending.
    """
    if not candidate.crafted_text(channel).strip():
        return None
    return ctx.decision(candidate.id, channel) or PENDING


def is_prompt_visible(ctx: SessionContext, candidate: CanonicalCandidate, channel: str) -> bool:
    if crafted_state(ctx, candidate, channel) != PENDING:
        return False
    return candidate.preferred_channel is None or candidate.preferred_channel == channel


def pending_prompts(ctx: SessionContext, candidate: CanonicalCandidate) -> List[CraftedPrompt]:
    return [
        CraftedPrompt(
            candidate_id=candidate.id,
            candidate_name=candidate.candidate_name,
            channel=channel,
            content=candidate.crafted_text(channel).strip(),
        )
        for channel in CHANNELS
        if is_prompt_visible(ctx, candidate, channel)
    ]


def pending_prompts_for(ctx: SessionContext, candidates: Iterable[CanonicalCandidate]) -> Dict[str, List[CraftedPrompt]]:
    out: Dict[str, List[CraftedPrompt]] = {}
    for candidate in candidates:
        prompts = pending_prompts(ctx, candidate)
        if prompts:
            out[candidate.id] = prompts
    return out


class ModerationWorkflow:
    """
    Approve/reject of AI-drafted outbound messages, once per (candidate, channel).

    The local transition is committed first (decision recorded, approved text
    appended to the open conversation), then the outbound call is made. A
    failed call is logged and never rolls the local state back.
    """

    def __init__(
        self,
        ctx: SessionContext,
        sender: MessageSender,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ctx = ctx
        self.sender = sender
        self.clock = clock

    def _candidate(self, candidate_id: str) -> CanonicalCandidate:
        candidate = self.ctx.candidates.get(candidate_id)
        if candidate is None:
            raise ModerationError(f"Candidate {candidate_id} is not part of the current view")
        return candidate

    def approve(self, candidate_id: str, channel: str) -> ModerationOutcome:
        return self._decide(candidate_id, channel, "accept")

    def reject(self, candidate_id: str, channel: str) -> ModerationOutcome:
        return self._decide(candidate_id, channel, "reject")

    def _decide(self, candidate_id: str, channel: str, decision: str) -> ModerationOutcome:
        if channel not in CHANNELS:
            raise ModerationError(f"Unknown channel: {channel}")
        candidate = self._candidate(candidate_id)
        state = crafted_state(self.ctx, candidate, channel)
        if state != PENDING:
            return ModerationOutcome(candidate_id=candidate_id, channel=channel, state=state, applied=False)
        identity_key = candidate.linkedin_url.strip()
        if not identity_key:
            raise MissingIdentityKeyError(
                f"Cannot send the {channel} message for {candidate.candidate_name}: no LinkedIn URL on file."
            )

        now = self.clock()
        appended: Optional[Message] = None
        if decision == "accept":
            appended = self._append_crafted(candidate, channel, now)
            self.ctx.record_decision(candidate_id, channel, APPROVED)
        else:
            self.ctx.record_decision(candidate_id, channel, REJECTED)

        payload = ModerationDecision(
            identity_key=identity_key,
            decision=decision,
            channel=channel,
            candidate_id=candidate.id,
            candidate_name=candidate.candidate_name,
            timestamp=to_iso(now),
        )
        delivered = self._dispatch(payload)
        return ModerationOutcome(
            candidate_id=candidate_id,
            channel=channel,
            state=self.ctx.decision(candidate_id, channel),
            applied=True,
            delivered=delivered,
            message=appended,
        )

    def _append_crafted(self, candidate: CanonicalCandidate, channel: str, now: datetime) -> Message:
        conversation = self.ctx.conversations.get(candidate.id) or assemble_conversation(candidate, [])
        message = Message(
            id=f"{candidate.id}-crafted-{channel}",
            content=candidate.crafted_text(channel).strip(),
            timestamp=to_iso(now),
            sender="Recruiter",
            channel=channel,
            read=True,
        )
        self.ctx.put_conversation(append_message(conversation, message))
        return message

    def _dispatch(self, payload: ModerationDecision) -> bool:
        try:
            self.sender.send_decision(payload)
        except Exception as e:
            console.print(
                f"[yellow]Message sender call failed for {payload.candidate_id}/{payload.channel} "
                f"({payload.decision}):[/yellow] {e}"
            )
            return False
        console.print(f"[green]Message sender triggered[/green]: {payload.candidate_id}/{payload.channel} {payload.decision}")
        return True

    def compose_message(self, candidate_id: str, text: str, channel: str = "linkedin") -> Message:
        """
        Append a recruiter-typed message; WhatsApp messages are also sent out.
        """
        if channel not in CHANNELS:
            raise ModerationError(f"Unknown channel: {channel}")
        content = (text or "").strip()
        if not content:
            raise ModerationError("Cannot send an empty message")
        candidate = self._candidate(candidate_id)
        if channel == "whatsapp" and not candidate.phone_number:
            raise MissingIdentityKeyError(f"Cannot send a WhatsApp message to {candidate.candidate_name}: no phone number on file.")

        now = self.clock()
        conversation = self.ctx.conversations.get(candidate.id) or assemble_conversation(candidate, [])
        message = Message(
            id=f"{candidate.id}-{conversation.message_count}",
            content=content,
            timestamp=to_iso(now),
            sender="Recruiter",
            channel=channel,
            read=True,
        )
        self.ctx.put_conversation(append_message(conversation, message))

        if channel == "whatsapp":
            try:
                self.sender.send_whatsapp(candidate.candidate_name, candidate.phone_number, candidate.job.title, content)
            except Exception as e:
                console.print(f"[yellow]WhatsApp send failed for {candidate.id}:[/yellow] {e}")
        return message
