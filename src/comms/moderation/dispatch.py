from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ..ingestion.store_api import StoreClient
from ..normalize.dates import to_iso, utc_now
from ..schemas.models import ModerationDecision


class MessageSender(Protocol):
    def send_decision(self, decision: ModerationDecision) -> Dict[str, Any]:
        ...

    def send_whatsapp(self, candidate_name: str, phone: str, job_title: str, message: str) -> Dict[str, Any]:
        ...


def build_decision_body(decision: ModerationDecision, flow_id: str, executed_by: Optional[str]) -> Dict[str, Any]:
    goal = f"sending_status={decision.decision}; linkedin_url={decision.identity_key}; channel={decision.channel}"
    return {
        "agentflow_id": flow_id,
        "executed_by": executed_by,
        "goal": goal,
        "input_variables": {
            "sending_status": decision.decision,
            "linkedin_url": decision.identity_key,
            "channel": decision.channel,
            "candidate_id": decision.candidate_id or None,
            "candidate_name": decision.candidate_name or None,
            "action": "message_sender",
            "timestamp": decision.timestamp,
            "created_by": "system",
        },
    }


def build_whatsapp_body(
    flow_id: str,
    executed_by: Optional[str],
    candidate_name: str,
    phone: str,
    job_title: str,
    message: str,
) -> Dict[str, Any]:
    goal = (
        f"Send WhatsApp message\nCandidate: {candidate_name or 'candidate'}\nPhone: {phone}\n"
        f"Job: {job_title or 'the opportunity'}\n\nMessage:\n{message}"
    )
    return {
        "agentflow_id": flow_id,
        "executed_by": executed_by,
        "goal": goal,
        "input_variables": {
            "candidate_name": candidate_name or "",
            "candidate_phone": phone,
            "job_title": job_title or "",
            "message": message,
            "action": "whatsapp_send",
            "timestamp": to_iso(utc_now()),
            "created_by": "system",
        },
    }


@dataclass
class FlowMessageSender:
    """
    Triggers the store's agent flows; response bodies are passed through uninterpreted.
    """

    client: StoreClient
    message_sender_flow_id: str
    whatsapp_flow_id: str = ""
    executed_by: Optional[str] = None

    def send_decision(self, decision: ModerationDecision) -> Dict[str, Any]:
        body = build_decision_body(decision, self.message_sender_flow_id, self.executed_by)
        body["projectID"] = self.client.project_id
        return self.client.execute_flow(body)

    def send_whatsapp(self, candidate_name: str, phone: str, job_title: str, message: str) -> Dict[str, Any]:
        body = build_whatsapp_body(self.whatsapp_flow_id, self.executed_by, candidate_name, phone, job_title, message)
        body["projectID"] = self.client.project_id
        return self.client.execute_flow(body)
