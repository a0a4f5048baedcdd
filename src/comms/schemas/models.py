from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Sender = Literal["Recruiter", "Candidate"]
Channel = Literal["linkedin", "mail", "whatsapp"]
CraftedState = Literal["pending", "approved", "rejected"]
Decision = Literal["accept", "reject"]

CHANNELS: tuple = ("mail", "linkedin", "whatsapp")


class JobInfo(BaseModel):
    id: str = ""
    title: str = "Job Title"
    company_name: str = "Company"


class CanonicalCandidate(BaseModel):
    id: str
    candidate_name: str
    email: str = ""
    phone_number: str = ""
    linkedin_url: str = ""
    current_job_title: str = ""
    current_employer: str = ""
    candidate_location: str = ""

    skills: str = ""
    experience: str = ""
    certifications: str = ""
    projects: str = ""
    miscellaneous_information: str = ""
    score_description: str = ""
    candidate_score: float = 0
    score_breakdown: List[str] = Field(default_factory=list)

    jobs_mapped: str = ""
    job_id: str = ""
    job: JobInfo = Field(default_factory=JobInfo)
    status: str = ""
    stage: str = ""
    reply_status: str = ""
    subject: str = ""
    follow_up_count: int = 0

    # Raw date strings as delivered, plus ISO-normalized variants ("" when absent)
    last_contacted_date: str = ""
    last_contacted_at: str = ""
    created_at: str = ""
    created_at_iso: str = ""
    meeting_date: str = ""

    # Un-normalized messages value; the message shape normalizer consumes it
    overall_messages: Any = None
    has_raw_messages: bool = False

    crafted_email_message: str = ""
    crafted_linkedin_message: str = ""
    crafted_whatsapp_message: str = ""
    preferred_channel: Optional[Channel] = None

    def crafted_text(self, channel: str) -> str:
        if channel == "mail":
            return self.crafted_email_message
        if channel == "linkedin":
            return self.crafted_linkedin_message
        if channel == "whatsapp":
            return self.crafted_whatsapp_message
        return ""


class Message(BaseModel):
    id: str
    content: str
    timestamp: str
    sender: Sender = "Recruiter"
    channel: Channel = "linkedin"
    follow_up: bool = False
    read: bool = True

    @property
    def follow_up_label(self) -> Optional[str]:
        if not self.follow_up:
            return None
        return f"{self.channel} follow up"


class Conversation(BaseModel):
    candidate_id: str
    display_name: str
    contact: str = ""
    job_title: str = ""
    messages: List[Message] = Field(default_factory=list)
    last_message: str = "No communication history"
    last_message_time: str = ""
    unread_count: int = 0
    has_messages: bool = False
    message_count: int = 0

    # Inputs of the ordering policy
    last_contacted_date: str = ""
    created_at: str = ""

    @model_validator(mode="after")
    def _counts_consistent(self) -> "Conversation":
        if self.message_count != len(self.messages):
            raise ValueError("message_count must equal the number of messages")
        if self.has_messages != (self.message_count > 0):
            raise ValueError("has_messages must be true exactly when there are messages")
        return self


class PageInfo(BaseModel):
    page: int
    total_pages: int
    total_count: int
    page_size: int


class ConversationStats(BaseModel):
    total: int = 0
    with_messages: int = 0
    without_messages: int = 0


class CraftedPrompt(BaseModel):
    candidate_id: str
    candidate_name: str
    channel: Channel
    content: str


class ModerationDecision(BaseModel):
    """
    Body of the outbound moderation trigger.
    """

    identity_key: str
    decision: Decision
    channel: Channel
    candidate_id: str
    candidate_name: str
    timestamp: str

    @field_validator("identity_key")
    @classmethod
    def _identity_present(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("identity_key must be non-empty")
        return v.strip()


class CommunicationsView(BaseModel):
    conversations: List[Conversation]
    page_info: PageInfo
    stats: ConversationStats
    pending_prompts: Dict[str, List[CraftedPrompt]] = Field(default_factory=dict)
    message: str = ""
