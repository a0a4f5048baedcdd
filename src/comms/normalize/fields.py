from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..schemas.models import CanonicalCandidate, JobInfo
from .dates import normalize_date_field, utc_now
from .html_text import html_to_plain_text

# Ordered alias lists: the first key present on the raw record wins.
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("candidate_id", "Candidate_ID", "candidateId", "_id"),
    "candidate_name": ("candidate_name", "Candidate_Name", "candidateName", "name"),
    "email": ("candidate_email", "Candidate_Email", "candidateEmail", "email"),
    "phone_number": ("phone_number", "Phone_Number", "phoneNumber"),
    "linkedin_url": ("candidate_linkedin_url", "Candidate_LinkedIn_URL", "linkedinUrl", "linkedin_url"),
    "current_job_title": ("current_job_title", "Current_Job_Title", "currentJobTitle", "currentPosition"),
    "current_employer": ("current_employer", "Current_Employer", "currentEmployer", "currentCompany"),
    "candidate_location": ("candidate_location", "Candidate_Location", "candidateLocation", "location"),
    "skills": ("skills", "Skills", "skillSet"),
    "experience": ("experience", "Experience", "experienceLevel"),
    "certifications": ("certifications", "Certifications", "certificates"),
    "projects": ("projects", "Projects", "projectPortfolio"),
    "miscellaneous_information": ("miscellaneous_information", "Miscellaneous_Information", "additionalInfo"),
    "score_description": ("score_description", "Score_Description", "scoreDetails"),
    "candidate_score": ("candidate_score", "Candidate_Score", "candidateScore", "score"),
    "score_breakdown": ("score_breakdown", "Score_Breakdown", "scoreBreakdown", "ScoreBreakDown"),
    "jobs_mapped": ("jobs_mapped", "Jobs_Mapped", "mappedJobs"),
    "job_id": ("Job_id", "Job_ID", "job_id", "associatedJob"),
    "status": ("status", "Status", "candidateStatus"),
    "stage": ("stage", "Stage", "candidate_stage", "Candidate_Stage"),
    "reply_status": ("reply_status", "Reply_Status", "replyStatus", "responseStatus"),
    "subject": ("subject", "Subject", "messageSubject"),
    "follow_up_count": ("follow_up_count", "Follow_Up_Count", "followUpCount", "followUpAttempts"),
    "last_contacted_date": (
        "last_contacted_on",
        "Last_Contacted_On",
        "last_contacted_date",
        "Last_Contacted_Date",
        "lastContactedDate",
        "lastContact",
    ),
    "created_at": ("created_at", "Created_At", "createdAt"),
    "meeting_date": ("meeting_date", "Meeting_Date", "meetingDate", "interviewDate"),
    "overall_messages": ("overall_messages", "Overall_Messages", "overallMessages"),
    "crafted_email_message": ("crafted_email_message", "Crafted_Email_Message", "craftedEmailMessage", "crafted_mail_message"),
    "crafted_linkedin_message": (
        "crafted_linkedin_message",
        "Crafted_LinkedIn_Message",
        "craftedLinkedinMessage",
        "crafted_message",
        "Crafted_Message",
        "craftedMessage",
    ),
    "crafted_whatsapp_message": ("crafted_whatsapp_message", "Crafted_WhatsApp_Message", "craftedWhatsappMessage"),
    "preferred_channel": ("preferred_channel", "Preferred_Channel", "preferredChannel", "preferred_communication"),
}

LONG_TEXT_FIELDS = (
    "skills",
    "experience",
    "certifications",
    "projects",
    "miscellaneous_information",
    "score_description",
    "crafted_email_message",
    "crafted_linkedin_message",
    "crafted_whatsapp_message",
)

STRING_FIELDS = (
    "email",
    "phone_number",
    "linkedin_url",
    "current_job_title",
    "current_employer",
    "candidate_location",
    "jobs_mapped",
    "job_id",
    "status",
    "stage",
    "reply_status",
    "subject",
    "last_contacted_date",
    "created_at",
    "meeting_date",
)

_BREAKDOWN_LABEL_KEYS = ("label", "name", "key", "criterion", "category")
_BREAKDOWN_VALUE_KEYS = ("value", "score", "weight", "percent", "percentage")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value == "":
        return False
    return True


def first_present(record: Dict[str, Any], aliases: Sequence[str], default: Any = None) -> Any:
    for key in aliases:
        if key in record and _present(record[key]):
            return record[key]
    return default


def pick(record: Dict[str, Any], field: str, default: Any = None) -> Any:
    return first_present(record, FIELD_ALIASES[field], default)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if _present(v))
    return str(value)


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _first_key(obj: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = obj.get(key)
        if _present(value):
            return value
    return None


def normalize_score_breakdown(raw: Any) -> List[str]:
    """
    Accepts a string, a list of strings or a list of {label, value}-ish objects.
    Returns "Label: Value" strings; entries with no usable text are skipped.
    """
    if isinstance(raw, str):
        cleaned = html_to_plain_text(raw)
        return [cleaned] if cleaned else []
    if not isinstance(raw, list):
        return []
    out: List[str] = []
    for item in raw:
        text = ""
        if isinstance(item, str):
            text = html_to_plain_text(item)
        elif isinstance(item, dict):
            label = _first_key(item, _BREAKDOWN_LABEL_KEYS)
            value = _first_key(item, _BREAKDOWN_VALUE_KEYS)
            if label is not None and value is not None:
                text = f"{label}: {value}".strip()
            else:
                text = html_to_plain_text(json.dumps(item, ensure_ascii=False, sort_keys=True))
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            text = str(item)
        if text:
            out.append(text)
    return out


def channel_from_text(value: Any) -> Optional[str]:
    """
    Map a free-form channel name ("Email", "LinkedIn", "wa") to a canonical channel.
    """
    if not _present(value):
        return None
    s = str(value).strip().lower()
    if "mail" in s:
        return "mail"
    if "whatsapp" in s or s == "wa":
        return "whatsapp"
    if "linkedin" in s:
        return "linkedin"
    return None


def has_messages_raw(raw: Any) -> bool:
    """
    Raw-level content check of a messages value, before any parsing.
    """
    if isinstance(raw, str):
        return raw.strip() != ""
    if isinstance(raw, list):
        return len(raw) > 0
    if isinstance(raw, dict):
        if any(k in raw for k in ("Recruiter", "Candidate")):
            return True
        return any(
            (isinstance(v, str) and v.strip() != "") or (isinstance(v, list) and len(v) > 0)
            for v in raw.values()
        )
    return False


def build_job(record: Dict[str, Any], job_index: Optional[Dict[str, Dict[str, str]]] = None) -> JobInfo:
    jid = _as_text(pick(record, "job_id", ""))
    from_index = (job_index or {}).get(jid) if jid else None
    title = (from_index or {}).get("title") or _as_text(pick(record, "jobs_mapped", "")) or "Job Title"
    company = (from_index or {}).get("company_name") or _as_text(pick(record, "current_employer", "")) or "Company"
    return JobInfo(id=jid, title=title, company_name=company)


def normalize_candidate(
    record: Dict[str, Any],
    index: int = 0,
    job_index: Optional[Dict[str, Dict[str, str]]] = None,
    now: Optional[datetime] = None,
) -> CanonicalCandidate:
    """
    Resolve an alias-heavy store record into the canonical candidate shape.

    `index` is the record's position in the batch; it only feeds the
    placeholder id/name used when the record carries neither. `now` is the
    fallback for unparseable dates; pass the same value to get identical output.
    """
    values: Dict[str, Any] = {
        "id": _as_text(pick(record, "id", f"candidate-{index + 1}")),
        "candidate_name": _as_text(pick(record, "candidate_name", f"Candidate {index + 1}")).strip(),
    }
    for field in STRING_FIELDS:
        values[field] = _as_text(pick(record, field, "")).strip()
    for field in LONG_TEXT_FIELDS:
        values[field] = html_to_plain_text(_as_text(pick(record, field, "")))

    values["candidate_score"] = _as_number(pick(record, "candidate_score", 0))
    values["follow_up_count"] = _as_int(pick(record, "follow_up_count", 0))
    values["score_breakdown"] = normalize_score_breakdown(pick(record, "score_breakdown"))
    values["overall_messages"] = pick(record, "overall_messages")
    values["has_raw_messages"] = has_messages_raw(values["overall_messages"])
    values["preferred_channel"] = channel_from_text(pick(record, "preferred_channel"))
    values["last_contacted_at"] = normalize_date_field(values["last_contacted_date"], now)
    values["created_at_iso"] = normalize_date_field(values["created_at"], now)
    values["job"] = build_job(record, job_index)
    if not values["candidate_name"]:
        values["candidate_name"] = f"Candidate {index + 1}"
    return CanonicalCandidate(**values)


def normalize_candidates(
    records: List[Dict[str, Any]],
    job_index: Optional[Dict[str, Dict[str, str]]] = None,
    now: Optional[datetime] = None,
) -> List[CanonicalCandidate]:
    now = now or utc_now()
    return [normalize_candidate(rec, i, job_index, now) for i, rec in enumerate(records)]
