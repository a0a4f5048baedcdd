from __future__ import annotations

from datetime import datetime, timezone

from comms.normalize.fields import (
    channel_from_text,
    has_messages_raw,
    normalize_candidate,
    normalize_candidates,
    normalize_score_breakdown,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_aliases_first_present_wins():
    rec = {
        "_id": "mongo-1",
        "Candidate_ID": "cand-1",
        "Candidate_Name": "Ada Lovelace",
        "candidateEmail": "ada@example.com",
        "Phone_Number": "+44 1234",
        "candidate_linkedin_url": "https://linkedin.com/in/ada",
        "currentCompany": "Analytical Engines",
        "Candidate_Score": "87.5",
        "followUpCount": "2",
    }
    cand = normalize_candidate(rec, now=NOW)
    assert cand.id == "cand-1"
    assert cand.candidate_name == "Ada Lovelace"
    assert cand.email == "ada@example.com"
    assert cand.phone_number == "+44 1234"
    assert cand.linkedin_url == "https://linkedin.com/in/ada"
    assert cand.current_employer == "Analytical Engines"
    assert cand.candidate_score == 87.5
    assert cand.follow_up_count == 2


def test_empty_string_alias_is_skipped():
    cand = normalize_candidate({"candidate_name": "", "name": "Grace"}, now=NOW)
    assert cand.candidate_name == "Grace"


def test_placeholders_when_identity_missing():
    cand = normalize_candidate({}, index=4, now=NOW)
    assert cand.id == "candidate-5"
    assert cand.candidate_name == "Candidate 5"
    assert cand.candidate_score == 0
    assert cand.email == ""
    assert cand.preferred_channel is None


def test_long_text_fields_are_decoded():
    cand = normalize_candidate({"candidate_id": "x", "Skills": "<ul><li>SQL</li><li>dbt</li></ul>"}, now=NOW)
    assert cand.skills == "• SQL\n• dbt"


def test_score_breakdown_shapes():
    assert normalize_score_breakdown("Strong <b>SQL</b>") == ["Strong SQL"]
    assert normalize_score_breakdown(["Skills: 9", ""]) == ["Skills: 9"]
    assert normalize_score_breakdown([{"label": "Skills", "value": 9}, {"criterion": "Culture", "score": "high"}]) == [
        "Skills: 9",
        "Culture: high",
    ]
    assert normalize_score_breakdown([{"note": "ok"}]) == ['{"note": "ok"}']
    assert normalize_score_breakdown(None) == []


def test_dates_raw_and_iso():
    cand = normalize_candidate(
        {"candidate_id": "x", "Last_Contacted_On": "05/03/2024", "createdAt": "garbage"},
        now=NOW,
    )
    assert cand.last_contacted_date == "05/03/2024"
    assert cand.last_contacted_at == "2024-03-05T00:00:00Z"
    assert cand.created_at_iso == "2025-06-01T12:00:00Z"
    assert cand.meeting_date == ""


def test_job_enrichment():
    index = {"j1": {"title": "Data Engineer", "company_name": "Acme"}}
    with_index = normalize_candidate({"candidate_id": "x", "Job_id": "j1"}, job_index=index, now=NOW)
    assert with_index.job.title == "Data Engineer"
    assert with_index.job.company_name == "Acme"

    fallback = normalize_candidate({"candidate_id": "y", "jobs_mapped": "ML Lead", "current_employer": "Initech"}, now=NOW)
    assert fallback.job.title == "ML Lead"
    assert fallback.job.company_name == "Initech"

    bare = normalize_candidate({"candidate_id": "z"}, now=NOW)
    assert bare.job.title == "Job Title"
    assert bare.job.company_name == "Company"


def test_crafted_drafts_and_preferred_channel():
    cand = normalize_candidate(
        {
            "candidate_id": "x",
            "crafted_message": "Hi from LinkedIn",
            "craftedEmailMessage": "<p>Dear Ada</p>",
            "Preferred_Channel": "Email",
        },
        now=NOW,
    )
    assert cand.crafted_linkedin_message == "Hi from LinkedIn"
    assert cand.crafted_email_message == "Dear Ada"
    assert cand.crafted_whatsapp_message == ""
    assert cand.preferred_channel == "mail"


def test_channel_from_text():
    assert channel_from_text("E-mail") == "mail"
    assert channel_from_text("WhatsApp") == "whatsapp"
    assert channel_from_text("wa") == "whatsapp"
    assert channel_from_text("LinkedIn InMail") == "mail"
    assert channel_from_text("LinkedIn") == "linkedin"
    assert channel_from_text("carrier pigeon") is None
    assert channel_from_text("") is None


def test_has_messages_raw():
    assert has_messages_raw("hello")
    assert not has_messages_raw("   ")
    assert has_messages_raw(["x"])
    assert not has_messages_raw([])
    assert has_messages_raw({"Recruiter": []})
    assert has_messages_raw({"mail": "hi"})
    assert not has_messages_raw({"mail": ""})
    assert not has_messages_raw(None)


def test_normalization_is_idempotent_for_fixed_now():
    records = [
        {"candidate_id": "a", "candidate_name": "A", "createdAt": "not a date", "overall_messages": "Hi"},
        {"Candidate_Name": "B", "Score_Breakdown": [{"name": "Skills", "weight": 3}]},
    ]
    first = [c.model_dump() for c in normalize_candidates(records, now=NOW)]
    second = [c.model_dump() for c in normalize_candidates(records, now=NOW)]
    assert first == second
    assert first[1]["id"] == "candidate-2"


def test_skills_with_comparison_signs_survive():
    cand = normalize_candidate({"candidate_id": "x", "skills": "C++ (<5 yrs), Go (>3 yrs)"}, now=NOW)
    assert cand.skills == "C++ (<5 yrs), Go (>3 yrs)"


def test_raw_messages_flag():
    assert normalize_candidate({"candidate_id": "x", "overall_messages": "hi"}, now=NOW).has_raw_messages is True
    assert normalize_candidate({"candidate_id": "y"}, now=NOW).has_raw_messages is False
