import pytest

from clinicnotes.schemas import MedicationNote, RiskAssessment, SessionNotes
from clinicnotes.services.insights import normalize_confidence, parse_insight_response
from clinicnotes.services.openai_client import generate_summary, parse_json_object
from clinicnotes.services.prompts import (
    build_summary_prompts, format_soap_notes, get_prompt_for_role, mock_summary, supported_roles,
)
from clinicnotes.services.reports import extract_key_points


def test_every_role_has_prompt():
    assert len(supported_roles()) == 10
    for role in supported_roles():
        assert role.replace("_", " ") in get_prompt_for_role(role)["system_prompt"]


def test_unknown_role():
    with pytest.raises(KeyError):
        get_prompt_for_role("astrologer")


def test_format_soap_notes_optional_sections():
    notes = SessionNotes(
        subjective="Feels tired",
        plan="Follow up",
        medications=[MedicationNote(name="Sertraline", dosage="50mg", frequency="daily")],
        risk_assessment=RiskAssessment(suicidal_ideation="passive"),
    )
    text = format_soap_notes(notes)
    assert "Subjective: Feels tired" in text
    assert "Medications: Sertraline 50mg daily" in text
    assert "SI=passive" in text
    assert "Chief Complaint" not in text


def test_build_prompts_without_transcript():
    prompts = build_summary_prompts(SessionNotes(subjective="ok"), "psychologist")
    assert "No transcript available" in prompts["user"]
    assert "{{soapNotes}}" not in prompts["user"]


def test_mock_summary_language():
    assert mock_summary("psychologist", "notes in english").startswith("**Clinical Session Summary**")
    assert mock_summary("psychologist", "המטופל דיווח").startswith("**סיכום מפגש קליני**")


async def test_generate_summary_mock_mode():
    result = await generate_summary("system", "user notes", "psychiatrist")
    assert result["mode"] == "mock"
    assert result["summary"].startswith("**Psychiatric Consultation Summary**")


def test_parse_json_object():
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object("no json here") is None
    assert parse_json_object(None) is None


def test_parse_insight_response():
    raw = '{"patterns": [{"content": "x", "confidence": 3, "sessionRefs": ["2025-01-01"]}], "treatmentGaps": [{"content": ""}]}'
    parsed = parse_insight_response(raw)
    assert parsed["patterns"] == [{"content": "x", "confidence": 1.0, "session_refs": ["2025-01-01"]}]
    assert parsed["treatment_gaps"] == []
    assert parse_insight_response("garbage") == {
        "patterns": [], "progress_trends": [], "risk_indicators": [], "treatment_gaps": [],
    }


def test_normalize_confidence():
    assert normalize_confidence("high") == 0.5
    assert normalize_confidence(-1) == 0.0
    assert normalize_confidence(0.7) == 0.7


def test_extract_key_points():
    text = "First sentence is here. " * 20
    assert extract_key_points(text).endswith(".")
    assert extract_key_points("short") == "short"
