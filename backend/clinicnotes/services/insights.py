"""
환자 단위 AI 인사이트 (여러 세션을 모아 4개 카테고리로 분석).
  patterns / progress_trends / risk_indicators / treatment_gaps
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.config import get_ai_config
from clinicnotes.models import Session
from clinicnotes.schemas import SessionNotes, RiskAssessment
from clinicnotes.services.openai_client import chat_completion, parse_json_object, MOCK_MODEL

logger = logging.getLogger(__name__)

INSIGHT_SYSTEM_PROMPT = """You are a clinical analyst reviewing a mental health patient's complete therapy history.

Analyze the provided session notes and identify insights in four categories:

1. PATTERNS: recurring themes, behaviors, emotional patterns, relationship dynamics or coping mechanisms across sessions.
2. PROGRESS_TRENDS: evidence of improvement or decline over time in symptoms, functioning, goal achievement or engagement.
3. RISK_INDICATORS: safety concerns, suicidal/homicidal ideation, self-harm or substance use patterns.
4. TREATMENT_GAPS: concerns that were not followed up, referrals or interventions recommended but not implemented.

Output your analysis as JSON in this exact format:
{
  "patterns": [{"content": "...", "confidence": 0.85, "sessionRefs": ["2024-01-15"]}],
  "progressTrends": [{"content": "...", "confidence": 0.9, "firstSeen": "2024-01-01", "lastSeen": "2024-03-01"}],
  "riskIndicators": [{"content": "...", "confidence": 0.95, "sessionRefs": ["2024-02-15"]}],
  "treatmentGaps": [{"content": "...", "confidence": 0.75}]
}

Guidelines:
- Provide 2-5 insights per category (fewer if data doesn't support more); empty array if none
- Confidence: 0.9+ clear evidence across sessions, 0.7-0.9 moderate, below 0.7 tentative
- Match the language of the input (Hebrew or English)
- Reference specific session dates when supporting an insight
- Prioritize patient safety and flag concerning patterns prominently"""

_CATEGORY_KEYS = {
    "patterns": "patterns",
    "progressTrends": "progress_trends",
    "riskIndicators": "risk_indicators",
    "treatmentGaps": "treatment_gaps",
}

_SI_LABELS = {
    "none": "None",
    "passive": "Passive ideation",
    "active_no_plan": "Active ideation (no plan)",
    "active_with_plan": "Active ideation with plan",
}


async def aggregate_patient_sessions(db: AsyncSession, patient_id: str) -> List[Session]:
    """완료된 세션만, 오래된 순"""
    res = await db.execute(
        select(Session)
        .where(Session.patient_id == patient_id, Session.status == "completed")
        .order_by(Session.scheduled_at.asc())
    )
    return list(res.scalars().all())


def _date(value: datetime) -> str:
    return value.date().isoformat()


def format_risk_assessment(risk: RiskAssessment) -> str:
    lines = [
        f"Suicidal Ideation: {_SI_LABELS[risk.suicidal_ideation]}",
        f"Homicidal Ideation: {risk.homicidal_ideation}",
        f"Self-Harm: {risk.self_harm}",
        f"Substance Use: {risk.substance_use}",
        f"Safety Plan Reviewed: {'Yes' if risk.safety_plan_reviewed else 'No'}",
    ]
    if risk.notes:
        lines.append(f"Notes: {risk.notes}")
    return "\n".join(lines)


def format_session(session: Session, number: int) -> str:
    notes = SessionNotes.model_validate(session.notes or {})
    lines = [
        f"SESSION {number}",
        f"Date: {_date(session.scheduled_at)}",
        f"Therapist Role: {session.therapist_role.replace('_', ' ').title()}",
        f"Session Type: {session.session_type.replace('_', ' ')}",
        f"Duration: {session.duration} minutes",
        "",
        "--- SOAP NOTES ---",
    ]
    if notes.chief_complaint:
        lines += [f"Chief Complaint: {notes.chief_complaint}", ""]
    lines += [
        f"Subjective: {notes.subjective}", "",
        f"Objective: {notes.objective}", "",
        f"Assessment: {notes.assessment}", "",
        f"Plan: {notes.plan}", "",
    ]
    if notes.interventions_used:
        lines += [f"Interventions Used: {', '.join(notes.interventions_used)}", ""]
    if notes.progress_toward_goals:
        lines += [f"Progress Toward Goals: {notes.progress_toward_goals}", ""]
    if notes.risk_assessment:
        lines += ["--- RISK ASSESSMENT ---", format_risk_assessment(notes.risk_assessment), ""]
    if notes.medications:
        lines.append("--- MEDICATIONS ---")
        for m in notes.medications:
            side = f" (Side effects: {m.side_effects})" if m.side_effects else ""
            lines.append(f"{m.name} {m.dosage} {m.frequency}{side}")
        lines.append("")
    if notes.homework:
        lines += [f"Homework: {notes.homework}", ""]
    if notes.next_session_plan:
        lines += [f"Next Session Plan: {notes.next_session_plan}", ""]
    if notes.additional_notes:
        lines += [f"Additional Notes: {notes.additional_notes}", ""]
    return "\n".join(lines).strip()


def format_sessions_for_insights(sessions: Sequence[Session]) -> str:
    if not sessions:
        return "No completed sessions available for analysis."
    sep = "\n\n" + "=" * 80 + "\n\n"
    return sep.join(format_session(s, i + 1) for i, s in enumerate(sessions))


def build_insight_user_prompt(formatted: str, count: int) -> str:
    plural = "s" if count != 1 else ""
    return (
        f"Patient Session History ({count} session{plural}):\n\n{formatted}\n\n"
        "Please analyze these sessions and provide insights in the four categories "
        "(patterns, progressTrends, riskIndicators, treatmentGaps)."
    )


def normalize_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return 0.5
    return max(0.0, min(1.0, float(value)))


def _map_item(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict) or not raw.get("content"):
        return None
    item: Dict[str, Any] = {
        "content": str(raw["content"]),
        "confidence": normalize_confidence(raw.get("confidence")),
    }
    refs = raw.get("sessionRefs") or raw.get("session_refs")
    if isinstance(refs, list):
        item["session_refs"] = [str(r) for r in refs]
    for src, dst in (("firstSeen", "first_seen"), ("lastSeen", "last_seen")):
        val = raw.get(src) or raw.get(dst)
        if val:
            item[dst] = str(val)
    return item


def parse_insight_response(raw: Optional[str]) -> Dict[str, List[Dict[str, Any]]]:
    """JSON 파싱 실패 시 빈 카테고리"""
    data = parse_json_object(raw) or {}
    out: Dict[str, List[Dict[str, Any]]] = {}
    for src, dst in _CATEGORY_KEYS.items():
        items = data.get(src, data.get(dst, []))
        if not isinstance(items, list):
            items = []
        out[dst] = [m for m in (_map_item(i) for i in items) if m is not None]
    return out


def empty_insights(patient_id: str, mode: str, model: Optional[str]) -> Dict[str, Any]:
    return {
        "patient_id": patient_id,
        "patterns": [], "progress_trends": [], "risk_indicators": [], "treatment_gaps": [],
        "session_count": 0,
        "mode": mode,
        "model": model,
        "generated_at": datetime.now(timezone.utc),
    }


def mock_insights(patient_id: str, sessions: Sequence[Session]) -> Dict[str, Any]:
    dates = [_date(s.scheduled_at) for s in sessions]
    first, last = (dates[0], dates[-1]) if dates else (None, None)
    result = empty_insights(patient_id, "mock", MOCK_MODEL)
    result.update({
        "session_count": len(sessions),
        "patterns": [
            {
                "content": "Patient consistently reports increased anxiety when discussing work-related topics, "
                           "suggesting occupational stress as a primary trigger.",
                "confidence": 0.88,
                "session_refs": dates[:3],
            },
            {
                "content": "Recurring negative self-talk when discussing interpersonal relationships, "
                           "particularly around inadequacy and fear of rejection.",
                "confidence": 0.82,
                "session_refs": dates[1:4],
            },
        ],
        "progress_trends": [
            {
                "content": "Improved ability to identify and articulate emotional states over the course of treatment.",
                "confidence": 0.91,
                "first_seen": first,
                "last_seen": last,
            },
        ],
        "risk_indicators": [
            {
                "content": "No active suicidal ideation reported. Passive ideation mentioned early has not recurred.",
                "confidence": 0.95,
                "session_refs": dates[:1],
            },
        ],
        "treatment_gaps": [
            {
                "content": "Family conflict mentioned in early sessions has not been explored in depth.",
                "confidence": 0.72,
            },
            {
                "content": "Sleep hygiene was discussed but specific behavioral strategies were not introduced.",
                "confidence": 0.78,
            },
        ],
    })
    return result


async def generate_patient_insights(db: AsyncSession, patient_id: str) -> Dict[str, Any]:
    cfg = get_ai_config()
    sessions = await aggregate_patient_sessions(db, patient_id)
    if not sessions:
        return empty_insights(patient_id, cfg["mode"], MOCK_MODEL if cfg["mode"] == "mock" else cfg["model"])

    if cfg["mode"] == "mock":
        return mock_insights(patient_id, sessions)

    user_prompt = build_insight_user_prompt(format_sessions_for_insights(sessions), len(sessions))
    result = await chat_completion(
        [
            {"role": "system", "content": INSIGHT_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        json_mode=True,
        temperature=0.3,
    )
    parsed = parse_insight_response(result["content"])
    if not any(parsed.values()):
        logger.warning("insight response had no usable items: %s", (result["content"] or "")[:200])

    out = empty_insights(patient_id, "real", result["model"])
    out.update(parsed)
    out["session_count"] = len(sessions)
    return out
