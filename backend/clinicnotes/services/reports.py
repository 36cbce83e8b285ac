"""
다학제 보고서 초안 생성 (AI 호출 없이 세션 노트/치료 목표로 구성).
"""
from __future__ import annotations
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Sequence

from clinicnotes.models import Session, TreatmentGoal
from clinicnotes.reminders.selector import as_utc
from clinicnotes.schemas import SessionNotes


def extract_key_points(text: str, limit: int = 200) -> str:
    """앞부분 limit자, 가능하면 문장 단위로 자른다."""
    truncated = text[:limit]
    last_period = truncated.rfind(".")
    if last_period > limit // 2:
        return truncated[:last_period + 1]
    return truncated + ("..." if len(text) > limit else "")


def session_key_points(session: Session) -> str:
    notes = SessionNotes.model_validate(session.notes or {})
    parts: List[str] = []
    if notes.chief_complaint:
        parts.append(f"Presenting concern: {notes.chief_complaint}.")
    if notes.subjective:
        parts.append(extract_key_points(notes.subjective))
    if notes.interventions_used:
        parts.append(f"Interventions: {', '.join(notes.interventions_used)}.")
    if notes.assessment:
        parts.append(f"Assessment: {extract_key_points(notes.assessment)}")
    return " ".join(parts) or f"{session.session_type.replace('_', ' ')} session completed."


def _fmt(value: datetime) -> str:
    return as_utc(value).strftime("%b %d, %Y")


def build_multidisciplinary_report(
    sessions: Sequence[Session],
    goals: Sequence[TreatmentGoal],
    patient_name: str,
    start: datetime,
    end: datetime,
) -> Dict[str, Any]:
    in_range = sorted(
        (s for s in sessions
         if s.status == "completed" and as_utc(start) <= as_utc(s.scheduled_at) <= as_utc(end)),
        key=lambda s: as_utc(s.scheduled_at),
    )

    by_role: "OrderedDict[str, List[Session]]" = OrderedDict()
    for s in in_range:
        by_role.setdefault(s.therapist_role, []).append(s)

    lines = [
        "MULTIDISCIPLINARY TREATMENT SUMMARY",
        f"Patient: {patient_name}",
        f"Period: {_fmt(start)} - {_fmt(end)}",
        f"Total Sessions: {len(in_range)}",
        "",
        "TREATMENT BY DISCIPLINE:",
        "",
    ]
    sessions_summary = []
    for role, role_sessions in by_role.items():
        lines.append(f"{role.replace('_', ' ').upper()} ({len(role_sessions)} sessions):")
        for s in role_sessions:
            key_points = session_key_points(s)
            lines.append(f"  - {_fmt(s.scheduled_at)}: {key_points}")
            notes = SessionNotes.model_validate(s.notes or {})
            sessions_summary.append({
                "date": as_utc(s.scheduled_at),
                "therapist_role": s.therapist_role,
                "session_type": s.session_type,
                "key_points": key_points,
                "progress": notes.progress_toward_goals or "",
            })
        lines.append("")

    goals_progress = []
    if goals:
        lines += ["TREATMENT GOALS PROGRESS:", ""]
        for g in goals:
            target = _fmt(g.target_date) if g.target_date else "Ongoing"
            lines += [
                f"  Goal: {g.description}",
                f"  Status: {g.status} | Progress: {g.progress}%",
                f"  Target: {target}",
                "",
            ]
            goals_progress.append({
                "goal_description": g.description,
                "initial_status": "",
                "current_status": g.status,
                "progress_percentage": g.progress,
                "notes": g.measurement_criteria,
            })

    clinical_impressions = ""
    with_risk = [s for s in in_range if (s.notes or {}).get("risk_assessment")]
    if with_risk:
        risk = SessionNotes.model_validate(with_risk[-1].notes).risk_assessment
        risk_lines = [
            "RISK ASSESSMENT (Most Recent):",
            f"  Suicidal Ideation: {risk.suicidal_ideation}",
            f"  Homicidal Ideation: {risk.homicidal_ideation}",
            f"  Self-Harm: {risk.self_harm}",
            f"  Substance Use: {risk.substance_use}",
        ]
        lines += risk_lines + [""]
        clinical_impressions = "\n".join(risk_lines)

    recommendations = ""
    if in_range:
        last_notes = SessionNotes.model_validate(in_range[-1].notes or {})
        recommendations = last_notes.next_session_plan or last_notes.plan

    return {
        "summary": "\n".join(lines),
        "sessions_summary": sessions_summary,
        "goals_progress": goals_progress,
        "recommendations": recommendations,
        "clinical_impressions": clinical_impressions,
    }
