"""
데모 데이터 (치료사 4명 + 관리자, 환자 3명, 세션/목표/보고서).
세션 시각은 호출 시점 기준 상대값이라 리마인더 동작을 바로 확인할 수 있다.
"""
from __future__ import annotations
import logging
import os
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.config import DEFAULT_ORGANIZATION
from clinicnotes.models import (
    User, Patient, Session, TreatmentGoal, Report, VoiceRecording, PatientInsight, utcnow,
)
from clinicnotes.schemas import PatientCreate, SessionNotes, RiskAssessment, MedicationNote
from clinicnotes.services.auth_service import hash_password
from clinicnotes.services.patient_records import new_patient_values
from clinicnotes.services.security import generate_patient_code

logger = logging.getLogger(__name__)

DEMO_PASSWORD = os.getenv("DEMO_PASSWORD", "demo1234")

USERS: List[Dict[str, Any]] = [
    {"id": "user-1", "email": "dr.sarah.cohen@clinic.co.il", "name": "Dr. Sarah Cohen",
     "role": "therapist", "therapist_role": "psychologist", "license_number": "PSY-2024-1234"},
    {"id": "user-2", "email": "michael.levi@clinic.co.il", "name": "Michael Levi, LCSW",
     "role": "therapist", "therapist_role": "social_worker", "license_number": "LCSW-2022-5678"},
    {"id": "user-3", "email": "emma.israeli@clinic.co.il", "name": "Emma Israeli, OT",
     "role": "therapist", "therapist_role": "occupational_therapist", "license_number": "OT-2021-9012"},
    {"id": "user-4", "email": "dr.david.mizrachi@clinic.co.il", "name": "Dr. David Mizrachi",
     "role": "therapist", "therapist_role": "psychiatrist", "license_number": "MD-2019-3456"},
    {"id": "user-admin", "email": "admin@clinic.co.il", "name": "System Admin", "role": "admin"},
]

PATIENTS: List[Dict[str, Any]] = [
    {"id": "patient-1", "id_number": "123456782", "first_name": "Avigail", "last_name": "Berkovitz",
     "date_of_birth": "1988-03-15", "gender": "female",
     "primary_diagnosis": "Major depressive disorder, recurrent",
     "assigned_therapists": ["user-1", "user-4"],
     "emergency_contact": {"name": "Dan Berkovitz", "phone": "050-1234567", "relationship": "spouse"}},
    {"id": "patient-2", "id_number": "234567891", "first_name": "Gal", "last_name": "Davidov",
     "date_of_birth": "1995-07-22", "gender": "male",
     "primary_diagnosis": "Generalized anxiety disorder",
     "assigned_therapists": ["user-1", "user-2"]},
    {"id": "patient-3", "id_number": "345678910", "first_name": "Vered", "last_name": "Zahavi",
     "date_of_birth": "1979-11-02", "gender": "female",
     "primary_diagnosis": "Post-traumatic stress disorder",
     "assigned_therapists": ["user-1", "user-3"]},
]


def _notes(subjective: str, assessment: str, plan: str, **extra) -> Dict[str, Any]:
    return SessionNotes(
        subjective=subjective,
        objective=extra.pop("objective", "Alert and oriented, cooperative, good eye contact."),
        assessment=assessment,
        plan=plan,
        **extra,
    ).model_dump(mode="json")


def _sessions() -> List[Dict[str, Any]]:
    now = utcnow().replace(second=0, microsecond=0)
    return [
        {"id": "session-1", "patient_id": "patient-1", "therapist_id": "user-1",
         "therapist_role": "psychologist", "session_type": "individual_therapy",
         "scheduled_at": now - timedelta(days=14), "started_at": now - timedelta(days=14),
         "ended_at": now - timedelta(days=14) + timedelta(minutes=50), "status": "completed",
         "signed_at": now - timedelta(days=13), "signed_by": "user-1",
         "notes": _notes(
             "Patient reports low mood and poor sleep for the past three weeks, mostly around work stress.",
             "Moderate depressive symptoms, PHQ-9 = 14.",
             "Begin behavioral activation, weekly sessions.",
             chief_complaint="Low mood",
             interventions_used=["CBT", "Behavioral activation"],
             risk_assessment=RiskAssessment(suicidal_ideation="passive", safety_plan_reviewed=True),
         )},
        {"id": "session-2", "patient_id": "patient-1", "therapist_id": "user-4",
         "therapist_role": "psychiatrist", "session_type": "evaluation",
         "scheduled_at": now - timedelta(days=7), "started_at": now - timedelta(days=7),
         "ended_at": now - timedelta(days=7) + timedelta(minutes=30), "status": "completed",
         "duration": 30,
         "notes": _notes(
             "Patient reports improved sleep since starting medication.",
             "Mood improving, no side effects reported.",
             "Continue sertraline 50mg, follow up in 4 weeks.",
             medications=[MedicationNote(name="Sertraline", dosage="50mg", frequency="daily")],
             risk_assessment=RiskAssessment(),
         )},
        {"id": "session-3", "patient_id": "patient-2", "therapist_id": "user-1",
         "therapist_role": "psychologist", "session_type": "individual_therapy",
         "scheduled_at": now - timedelta(hours=4), "started_at": now - timedelta(hours=4),
         "ended_at": now - timedelta(hours=3), "status": "completed",
         "notes": _notes(
             "Patient describes racing thoughts before meetings.",
             "GAD-7 = 12, moderate anxiety.",
             "Practice diaphragmatic breathing daily.",
             homework="Thought record before each meeting",
         )},
        {"id": "session-4", "patient_id": "patient-2", "therapist_id": "user-1",
         "therapist_role": "psychologist", "session_type": "follow_up",
         "scheduled_at": now + timedelta(minutes=3), "status": "scheduled"},
        {"id": "session-5", "patient_id": "patient-3", "therapist_id": "user-1",
         "therapist_role": "psychologist", "session_type": "individual_therapy",
         "scheduled_at": now + timedelta(minutes=25), "status": "scheduled", "location": "telehealth"},
        {"id": "session-6", "patient_id": "patient-3", "therapist_id": "user-3",
         "therapist_role": "occupational_therapist", "session_type": "initial_assessment",
         "scheduled_at": now + timedelta(days=1), "status": "scheduled"},
    ]


def _goals() -> List[Dict[str, Any]]:
    now = utcnow()
    return [
        {"id": "goal-1", "patient_id": "patient-1", "description": "Reduce PHQ-9 score below 10",
         "target_date": now + timedelta(days=60), "progress": 40, "status": "active",
         "measurement_criteria": "PHQ-9 administered monthly", "created_by": "user-1"},
        {"id": "goal-2", "patient_id": "patient-2", "description": "Attend team meetings without panic symptoms",
         "target_date": now + timedelta(days=90), "progress": 20, "status": "active",
         "measurement_criteria": "Self-reported anxiety 0-10 before meetings", "created_by": "user-1"},
    ]


async def _insert_all(db: AsyncSession) -> None:
    password_hash = hash_password(DEMO_PASSWORD)
    await db.execute(insert(User), [
        {"therapist_role": None, "license_number": None, **u,
         "password_hash": password_hash, "organization": DEFAULT_ORGANIZATION}
        for u in USERS
    ])
    for p in PATIENTS:
        data = dict(p)
        patient_id = data.pop("id")
        values = new_patient_values(PatientCreate(**data), generate_patient_code())
        await db.execute(insert(Patient).values(id=patient_id, **values))
    for s in _sessions():
        s.setdefault("notes", SessionNotes().model_dump(mode="json"))
        await db.execute(insert(Session).values(**s))
    await db.execute(insert(TreatmentGoal), _goals())
    now = utcnow()
    await db.execute(insert(Report).values(
        id="report-1", patient_id="patient-1", report_type="progress_summary", generated_by="user-1",
        date_start=now - timedelta(days=30), date_end=now, status="draft",
        content={"summary": "Patient engaged in weekly CBT with gradual improvement in mood.",
                 "sessions_summary": [], "goals_progress": [],
                 "recommendations": "Continue current plan.", "clinical_impressions": ""},
    ))


async def clear_all(db: AsyncSession) -> None:
    for model in (VoiceRecording, PatientInsight, Report, TreatmentGoal, Session, Patient, User):
        await db.execute(delete(model))


async def seed_if_empty(db: AsyncSession) -> bool:
    count = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    if count:
        return False
    await _insert_all(db)
    await db.commit()
    logger.info("Database seeded with demo data")
    return True


async def reset_data(db: AsyncSession) -> None:
    await clear_all(db)
    await _insert_all(db)
    await db.commit()
    logger.info("Database reset to demo data")
