from __future__ import annotations
from typing import Optional
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String, Text, Integer, Float, DateTime, CheckConstraint,
    ForeignKey, Index, Boolean, JSON
)

from clinicnotes.db import Base

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"

THERAPIST_ROLES = (
    "psychologist", "psychiatrist", "social_worker", "occupational_therapist",
    "speech_therapist", "physical_therapist", "counselor", "art_therapist",
    "music_therapist", "family_therapist",
)
SESSION_TYPES = (
    "initial_assessment", "individual_therapy", "group_therapy", "family_therapy",
    "evaluation", "follow_up", "crisis_intervention", "discharge_planning",
)
SESSION_STATUSES = ("scheduled", "in_progress", "completed", "cancelled", "no_show")

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role in ('therapist','admin','supervisor')", name="ck_users_role"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("user"))
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, default="therapist", nullable=False)
    therapist_role: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    license_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    organization: Mapped[str] = mapped_column(String, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

class Patient(Base):
    """
    환자 기록. 이름/생년월일/ID 번호/비상연락처 등 PII는 encrypted_data에만 저장하고,
    ID 번호는 검색용 해시(id_number_hash)로도 보관한다.
    """
    __tablename__ = "patients"
    __table_args__ = (
        CheckConstraint(
            "status in ('active','inactive','discharged')",
            name="ck_patients_status",
        ),
        CheckConstraint(
            "gender in ('male','female','other','prefer_not_to_say')",
            name="ck_patients_gender",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("patient"))
    patient_code: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    id_number_hash: Mapped[str] = mapped_column(String, index=True, nullable=False)
    encrypted_data: Mapped[str] = mapped_column(Text, nullable=False)
    gender: Mapped[str] = mapped_column(String, nullable=False)
    primary_diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    referral_source: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    insurance_provider: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    assigned_therapists: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class Session(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint(
            "status in ('scheduled','in_progress','completed','cancelled','no_show')",
            name="ck_sessions_status",
        ),
        CheckConstraint(
            "location in ('in_person','telehealth','home_visit')",
            name="ck_sessions_location",
        ),
        CheckConstraint("duration >= 15 and duration <= 180", name="ck_sessions_duration"),
        Index("idx_sessions_therapist_time", "therapist_id", "scheduled_at"),
        Index("idx_sessions_patient", "patient_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("session"))
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    therapist_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    therapist_role: Mapped[str] = mapped_column(String, nullable=False)
    session_type: Mapped[str] = mapped_column(String, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=50, nullable=False)  # 분
    status: Mapped[str] = mapped_column(String, default="scheduled", nullable=False)
    location: Mapped[str] = mapped_column(String, default="in_person", nullable=False)

    # SOAP 노트 / AI 요약 (JSON)
    notes: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    ai_summary: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class TreatmentGoal(Base):
    __tablename__ = "treatment_goals"
    __table_args__ = (
        CheckConstraint(
            "status in ('active','achieved','modified','discontinued')",
            name="ck_goals_status",
        ),
        CheckConstraint("progress >= 0 and progress <= 100", name="ck_goals_progress"),
        Index("idx_goals_patient", "patient_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("goal"))
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    target_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    measurement_criteria: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint("status in ('draft','finalized','signed')", name="ck_reports_status"),
        Index("idx_reports_patient", "patient_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("report"))
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    report_type: Mapped[str] = mapped_column(String, nullable=False)
    generated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    date_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    date_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    content: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(String, default="draft", nullable=False)
    signed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class VoiceRecording(Base):
    __tablename__ = "voice_recordings"
    __table_args__ = (
        CheckConstraint(
            "transcription_status in ('pending','processing','completed','failed')",
            name="ck_recordings_status",
        ),
        Index("idx_recordings_session", "session_id"),
        Index("idx_recordings_patient", "patient_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("recording"))
    session_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    duration: Mapped[float] = mapped_column(Float, default=0, nullable=False)  # 초
    encrypted_audio: Mapped[str] = mapped_column(Text, nullable=False)  # base64 / data URL
    transcription_status: Mapped[str] = mapped_column(String, default="pending", nullable=False)
    encrypted_transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    diarized_transcript: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    consent_obtained: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class PatientInsight(Base):
    """환자별 AI 인사이트 (환자당 1건, 재생성 시 덮어씀)"""
    __tablename__ = "patient_insights"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("insights"))
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    patterns: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    progress_trends: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    risk_indicators: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    treatment_gaps: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    session_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mode: Mapped[str] = mapped_column(String, default="mock", nullable=False)
    model: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    saved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
