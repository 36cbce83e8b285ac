from __future__ import annotations
from typing import Optional, List, Dict, Literal, Generic, TypeVar
from pydantic import BaseModel, Field, EmailStr, AfterValidator, field_validator
from typing_extensions import Annotated
from datetime import datetime, date, timezone

T = TypeVar("T")


def ensure_utc(value: datetime) -> datetime:
    # sqlite는 tz 정보를 잃으므로 naive 값은 UTC로 간주
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def reject_null(value):
    # 부분 수정에서 NOT NULL 컬럼에 명시적 null 금지 (생략은 허용)
    if value is None:
        raise ValueError("may not be null")
    return value

TherapistRole = Literal[
    "psychologist", "psychiatrist", "social_worker", "occupational_therapist",
    "speech_therapist", "physical_therapist", "counselor", "art_therapist",
    "music_therapist", "family_therapist",
]
SessionType = Literal[
    "initial_assessment", "individual_therapy", "group_therapy", "family_therapy",
    "evaluation", "follow_up", "crisis_intervention", "discharge_planning",
]
SessionStatus = Literal["scheduled", "in_progress", "completed", "cancelled", "no_show"]
SessionLocation = Literal["in_person", "telehealth", "home_visit"]
ReportType = Literal[
    "progress_summary", "discharge_summary", "insurance_report", "referral_report",
    "evaluation_report", "treatment_summary", "multidisciplinary_summary",
]


class DataResp(BaseModel, Generic[T]):
    """라우트 공통 응답 래퍼: {"data": ...}"""
    data: T

class MessageResp(BaseModel):
    message: str
    success: bool = True


# --- 인증 / 사용자 ---
class Token(BaseModel):
    """
    /auth/login 응답 스키마.
    """
    access_token: str
    token_type: str = "bearer"

class UserCreate(BaseModel):
    """
    /auth/signup 요청 스키마.
    """
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)

class UserPublic(BaseModel):
    """
    비밀번호 해시를 제외한 사용자 정보.
    """
    id: str
    email: EmailStr
    name: str
    role: str
    therapist_role: Optional[str] = None
    license_number: Optional[str] = None
    organization: str = ""
    created_at: Optional[UtcDatetime] = None
    last_login: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


# --- 세션 (SOAP 노트) ---
class RiskAssessment(BaseModel):
    suicidal_ideation: Literal["none", "passive", "active_no_plan", "active_with_plan"] = "none"
    homicidal_ideation: Literal["none", "present"] = "none"
    self_harm: Literal["none", "history", "current"] = "none"
    substance_use: Literal["none", "active", "in_recovery"] = "none"
    safety_plan_reviewed: bool = False
    notes: Optional[str] = None

class MedicationNote(BaseModel):
    name: str
    dosage: str
    frequency: str
    prescribed_by: Optional[str] = None
    side_effects: Optional[str] = None

class SessionNotes(BaseModel):
    chief_complaint: Optional[str] = None
    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""
    interventions_used: List[str] = []
    progress_toward_goals: Optional[str] = None
    risk_assessment: Optional[RiskAssessment] = None
    medications: List[MedicationNote] = []
    homework: Optional[str] = None
    next_session_plan: Optional[str] = None
    additional_notes: Optional[str] = None

class AISummary(BaseModel):
    content: str
    generated_at: UtcDatetime
    mode: Literal["mock", "real"]
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    saved_at: Optional[UtcDatetime] = None
    saved_by: Optional[str] = None

class SessionCreate(BaseModel):
    patient_id: str
    therapist_id: str
    therapist_role: TherapistRole
    session_type: SessionType
    scheduled_at: UtcDatetime
    duration: int = Field(50, ge=15, le=180)
    status: SessionStatus = "scheduled"
    location: SessionLocation = "in_person"
    notes: Optional[SessionNotes] = None

class SessionUpdate(BaseModel):
    therapist_role: Optional[TherapistRole] = None
    session_type: Optional[SessionType] = None
    scheduled_at: Optional[UtcDatetime] = None
    duration: Optional[int] = Field(None, ge=15, le=180)
    status: Optional[SessionStatus] = None
    location: Optional[SessionLocation] = None
    notes: Optional[SessionNotes] = None

    @field_validator(
        "therapist_role", "session_type", "scheduled_at", "duration", "status", "location", mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class SessionOut(BaseModel):
    id: str
    patient_id: str
    therapist_id: str
    therapist_role: TherapistRole
    session_type: SessionType
    scheduled_at: UtcDatetime
    started_at: Optional[UtcDatetime] = None
    ended_at: Optional[UtcDatetime] = None
    duration: int
    status: SessionStatus
    location: SessionLocation
    notes: SessionNotes = SessionNotes()
    ai_summary: Optional[AISummary] = None
    signed_at: Optional[UtcDatetime] = None
    signed_by: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True

class SummaryRequest(BaseModel):
    transcript: Optional[str] = None
    regenerate: bool = False

class SummaryResult(BaseModel):
    summary: str
    mode: Literal["mock", "real"]
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    generated_at: UtcDatetime

class SummaryConfig(BaseModel):
    mode: Literal["mock", "real"]
    model: str
    session_id: str
    has_notes: bool

class SummaryApprove(BaseModel):
    content: str = Field(..., min_length=1)
    mode: Literal["mock", "real"] = "mock"
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    generated_at: Optional[UtcDatetime] = None


# --- 환자 ---
class EmergencyContact(BaseModel):
    name: str
    phone: str
    relationship: str

class PatientCreate(BaseModel):
    id_number: str = Field(..., pattern=r"^\d{9}$", description="9자리 ID 번호")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: date
    gender: Literal["male", "female", "other", "prefer_not_to_say"]
    primary_diagnosis: Optional[str] = None
    referral_source: Optional[str] = None
    insurance_provider: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    assigned_therapists: List[str] = Field(..., min_length=1)
    status: Literal["active", "inactive", "discharged"] = "active"

class PatientUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "other", "prefer_not_to_say"]] = None
    primary_diagnosis: Optional[str] = None
    referral_source: Optional[str] = None
    insurance_provider: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    assigned_therapists: Optional[List[str]] = Field(None, min_length=1)
    status: Optional[Literal["active", "inactive", "discharged"]] = None

    @field_validator(
        "first_name", "last_name", "date_of_birth", "gender", "assigned_therapists", "status", mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class PatientOut(BaseModel):
    id: str
    patient_code: str
    id_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    primary_diagnosis: Optional[str] = None
    referral_source: Optional[str] = None
    insurance_provider: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    assigned_therapists: List[str]
    status: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


# --- 치료 목표 ---
class GoalCreate(BaseModel):
    patient_id: str
    description: str = Field(..., min_length=1)
    target_date: Optional[UtcDatetime] = None
    status: Literal["active", "achieved", "modified", "discontinued"] = "active"
    progress: int = Field(0, ge=0, le=100)
    measurement_criteria: str
    created_by: str

class GoalUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    target_date: Optional[UtcDatetime] = None
    status: Optional[Literal["active", "achieved", "modified", "discontinued"]] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    measurement_criteria: Optional[str] = None

    @field_validator(
        "description", "status", "progress", "measurement_criteria", mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class GoalOut(BaseModel):
    id: str
    patient_id: str
    description: str
    target_date: Optional[UtcDatetime] = None
    status: str
    progress: int
    measurement_criteria: str
    created_by: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


# --- 보고서 ---
class DateRange(BaseModel):
    start: UtcDatetime
    end: UtcDatetime

class SessionSummaryItem(BaseModel):
    date: UtcDatetime
    therapist_role: str
    session_type: str
    key_points: str
    progress: str = ""

class GoalProgressItem(BaseModel):
    goal_description: str
    initial_status: str = ""
    current_status: str
    progress_percentage: int = Field(0, ge=0, le=100)
    notes: str = ""

class ReportContent(BaseModel):
    summary: str
    sessions_summary: List[SessionSummaryItem] = []
    goals_progress: List[GoalProgressItem] = []
    recommendations: str = ""
    clinical_impressions: str = ""

class ReportCreate(BaseModel):
    patient_id: str
    report_type: ReportType
    generated_by: str
    date_range: DateRange
    content: ReportContent
    status: Literal["draft", "finalized", "signed"] = "draft"

class ReportUpdate(BaseModel):
    report_type: Optional[ReportType] = None
    date_range: Optional[DateRange] = None
    content: Optional[ReportContent] = None
    status: Optional[Literal["draft", "finalized", "signed"]] = None

    @field_validator(
        "report_type", "date_range", "content", "status", mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class ReportGenerateReq(BaseModel):
    patient_id: str
    report_type: ReportType = "multidisciplinary_summary"
    date_range: DateRange

class ReportOut(BaseModel):
    id: str
    patient_id: str
    report_type: str
    generated_by: str
    generated_at: UtcDatetime
    date_range: DateRange
    content: ReportContent
    status: str
    signed_by: Optional[str] = None
    signed_at: Optional[UtcDatetime] = None


# --- 음성 녹음 / 전사 ---
class SpeakerUtterance(BaseModel):
    speaker: int
    speaker_label: Optional[str] = None
    transcript: str
    start: float
    end: float
    confidence: float

class DiarizedTranscript(BaseModel):
    utterances: List[SpeakerUtterance]
    speaker_count: int
    speaker_labels: Optional[Dict[int, str]] = None
    raw_transcript: str

class TranscribeReq(BaseModel):
    audio_data: str = Field(..., min_length=1)  # "data:audio/webm;base64,XXXX" 또는 순수 base64
    language: str = "he"

class VoiceRecordingCreate(BaseModel):
    session_id: str
    patient_id: str
    duration: float = Field(..., ge=0)
    encrypted_audio: str
    transcription_status: Literal["pending", "processing", "completed", "failed"] = "pending"
    encrypted_transcript: Optional[str] = None
    diarized_transcript: Optional[DiarizedTranscript] = None
    consent_obtained: bool

class VoiceRecordingUpdate(BaseModel):
    transcription_status: Optional[Literal["pending", "processing", "completed", "failed"]] = None
    encrypted_transcript: Optional[str] = None
    diarized_transcript: Optional[DiarizedTranscript] = None
    consent_obtained: Optional[bool] = None

    @field_validator("transcription_status", "consent_obtained", mode="before")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)

class VoiceRecordingOut(BaseModel):
    id: str
    session_id: str
    patient_id: str
    duration: float
    encrypted_audio: str
    transcription_status: str
    encrypted_transcript: Optional[str] = None
    diarized_transcript: Optional[DiarizedTranscript] = None
    consent_obtained: bool
    error: Optional[str] = None
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True

class TranscriptionQueued(BaseModel):
    recording_id: str
    transcription_status: str
    queued_via: Literal["kafka", "background"]


# --- AI 인사이트 ---
class InsightItem(BaseModel):
    content: str
    confidence: float = Field(..., ge=0, le=1)
    session_refs: Optional[List[str]] = None
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None

class PatientInsightsOut(BaseModel):
    id: Optional[str] = None
    patient_id: str
    patterns: List[InsightItem] = []
    progress_trends: List[InsightItem] = []
    risk_indicators: List[InsightItem] = []
    treatment_gaps: List[InsightItem] = []
    session_count: int = 0
    mode: Literal["mock", "real"]
    model: Optional[str] = None
    generated_at: UtcDatetime
    saved_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


# --- 알림 / 리마인더 ---
class NotificationOut(BaseModel):
    id: str
    type: Literal["session_reminder", "session_overdue", "unsigned_session"]
    title: str
    message: str
    related_id: str
    related_type: Literal["session"] = "session"
    is_read: bool = False
    created_at: UtcDatetime

class NotificationList(BaseModel):
    data: List[NotificationOut]
    unread_count: int

class ReminderState(BaseModel):
    upcoming_session: Optional[SessionOut] = None
    is_visible: bool = False
