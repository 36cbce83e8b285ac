"""
치료사 역할별 세션 요약 프롬프트 + mock 요약 템플릿.
user 템플릿의 {{soapNotes}} / {{transcript}} 자리를 채워서 사용한다.
"""
from __future__ import annotations
import re
from typing import Dict, List, Optional

from clinicnotes.schemas import SessionNotes

HEBREW_RE = re.compile(r"[\u0590-\u05FF]")

# role -> (전문가 소개, 중점 영역)
_ROLE_PROFILES: Dict[str, tuple] = {
    "psychologist": (
        "an expert clinical psychologist with deep expertise in psychological assessment, "
        "cognitive-behavioral approaches, and evidence-based therapeutic techniques",
        [
            "Cognitive patterns and thought distortions",
            "Psychological assessments (PHQ-9, GAD-7, BDI-II, BAI, PCL-5, OCI-R)",
            "Therapeutic techniques (CBT, DBT, ACT, exposure therapy)",
            "Behavioral observations and mental status",
            "Treatment formulation and case conceptualization",
            "Progress toward treatment goals",
            "Risk assessment and safety planning",
        ],
    ),
    "psychiatrist": (
        "an experienced psychiatrist specializing in psychopharmacology, diagnostic evaluation "
        "and mental status examination",
        [
            "Mental status examination",
            "Medication management, adherence and side effects",
            "DSM-5 diagnostic impressions",
            "Sleep, appetite and energy",
            "Risk assessment (suicidal and homicidal ideation)",
            "Laboratory monitoring and follow-up",
        ],
    ),
    "social_worker": (
        "a licensed clinical social worker experienced in psychosocial assessment, case management "
        "and advocacy",
        [
            "Psychosocial stressors and resources",
            "Housing, financial and occupational stability",
            "Family and community support systems",
            "Coordination of care and referrals",
            "Benefits and entitlement advocacy",
        ],
    ),
    "occupational_therapist": (
        "a registered occupational therapist focused on functional performance in activities of "
        "daily living",
        [
            "ADL and IADL performance",
            "Fine motor and sensory processing",
            "Adaptive equipment and environmental modifications",
            "Occupational balance and routines",
            "Functional goals and measurable progress",
        ],
    ),
    "speech_therapist": (
        "a certified speech-language pathologist experienced in communication, language and "
        "swallowing disorders",
        [
            "Receptive and expressive language",
            "Articulation, fluency and voice",
            "Pragmatic and social communication",
            "Swallowing function where relevant",
            "Home practice and caregiver training",
        ],
    ),
    "physical_therapist": (
        "a licensed physical therapist experienced in musculoskeletal and neurological "
        "rehabilitation",
        [
            "Pain levels and functional limitations",
            "Range of motion, strength and balance",
            "Therapeutic exercise and manual therapy",
            "Gait and mobility",
            "Home exercise program adherence",
        ],
    ),
    "counselor": (
        "a licensed professional counselor with a client-centered, strengths-based approach",
        [
            "Presenting concerns in the client's own words",
            "Coping strategies and strengths",
            "Therapeutic alliance and engagement",
            "Goal setting and motivation",
            "Referrals and continuity of care",
        ],
    ),
    "art_therapist": (
        "a registered art therapist who uses creative expression as a therapeutic modality",
        [
            "Art materials and directives used",
            "Process observations and engagement with media",
            "Symbolic content and themes in the artwork",
            "Emotional expression and regulation",
            "Integration of creative work with treatment goals",
        ],
    ),
    "music_therapist": (
        "a board-certified music therapist using active and receptive music interventions",
        [
            "Music interventions (improvisation, songwriting, listening)",
            "Responses to rhythm, melody and structure",
            "Emotional and physiological regulation",
            "Social interaction through music",
            "Carry-over of skills outside sessions",
        ],
    ),
    "family_therapist": (
        "a licensed marriage and family therapist working from a systemic perspective",
        [
            "Family members present and roles",
            "Communication patterns and relational dynamics",
            "Boundaries, alliances and conflict",
            "Systemic hypotheses",
            "Between-session assignments for the family",
        ],
    ),
}

USER_PROMPT_TEMPLATE = """Generate a professional clinical session summary based on the following documentation.

**SOAP Notes:**
{{soapNotes}}

**Session Transcript:**
{{transcript}}

Instructions:
1. If a transcript is provided, integrate relevant clinical observations from it
2. If no transcript is available, base the summary solely on the SOAP notes
3. Emphasize the clinical focus areas of your discipline
4. Highlight interventions used and patient response
5. Document progress toward treatment goals
6. Flag any risk factors or safety concerns"""

OUTPUT_FORMAT = """The summary should include:
1. A 2-3 paragraph clinical narrative covering presenting concerns, session content, and clinical observations
2. Key points in bullet format
3. A short plan for continued treatment"""


def role_title(role: str) -> str:
    return role.replace("_", " ")


def get_prompt_for_role(role: str) -> Dict[str, object]:
    if role not in _ROLE_PROFILES:
        raise KeyError(f"No prompt found for role: {role}. Expected one of: {', '.join(_ROLE_PROFILES)}")
    intro, focus = _ROLE_PROFILES[role]
    focus_lines = "\n".join(f"- {f}" for f in focus)
    system_prompt = (
        f"You are {intro}. You are writing as a {role_title(role)}.\n\n"
        "Your role is to generate professional clinical session summaries that focus on:\n"
        f"{focus_lines}\n\n"
        f"{OUTPUT_FORMAT}\n\n"
        "Write summaries appropriate for clinical documentation reviewed by other professionals. "
        "Match the language of the input (Hebrew or English) in your response."
    )
    return {
        "role": role,
        "system_prompt": system_prompt,
        "user_prompt_template": USER_PROMPT_TEMPLATE,
        "focus_areas": list(focus),
    }


def supported_roles() -> List[str]:
    return list(_ROLE_PROFILES)


def format_soap_notes(notes: SessionNotes) -> str:
    sections: List[str] = []
    if notes.chief_complaint:
        sections.append(f"Chief Complaint: {notes.chief_complaint}")
    sections.append(f"Subjective: {notes.subjective}")
    sections.append(f"Objective: {notes.objective}")
    sections.append(f"Assessment: {notes.assessment}")
    sections.append(f"Plan: {notes.plan}")
    if notes.interventions_used:
        sections.append(f"Interventions Used: {', '.join(notes.interventions_used)}")
    if notes.progress_toward_goals:
        sections.append(f"Progress Toward Goals: {notes.progress_toward_goals}")
    if notes.medications:
        meds = "; ".join(f"{m.name} {m.dosage} {m.frequency}" for m in notes.medications)
        sections.append(f"Medications: {meds}")
    if notes.risk_assessment:
        r = notes.risk_assessment
        sections.append(f"Risk Assessment: SI={r.suicidal_ideation}, HI={r.homicidal_ideation}, SH={r.self_harm}")
    if notes.homework:
        sections.append(f"Homework: {notes.homework}")
    if notes.next_session_plan:
        sections.append(f"Next Session Plan: {notes.next_session_plan}")
    return "\n\n".join(sections)


def build_summary_prompts(notes: SessionNotes, role: str, transcript: Optional[str] = None) -> Dict[str, str]:
    prompt = get_prompt_for_role(role)
    user_prompt = (
        str(prompt["user_prompt_template"])
        .replace("{{soapNotes}}", format_soap_notes(notes))
        .replace("{{transcript}}", transcript or "No transcript available")
    )
    return {"system": str(prompt["system_prompt"]), "user": user_prompt}


# --- mock 요약 ---
_MOCK_HEADINGS = {
    "psychologist": ("Clinical Session Summary", "סיכום מפגש קליני"),
    "psychiatrist": ("Psychiatric Consultation Summary", "סיכום התייעצות פסיכיאטרית"),
    "social_worker": ("Social Work Session Summary", "סיכום מפגש עבודה סוציאלית"),
    "occupational_therapist": ("Occupational Therapy Session Summary", "סיכום מפגש ריפוי בעיסוק"),
    "speech_therapist": ("Speech-Language Therapy Summary", "סיכום טיפול בתקשורת שפה ודיבור"),
    "physical_therapist": ("Physical Therapy Session Summary", "סיכום מפגש פיזיותרפיה"),
    "counselor": ("Counseling Session Summary", "סיכום מפגש ייעוץ"),
    "art_therapist": ("Art Therapy Session Summary", "סיכום מפגש טיפול באומנות"),
    "music_therapist": ("Music Therapy Session Summary", "סיכום מפגש טיפול במוזיקה"),
    "family_therapist": ("Family Therapy Session Summary", "סיכום מפגש טיפול משפחתי"),
}

_MOCK_BODY_EN = """The patient engaged appropriately throughout the session. Presenting concerns from the notes were reviewed and discussed.

**Key Points:**
- {focus}
- Therapeutic interventions were applied and the patient responded well
- Progress noted toward treatment goals

**Plan:**
Continue the current treatment approach and schedule a follow-up session."""

_MOCK_BODY_HE = """המטופל/ת היה/תה מעורב/ת לאורך כל המפגש. הדאגות שהוצגו ברשומות נסקרו ונדונו.

**נקודות מפתח:**
- הופעלו התערבויות טיפוליות והמטופל/ת הגיב/ה היטב
- צוינה התקדמות לקראת יעדי הטיפול

**תוכנית:**
המשך גישת הטיפול הנוכחית. לקבוע מפגש מעקב."""


def is_hebrew(text: str) -> bool:
    return bool(HEBREW_RE.search(text or ""))


def mock_summary(role: str, user_prompt: str) -> str:
    heading_en, heading_he = _MOCK_HEADINGS.get(role, ("Session Summary", "סיכום מפגש"))
    if is_hebrew(user_prompt):
        return f"**{heading_he}**\n\n{_MOCK_BODY_HE}"
    focus = _ROLE_PROFILES[role][1][0] if role in _ROLE_PROFILES else "Patient presented with ongoing concerns"
    return f"**{heading_en}**\n\n" + _MOCK_BODY_EN.format(focus=focus)
