# backend/clinicnotes/config.py
import os
from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

DEFAULT_ORGANIZATION = os.getenv("DEFAULT_ORGANIZATION", "Harmony Mental Health Center")
SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "false").lower() == "true"

# 리마인더: 시작 5분 전부터 시작 후 30분까지 표시
REMINDER_WINDOW_MINUTES = 5
GRACE_PERIOD_MINUTES = 30
REMINDER_CHECK_INTERVAL_S = float(os.getenv("REMINDER_CHECK_INTERVAL_S", "30"))
REMINDER_REFRESH_INTERVAL_S = float(os.getenv("REMINDER_REFRESH_INTERVAL_S", "30"))

LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
LOGIN_RATE_WINDOW_S = float(os.getenv("LOGIN_RATE_WINDOW_S", "60"))

KAFKA_BOOTSTRAP = os.getenv("KAFKA_BOOTSTRAP", "")
KAFKA_TOPIC_AUDIT = os.getenv("KAFKA_TOPIC_AUDIT", "clinicnotes.audit")
KAFKA_TOPIC_TRANSCRIPTION = os.getenv("KAFKA_TOPIC_TRANSCRIPTION", "clinicnotes.transcription.requests")
KAFKA_GROUP_TRANSCRIPTION = os.getenv("KAFKA_GROUP_TRANSCRIPTION", "transcription-workers")


def get_ai_config() -> dict:
    """
    OPENAI_API_KEY가 있으면 'real', 없으면 'mock' 모드.
    (환경변수는 호출 시점에 읽음)
    """
    api_key = os.getenv("OPENAI_API_KEY")
    return {
        "mode": "real" if api_key else "mock",
        "api_key": api_key,
        "model": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "max_tokens": int(os.getenv("OPENAI_MAX_TOKENS", "1000")),
        "timeout": float(os.getenv("OPENAI_TIMEOUT_S", "30")),
    }
