import os
import tempfile

# 앱 import 전에 테스트용 환경 설정 (db 엔진이 import 시점에 만들어짐)
_DB_PATH = os.path.join(tempfile.gettempdir(), f"clinicnotes-test-{os.getpid()}.db")
os.environ["ASYNC_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["KAFKA_BOOTSTRAP"] = ""
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from clinicnotes.main import app


@pytest.fixture(autouse=True)
def _no_external_keys(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)


@pytest.fixture
def client():
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)
    with TestClient(app) as c:
        yield c
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)


def signup(client, email="therapist@example.com", name="Test Therapist", password="password123"):
    resp = client.post("/auth/signup", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    token = resp.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    me = client.get("/auth/me", headers=headers).json()
    return headers, me


@pytest.fixture
def auth(client):
    headers, me = signup(client)
    return SimpleNamespace(headers=headers, user=me)


def minutes_from_now(minutes: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


PATIENT_PAYLOAD = {
    "id_number": "123456782",
    "first_name": "Dana",
    "last_name": "Levi",
    "date_of_birth": "1990-05-01",
    "gender": "female",
    "primary_diagnosis": "Generalized anxiety disorder",
    "emergency_contact": {"name": "Avi Levi", "phone": "050-0000000", "relationship": "brother"},
}


def create_patient(client, auth, **overrides):
    payload = {**PATIENT_PAYLOAD, "assigned_therapists": [auth.user["id"]], **overrides}
    resp = client.post("/patients", json=payload, headers=auth.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def create_session(client, auth, patient_id, minutes=60.0, **overrides):
    payload = {
        "patient_id": patient_id,
        "therapist_id": auth.user["id"],
        "therapist_role": "psychologist",
        "session_type": "individual_therapy",
        "scheduled_at": minutes_from_now(minutes).isoformat(),
        **overrides,
    }
    resp = client.post("/sessions", json=payload, headers=auth.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
