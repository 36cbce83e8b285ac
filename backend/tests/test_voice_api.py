import base64

from sqlalchemy import select

from clinicnotes.db import SessionLocal
from clinicnotes.models import VoiceRecording
from clinicnotes.services.security import decrypt
from clinicnotes.workers import transcription_worker

from conftest import create_patient, create_session

AUDIO = "data:audio/webm;base64," + base64.b64encode(b"fake-audio").decode()


def create_recording(client, auth, consent=True):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"])
    resp = client.post(
        "/voice-recordings",
        json={
            "session_id": session["id"],
            "patient_id": patient["id"],
            "duration": 12.5,
            "encrypted_audio": AUDIO,
            "consent_obtained": consent,
        },
        headers=auth.headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_transcribe_endpoint_requires_key(client, auth):
    resp = client.post("/transcribe", json={"audio_data": AUDIO}, headers=auth.headers)
    assert resp.status_code == 500
    assert "DEEPGRAM_API_KEY" in resp.json()["detail"]


def test_transcription_requires_consent(client, auth):
    recording = create_recording(client, auth, consent=False)
    resp = client.post(f"/voice-recordings/{recording['id']}/transcribe", headers=auth.headers)
    assert resp.status_code == 403


def test_background_transcription_failure_recorded(client, auth):
    recording = create_recording(client, auth)
    resp = client.post(f"/voice-recordings/{recording['id']}/transcribe", headers=auth.headers)
    assert resp.status_code == 202
    assert resp.json()["data"]["queued_via"] == "background"

    stored = client.get(f"/voice-recordings/{recording['id']}", headers=auth.headers).json()["data"]
    assert stored["transcription_status"] == "failed"
    assert "Deepgram API key not configured" in stored["error"]


def test_worker_completes_transcription(client, auth, monkeypatch):
    recording = create_recording(client, auth)

    async def fake_transcribe(audio_data, language="he"):
        assert audio_data == AUDIO
        return {
            "utterances": [
                {"speaker": 0, "transcript": "שלום", "start": 0, "end": 1, "confidence": 0.9},
                {"speaker": 1, "transcript": "היי", "start": 1, "end": 2, "confidence": 0.8},
            ],
            "speaker_count": 2,
            "speaker_labels": {0: "דובר 1", 1: "דובר 2"},
            "raw_transcript": "שלום היי",
        }

    monkeypatch.setattr(transcription_worker, "transcribe_audio", fake_transcribe)
    client.portal.call(transcription_worker.handle_message, {"recording_id": recording["id"], "language": "he"})

    async def load():
        async with SessionLocal() as db:
            return (await db.execute(select(VoiceRecording).where(VoiceRecording.id == recording["id"]))).scalar_one()

    row = client.portal.call(load)
    assert row.transcription_status == "completed"
    assert row.diarized_transcript["speaker_count"] == 2
    assert decrypt(row.encrypted_transcript) == "שלום היי"

    stored = client.get(f"/voice-recordings/{recording['id']}", headers=auth.headers).json()["data"]
    assert stored["diarized_transcript"]["utterances"][1]["transcript"] == "היי"


def test_worker_ignores_unknown_recording(client):
    client.portal.call(transcription_worker.handle_message, {"recording_id": "missing"})
