import json
from datetime import datetime, timezone

import httpx
import pytest

from clinicnotes.reminders.client import SessionApiClient


def session_json(session_id="session-1", status="scheduled"):
    return {
        "id": session_id,
        "patient_id": "patient-1",
        "therapist_id": "user-1",
        "therapist_role": "psychologist",
        "session_type": "individual_therapy",
        "scheduled_at": datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc).isoformat(),
        "duration": 50,
        "status": status,
        "location": "in_person",
    }


async def test_list_sessions_sends_therapist_filter_and_token():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = request.url
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"data": [session_json()]})

    async with SessionApiClient("http://api", token="abc", transport=httpx.MockTransport(handler)) as client:
        sessions = await client.list_sessions("user-1")

    assert seen["url"].path == "/sessions"
    assert seen["url"].params["therapist_id"] == "user-1"
    assert seen["auth"] == "Bearer abc"
    assert sessions[0].id == "session-1"
    assert sessions[0].scheduled_at.tzinfo is not None


async def test_update_status_puts_status():
    def handler(request: httpx.Request):
        assert request.method == "PUT"
        assert request.url.path == "/sessions/session-1"
        body = json.loads(request.content)
        return httpx.Response(200, json={"data": session_json(status=body["status"])})

    async with SessionApiClient("http://api", transport=httpx.MockTransport(handler)) as client:
        updated = await client.update_session_status("session-1", "no_show")
    assert updated.status == "no_show"


async def test_update_status_error_raises():
    def handler(request: httpx.Request):
        return httpx.Response(404, json={"detail": "Session not found"})

    async with SessionApiClient("http://api", transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.update_session_status("missing", "no_show")
