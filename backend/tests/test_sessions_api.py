from conftest import create_patient, create_session, minutes_from_now


def test_create_and_filter_sessions(client, auth):
    patient = create_patient(client, auth)
    other = create_patient(client, auth, id_number="987654321")
    s1 = create_session(client, auth, patient["id"], minutes=60)
    s2 = create_session(client, auth, other["id"], minutes=60 * 24 * 3)

    def ids(**params):
        resp = client.get("/sessions", params=params, headers=auth.headers)
        assert resp.status_code == 200
        return [s["id"] for s in resp.json()["data"]]

    assert ids(therapist_id=auth.user["id"]) == [s1["id"], s2["id"]]
    assert ids(patient_id=other["id"]) == [s2["id"]]
    assert ids(end=minutes_from_now(60 * 24).isoformat()) == [s1["id"]]
    assert ids(start=minutes_from_now(60 * 24).isoformat()) == [s2["id"]]
    assert ids(therapist_id="someone-else") == []


def test_create_session_unknown_patient(client, auth):
    resp = client.post(
        "/sessions",
        json={
            "patient_id": "missing", "therapist_id": auth.user["id"], "therapist_role": "psychologist",
            "session_type": "follow_up", "scheduled_at": minutes_from_now(10).isoformat(),
        },
        headers=auth.headers,
    )
    assert resp.status_code == 404


def test_duration_bounds(client, auth):
    patient = create_patient(client, auth)
    resp = client.post(
        "/sessions",
        json={
            "patient_id": patient["id"], "therapist_id": auth.user["id"], "therapist_role": "psychologist",
            "session_type": "follow_up", "scheduled_at": minutes_from_now(10).isoformat(), "duration": 200,
        },
        headers=auth.headers,
    )
    assert resp.status_code == 422


def test_status_transitions_stamp_times(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"], minutes=0)
    assert session["started_at"] is None

    started = client.put(f"/sessions/{session['id']}", json={"status": "in_progress"}, headers=auth.headers)
    assert started.status_code == 200
    started_at = started.json()["data"]["started_at"]
    assert started_at is not None

    done = client.put(f"/sessions/{session['id']}", json={"status": "completed"}, headers=auth.headers).json()["data"]
    assert done["status"] == "completed"
    assert done["started_at"] == started_at
    assert done["ended_at"] is not None


def test_update_session_rejects_null_fields(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"], minutes=30)
    for body in ({"scheduled_at": None}, {"status": None}, {"therapist_role": None}):
        resp = client.put(f"/sessions/{session['id']}", json=body, headers=auth.headers)
        assert resp.status_code == 422

    stored = client.get(f"/sessions/{session['id']}", headers=auth.headers).json()["data"]
    assert stored["status"] == "scheduled"
    assert stored["scheduled_at"] == session["scheduled_at"]


def test_sign_requires_completed(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"])
    assert client.post(f"/sessions/{session['id']}/sign", headers=auth.headers).status_code == 409

    client.put(f"/sessions/{session['id']}", json={"status": "completed"}, headers=auth.headers)
    signed = client.post(f"/sessions/{session['id']}/sign", headers=auth.headers)
    assert signed.status_code == 200
    assert signed.json()["data"]["signed_by"] == auth.user["id"]
    assert signed.json()["data"]["signed_at"] is not None


def test_summary_requires_subjective_notes(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"])
    resp = client.post(f"/sessions/{session['id']}/summary", headers=auth.headers)
    assert resp.status_code == 400


def test_mock_summary_and_approve(client, auth):
    patient = create_patient(client, auth)
    session = create_session(
        client, auth, patient["id"], therapist_role="social_worker",
        notes={"subjective": "Housing situation unstable", "plan": "Refer to housing services"},
    )

    cfg = client.get(f"/sessions/{session['id']}/summary", headers=auth.headers).json()["data"]
    assert cfg["mode"] == "mock"
    assert cfg["has_notes"] is True

    resp = client.post(f"/sessions/{session['id']}/summary", json={"transcript": "..."}, headers=auth.headers)
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["mode"] == "mock"
    assert result["summary"].startswith("**Social Work Session Summary**")

    saved = client.put(
        f"/sessions/{session['id']}/summary",
        json={"content": result["summary"], "mode": "mock", "model": result["model"]},
        headers=auth.headers,
    ).json()["data"]
    assert saved["ai_summary"]["content"] == result["summary"]
    assert saved["ai_summary"]["saved_by"] == auth.user["id"]


def test_delete_session(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"])
    assert client.delete(f"/sessions/{session['id']}", headers=auth.headers).status_code == 200
    assert client.get(f"/sessions/{session['id']}", headers=auth.headers).status_code == 404
