from sqlalchemy import select

from clinicnotes.db import SessionLocal
from clinicnotes.models import Patient

from conftest import create_patient, create_session


def test_create_patient_encrypts_pii(client, auth):
    patient = create_patient(client, auth)
    assert patient["first_name"] == "Dana"
    assert patient["id_number"] == "123456782"
    assert patient["patient_code"].startswith("PT-")
    assert patient["emergency_contact"]["relationship"] == "brother"

    async def raw_row():
        async with SessionLocal() as db:
            return (await db.execute(select(Patient).where(Patient.id == patient["id"]))).scalar_one()

    row = client.portal.call(raw_row)
    assert "Dana" not in row.encrypted_data
    assert "123456782" not in row.encrypted_data
    assert row.id_number_hash != "123456782"


def test_invalid_id_number(client, auth):
    resp = client.post(
        "/patients",
        json={
            "id_number": "12345", "first_name": "A", "last_name": "B", "date_of_birth": "2000-01-01",
            "gender": "other", "assigned_therapists": [auth.user["id"]],
        },
        headers=auth.headers,
    )
    assert resp.status_code == 422


def test_list_filters(client, auth):
    a = create_patient(client, auth)
    b = create_patient(client, auth, id_number="987654321", assigned_therapists=["someone-else"], status="inactive")

    def ids(**params):
        resp = client.get("/patients", params=params, headers=auth.headers)
        assert resp.status_code == 200
        return {p["id"] for p in resp.json()["data"]}

    assert ids() == {a["id"], b["id"]}
    assert ids(therapist_id=auth.user["id"]) == {a["id"]}
    assert ids(status="inactive") == {b["id"]}
    assert ids(id_number="987654321") == {b["id"]}


def test_update_patient(client, auth):
    patient = create_patient(client, auth)
    resp = client.put(
        f"/patients/{patient['id']}",
        json={"last_name": "Cohen", "status": "discharged"},
        headers=auth.headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["last_name"] == "Cohen"
    assert data["first_name"] == "Dana"
    assert data["status"] == "discharged"


def test_update_patient_rejects_null_names(client, auth):
    patient = create_patient(client, auth)
    for body in ({"first_name": None}, {"last_name": None}, {"first_name": None, "last_name": None}):
        resp = client.put(f"/patients/{patient['id']}", json=body, headers=auth.headers)
        assert resp.status_code == 422

    # 암호화된 PII는 그대로 남아 목록/상세 모두 읽힌다
    listed = client.get("/patients", headers=auth.headers)
    assert listed.status_code == 200
    assert [p["first_name"] for p in listed.json()["data"]] == ["Dana"]
    stored = client.get(f"/patients/{patient['id']}", headers=auth.headers).json()["data"]
    assert (stored["first_name"], stored["last_name"]) == ("Dana", "Levi")


def test_delete_patient_cascades(client, auth):
    patient = create_patient(client, auth)
    session = create_session(client, auth, patient["id"])
    assert client.delete(f"/patients/{patient['id']}", headers=auth.headers).status_code == 200
    assert client.get(f"/patients/{patient['id']}", headers=auth.headers).status_code == 404
    assert client.get(f"/sessions/{session['id']}", headers=auth.headers).status_code == 404


def test_missing_patient(client, auth):
    assert client.get("/patients/nope", headers=auth.headers).status_code == 404


def test_insights_mock_flow(client, auth):
    patient = create_patient(client, auth)
    assert client.get(f"/patients/{patient['id']}/insights", headers=auth.headers).status_code == 404

    # 세션이 없으면 빈 결과
    empty = client.post(f"/patients/{patient['id']}/insights", headers=auth.headers).json()["data"]
    assert empty["session_count"] == 0
    assert empty["patterns"] == []

    create_session(client, auth, patient["id"], minutes=-60 * 24, status="completed",
                   notes={"subjective": "Worried about work"})
    resp = client.post(f"/patients/{patient['id']}/insights", headers=auth.headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["mode"] == "mock"
    assert data["session_count"] == 1
    assert data["patterns"]

    saved = client.get(f"/patients/{patient['id']}/insights", headers=auth.headers).json()["data"]
    assert saved["id"] == data["id"]
    assert saved["saved_at"] is not None
