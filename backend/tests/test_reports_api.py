from conftest import create_patient, create_session, minutes_from_now


def goal_payload(patient_id, user_id, **overrides):
    return {
        "patient_id": patient_id,
        "description": "Reduce anxiety <episodes>",
        "measurement_criteria": "GAD-7 below 10",
        "progress": 20,
        "created_by": user_id,
        **overrides,
    }


def test_goal_crud(client, auth):
    patient = create_patient(client, auth)
    resp = client.post("/treatment-goals", json=goal_payload(patient["id"], auth.user["id"]), headers=auth.headers)
    assert resp.status_code == 201
    goal = resp.json()["data"]
    assert goal["description"] == "Reduce anxiety &lt;episodes&gt;"

    updated = client.put(f"/treatment-goals/{goal['id']}", json={"progress": 60}, headers=auth.headers).json()["data"]
    assert updated["progress"] == 60

    listed = client.get(f"/patients/{patient['id']}/goals", headers=auth.headers).json()["data"]
    assert [g["id"] for g in listed] == [goal["id"]]

    assert client.put(f"/treatment-goals/{goal['id']}", json={"progress": 101}, headers=auth.headers).status_code == 422
    assert client.delete(f"/treatment-goals/{goal['id']}", headers=auth.headers).status_code == 200
    assert client.get(f"/treatment-goals/{goal['id']}", headers=auth.headers).status_code == 404


def test_generate_multidisciplinary_report(client, auth):
    patient = create_patient(client, auth)
    create_session(
        client, auth, patient["id"], minutes=-60 * 24 * 3, status="completed",
        notes={
            "subjective": "Reports better sleep this week.",
            "chief_complaint": "Anxiety",
            "risk_assessment": {"suicidal_ideation": "none"},
            "next_session_plan": "Continue exposure work",
        },
    )
    create_session(
        client, auth, patient["id"], minutes=-60 * 24 * 2, status="completed", therapist_role="psychiatrist",
        notes={"subjective": "Medication tolerated well."},
    )
    # 기간 밖 / 미완료 세션은 제외
    create_session(client, auth, patient["id"], minutes=-60 * 24 * 40, status="completed",
                   notes={"subjective": "old"})
    create_session(client, auth, patient["id"], minutes=60)
    client.post("/treatment-goals", json=goal_payload(patient["id"], auth.user["id"]), headers=auth.headers)

    resp = client.post(
        "/reports/generate",
        json={
            "patient_id": patient["id"],
            "date_range": {
                "start": minutes_from_now(-60 * 24 * 30).isoformat(),
                "end": minutes_from_now(0).isoformat(),
            },
        },
        headers=auth.headers,
    )
    assert resp.status_code == 201
    report = resp.json()["data"]
    assert report["status"] == "draft"
    assert report["report_type"] == "multidisciplinary_summary"
    content = report["content"]
    assert content["summary"].startswith("MULTIDISCIPLINARY TREATMENT SUMMARY")
    assert "Patient: Dana Levi" in content["summary"]
    assert "Total Sessions: 2" in content["summary"]
    assert [s["therapist_role"] for s in content["sessions_summary"]] == ["psychologist", "psychiatrist"]
    assert content["goals_progress"][0]["progress_percentage"] == 20
    assert "Suicidal Ideation: none" in content["clinical_impressions"]

    listed = client.get(f"/patients/{patient['id']}/reports", headers=auth.headers).json()["data"]
    assert [r["id"] for r in listed] == [report["id"]]


def test_sign_report(client, auth):
    patient = create_patient(client, auth)
    resp = client.post(
        "/reports",
        json={
            "patient_id": patient["id"],
            "report_type": "progress_summary",
            "generated_by": auth.user["id"],
            "date_range": {"start": minutes_from_now(-600).isoformat(), "end": minutes_from_now(0).isoformat()},
            "content": {"summary": "Stable."},
        },
        headers=auth.headers,
    )
    assert resp.status_code == 201
    report = resp.json()["data"]

    signed = client.put(f"/reports/{report['id']}", json={"status": "signed"}, headers=auth.headers).json()["data"]
    assert signed["status"] == "signed"
    assert signed["signed_by"] == auth.user["id"]
    assert signed["content"]["summary"] == "Stable."
