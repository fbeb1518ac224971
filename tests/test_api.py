import pytest

ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}
EVALUATOR = {"X-User-Id": "2", "X-User-Role": "evaluator"}


@pytest.fixture
def criterion_id(client):
    response = client.post(
        "/api/criteria",
        json={
            "name": "Attendance",
            "category": "basic",
            "data_type": "numeric",
            "max_score": 10,
            "weight": 1,
        },
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def volunteer_id(client):
    response = client.post(
        "/api/volunteers",
        json={"full_name": "Mona Adel", "phone": "+201000000001", "role_type": "field"},
        headers=EVALUATOR,
    )
    assert response.status_code == 201
    return response.json()["id"]


def frozen_evaluation(volunteer_id, criterion_id, month):
    return {
        "volunteer_id": volunteer_id,
        "evaluation_month": month,
        "evaluation_year": 2024,
        "criteria_scores": [{"criteria_id": criterion_id, "score_value": 7}],
        "is_frozen": True,
        "freeze_reason": "Exams",
        "freeze_start_date": f"2024-{month:02d}-01",
        "freeze_end_date": f"2024-{month:02d}-20",
    }


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["version"] == "0.1.0"
    assert body["environment"] == "testing"


def test_missing_identity_headers(client):
    assert client.get("/api/volunteers").status_code == 401


def test_unknown_role(client):
    response = client.get("/api/volunteers", headers={"X-User-Id": "5", "X-User-Role": "guest"})
    assert response.status_code == 403


def test_admin_only_route(client):
    response = client.post(
        "/api/criteria",
        json={"name": "Attendance", "category": "basic", "data_type": "numeric"},
        headers=EVALUATOR,
    )
    assert response.status_code == 403


def test_volunteer_lifecycle(client, volunteer_id):
    listing = client.get("/api/volunteers", params={"search": "Mona"}, headers=EVALUATOR)
    assert listing.status_code == 200
    assert listing.json()["pagination"]["total"] == 1

    detail = client.get(f"/api/volunteers/{volunteer_id}", headers=EVALUATOR)
    assert detail.status_code == 200

    updated = client.put(
        f"/api/volunteers/{volunteer_id}", json={"full_name": "Mona A."}, headers=EVALUATOR
    )
    assert updated.status_code == 200
    assert updated.json()["full_name"] == "Mona A."

    note = client.post(
        f"/api/volunteers/{volunteer_id}/notes",
        json={"note_type": "achievement", "content": "Organised the clothes drive"},
        headers=EVALUATOR,
    )
    assert note.status_code == 201

    assert client.delete(f"/api/volunteers/{volunteer_id}", headers=EVALUATOR).status_code == 403
    assert client.delete(f"/api/volunteers/{volunteer_id}", headers=ADMIN).status_code == 204
    assert client.get(f"/api/volunteers/{volunteer_id}", headers=EVALUATOR).status_code == 404


def test_duplicate_phone_conflict(client, volunteer_id):
    response = client.post(
        "/api/volunteers",
        json={"full_name": "Someone Else", "phone": "+201000000001"},
        headers=EVALUATOR,
    )
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "DUPLICATE_RECORD"


def test_not_found_envelope(client):
    response = client.get("/api/evaluations/999", headers=EVALUATOR)
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_payloads(client):
    bad_phone = client.post(
        "/api/volunteers", json={"full_name": "X", "phone": "call me"}, headers=EVALUATOR
    )
    assert bad_phone.status_code == 400
    assert bad_phone.json()["code"] == "VALIDATION_ERROR"

    missing_field = client.post("/api/volunteers", json={"full_name": "X"}, headers=EVALUATOR)
    assert missing_field.status_code == 400
    assert "errors" in missing_field.json()["details"]


def test_evaluation_flow(client, volunteer_id, criterion_id):
    created = client.post(
        "/api/evaluations",
        json={
            "volunteer_id": volunteer_id,
            "evaluation_month": 3,
            "evaluation_year": 2024,
            "criteria_scores": [{"criteria_id": criterion_id, "score_value": "8.5"}],
        },
        headers=EVALUATOR,
    )
    assert created.status_code == 201
    evaluation = created.json()
    assert evaluation["percentage"] == 85.0
    assert evaluation["performance_grade"] == "very_good"
    assert evaluation["status"] == "draft"

    duplicate = client.post(
        "/api/evaluations",
        json={"volunteer_id": volunteer_id, "evaluation_month": 3, "evaluation_year": 2024},
        headers=EVALUATOR,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "EVALUATION_EXISTS"

    approved = client.patch(f"/api/evaluations/{evaluation['id']}/approve", headers=EVALUATOR)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    locked = client.put(
        f"/api/evaluations/{evaluation['id']}", json={"human_note": "late"}, headers=EVALUATOR
    )
    assert locked.status_code == 409
    assert locked.json()["code"] == "EVALUATION_APPROVED"

    listing = client.get(
        "/api/evaluations", params={"status": "approved", "year": 2024}, headers=EVALUATOR
    )
    assert listing.json()["pagination"]["total"] == 1


def test_third_freeze_is_rejected(client, volunteer_id, criterion_id):
    for month in (1, 2):
        response = client.post(
            "/api/evaluations", json=frozen_evaluation(volunteer_id, criterion_id, month), headers=EVALUATOR
        )
        assert response.status_code == 201

    third = client.post(
        "/api/evaluations", json=frozen_evaluation(volunteer_id, criterion_id, 3), headers=EVALUATOR
    )
    assert third.status_code == 409
    assert third.json()["code"] == "FREEZE_LIMIT_EXCEEDED"

    listing = client.get("/api/evaluations", params={"volunteer_id": volunteer_id}, headers=EVALUATOR)
    assert listing.json()["pagination"]["total"] == 2


def test_criteria_routes(client, criterion_id):
    listing = client.get("/api/criteria", headers=EVALUATOR)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1

    copy = client.post(
        f"/api/criteria/{criterion_id}/duplicate", json={"new_name": "Attendance (copy)"}, headers=ADMIN
    )
    assert copy.status_code == 201

    reordered = client.put(
        "/api/criteria/reorder",
        json={"criteria_order": [{"id": criterion_id, "sort_order": 5}]},
        headers=ADMIN,
    )
    assert reordered.status_code == 200
    assert reordered.json()[0]["sort_order"] == 5

    deleted = client.delete(f"/api/criteria/{copy.json()['id']}", headers=ADMIN)
    assert deleted.status_code == 200


def test_alert_routes(client, volunteer_id):
    created = client.post(
        "/api/alerts",
        json={
            "volunteer_id": volunteer_id,
            "alert_type": "improvement_needed",
            "alert_message": "Check in",
            "severity": "medium",
        },
        headers=EVALUATOR,
    )
    assert created.status_code == 201
    alert_id = created.json()["id"]

    assert client.post("/api/alerts/check-automatic", headers=EVALUATOR).status_code == 403
    check = client.post("/api/alerts/check-automatic", headers=ADMIN)
    assert check.status_code == 200
    assert check.json()["count"] == 0

    resolved = client.patch(
        f"/api/alerts/{alert_id}/resolve", json={"resolution_notes": "Done"}, headers=EVALUATOR
    )
    assert resolved.status_code == 200
    assert resolved.json()["is_resolved"] is True

    again = client.patch(f"/api/alerts/{alert_id}/resolve", json={}, headers=EVALUATOR)
    assert again.status_code == 409
    assert again.json()["code"] == "ALERT_ALREADY_RESOLVED"


def test_comparison_query_parsing(client, volunteer_id):
    other = client.post(
        "/api/volunteers",
        json={"full_name": "Karim Samy", "phone": "+201000000002"},
        headers=EVALUATOR,
    ).json()["id"]

    ok = client.get(
        "/api/reports/comparison",
        params={"volunteer_ids": f"{volunteer_id},{other}", "year": 2024},
        headers=EVALUATOR,
    )
    assert ok.status_code == 200
    assert ok.json()["comparison_period"]["volunteers_count"] == 2

    bad = client.get(
        "/api/reports/comparison", params={"volunteer_ids": "1,abc"}, headers=EVALUATOR
    )
    assert bad.status_code == 400

    single = client.get(
        "/api/reports/comparison", params={"volunteer_ids": str(volunteer_id)}, headers=EVALUATOR
    )
    assert single.status_code == 400


def test_organization_report_route(client, volunteer_id):
    response = client.get("/api/reports/organization", params={"year": 2024}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["organization_overview"]["total_volunteers"] == 1
