"""
HTTP surface: envelopes, status codes and the health endpoints.
"""
from __future__ import annotations

from unittest.mock import patch


def test_health(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["time"].endswith("Z")
    assert res.headers.get("X-Request-ID")


def test_ready_ok(app_client):
    _app, client = app_client

    with patch("app.routes.core._ping_redis", return_value=True):
        res = client.get("/ready")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["checks"] == {"db": "ok", "redis": "ok"}


def test_ready_redis_down(app_client):
    _app, client = app_client

    with patch("app.routes.core._ping_redis", return_value=False):
        res = client.get("/ready")
    assert res.status_code == 503
    body = res.get_json()
    assert body["status"] == "degraded"
    assert body["checks"]["redis"] == "error"


def test_request_id_is_echoed(app_client):
    _app, client = app_client
    res = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert res.headers["X-Request-ID"] == "req-123"


def test_status_catalog_listing(app_client):
    _app, client = app_client
    res = client.get("/api/v1/statuses")
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    names = {s["name"] for m in body["data"] for s in m["subStatuses"]}
    assert {"nominated_initial", "documents_verified", "ready_for_reassessment"} <= names


def test_nominate_status_and_history_over_http(app_client, seeded):
    _app, client = app_client
    res = client.post(
        "/api/v1/candidate-projects",
        json={"candidateId": "C-2", "projectId": "P-2", "roleNeededId": "R-2", "recruiterId": "USR-REC-2"},
        headers={"X-User-Id": "USR-ADMIN"},
    )
    assert res.status_code == 201
    body = res.get_json()
    assert body["success"] is True
    assert body["message"] == "Candidate assigned to project successfully"
    cp_id = body["data"]["id"]

    res = client.post(
        f"/api/v1/candidate-projects/{cp_id}/status",
        json={"subStatusName": "pending_documents", "reason": "Collecting papers"},
        headers={"X-User-Id": "USR-ADMIN"},
    )
    assert res.status_code == 200

    res = client.get(f"/api/v1/candidate-projects/{cp_id}/history")
    items = res.get_json()["data"]["items"]
    assert [h["subStatusSnapshot"] for h in items] == ["Pending Documents", "Nominated"]
    assert items[0]["changedByName"] == "Ada Admin"


def test_duplicate_nomination_is_409(app_client, seeded):
    _app, client = app_client
    res = client.post(
        "/api/v1/candidate-projects",
        json={"candidateId": "C-1", "projectId": "P-1", "roleNeededId": "R-1"},
    )
    assert res.status_code == 409
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "CONFLICT"


def test_unknown_assignment_is_404_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/v1/candidate-projects/missing")
    assert res.status_code == 404
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["message"] == body["error"]["message"]


def test_unknown_sub_status_is_404(app_client, seeded):
    _app, client = app_client
    res = client.post(
        f"/api/v1/candidate-projects/{seeded['candidateProjectId']}/status",
        json={"subStatusName": "teleported"},
    )
    assert res.status_code == 404


def test_bad_request_is_400(app_client, seeded):
    _app, client = app_client
    res = client.post(
        f"/api/v1/candidate-projects/{seeded['candidateProjectId']}/documents",
        json={"docType": "passport"},
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"


def test_unrouted_path_uses_error_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


def test_rnr_sweep_endpoint(app_client, seeded):
    _app, client = app_client
    res = client.post("/api/v1/rnr/sweep")
    assert res.status_code == 200
    assert res.get_json()["data"] == {"processed": 0, "assigned": 0, "skipped": 0, "errors": 0}


def test_role_users_listing(app_client, seeded):
    _app, client = app_client
    res = client.get("/api/v1/roles/CRE/users")
    assert res.status_code == 200
    assert [u["userId"] for u in res.get_json()["data"]] == ["USR-CRE-1", "USR-CRE-2"]

    res = client.get("/api/v1/roles/Interview%20Coordinator/users")
    assert [u["fullName"] for u in res.get_json()["data"]] == ["Cody Coordinator"]
