# tests/test_scope_api.py

"""
End-to-end tests of the scope endpoints and the scoped views.
"""

from fastapi.testclient import TestClient

from conftest import BUILDING_A
from dependencies.auth import CurrentUser


# ============================================================
# /scope
# ============================================================
def test_anonymous_scope_is_empty(client: TestClient):
    response = client.get("/scope")

    assert response.status_code == 200
    body = response.json()
    assert body["authenticated"] is False
    assert body["buildings"] == []
    assert body["selection"] == "all"


def test_tenant_scope_is_narrowed(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    body = client.get("/scope").json()

    assert body["status"] == "resolved"
    assert body["source"] == "tenancy"
    assert body["selection"] == "bldg-a"
    assert body["selected_building"] == {"id": "bldg-a", "name": "Alder House"}


def test_admin_scope_lists_granted_buildings(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    body = client.get("/scope").json()

    assert [b["id"] for b in body["buildings"]] == ["bldg-a", "bldg-b"]
    assert body["selection"] == "all"
    assert body["selected_building"] is None


def test_user_without_grants_gets_bounded_fallback(client: TestClient, login_as):
    login_as(CurrentUser(id="stranger", email="s@example.com", role="admin"))

    body = client.get("/scope").json()

    assert body["source"] == "fallback"
    assert len(body["buildings"]) == 2


def test_invalid_selection_is_not_applied(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    response = client.put("/scope/selection", json={"building_id": "bldg-c"})

    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert response.json()["scope"]["selection"] == "all"


def test_refresh_after_revoke(client: TestClient, login_as, mock_admin_user, scope_store):
    login_as(mock_admin_user)
    client.put("/scope/selection", json={"building_id": "bldg-b"})

    scope_store.grants["admin-user"] = [BUILDING_A]
    body = client.post("/scope/refresh").json()

    assert [b["id"] for b in body["buildings"]] == ["bldg-a"]
    assert body["selection"] == "bldg-a"


def test_discard_scope(client: TestClient, login_as, mock_admin_user, app):
    login_as(mock_admin_user)
    client.get("/scope")
    assert app.state.scope_registry.session_count() == 1

    response = client.delete("/scope")

    assert response.json() == {"success": True, "discarded": True}
    assert app.state.scope_registry.session_count() == 0


# ============================================================
# Scoped views
# ============================================================
def test_selection_change_reaches_cached_views(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    all_rows = client.get("/apartments").json()["data"]
    assert {r["id"] for r in all_rows} == {"apt-a1", "apt-a2"}

    client.put("/scope/selection", json={"building_id": "bldg-b"})

    assert client.get("/apartments").json()["data"] == []


def test_building_without_apartments_has_no_dependent_rows(
    client: TestClient, login_as, mock_admin_user, fake_supabase
):
    login_as(mock_admin_user)
    client.put("/scope/selection", json={"building_id": "bldg-b"})
    fake_supabase.executed.clear()

    assert client.get("/payments").json()["data"] == []
    assert client.get("/tenants").json()["data"] == []
    assert client.get("/maintenance-requests").json()["data"] == []

    assert "payments" not in fake_supabase.executed
    assert "tenants" not in fake_supabase.executed
    assert "maintenance_requests" not in fake_supabase.executed


def test_out_of_scope_detail_is_not_found(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    assert client.get("/apartments/apt-a1").status_code == 200
    assert client.get("/apartments/apt-c1").status_code == 404


def test_payments_are_enriched(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    data = client.get("/payments").json()["data"]

    assert [p["id"] for p in data] == ["pay-1"]
    assert data[0]["tenant_name"] == "Ana Lopez"
    assert data[0]["apartment"] == "101"


def test_payment_outside_scope_is_forbidden(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.post("/payments", json={
        "apartment_id": "apt-c1",
        "amount": 100,
        "due_date": "2024-04-01",
    })

    assert response.status_code == 403


def test_completed_payment_gets_paid_date(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    response = client.post("/payments", json={
        "apartment_id": "apt-a1",
        "amount": 1200,
        "currency": " usd ",
        "due_date": "2024-04-01",
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["paid_date"] == "2024-04-01"
    assert data["currency"] == "USD"


def test_maintenance_request_lifecycle(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    created = client.post("/maintenance-requests", json={
        "apartment_id": "apt-a2",
        "title": "Broken window",
    })
    assert created.status_code == 200
    request = created.json()["data"]
    assert request["building_id"] == "bldg-a"
    assert request["status"] == "pending"

    updated = client.patch(f"/maintenance-requests/{request['id']}", json={"status": "completed"})
    assert updated.status_code == 200
    assert updated.json()["data"]["completed_at"]

    # Requests in buildings outside the scope cannot be touched
    assert client.patch("/maintenance-requests/req-2", json={"status": "completed"}).status_code == 404


def test_dashboard_stats(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    stats = client.get("/dashboard/stats").json()["data"]

    assert stats["total_apartments"] == 2
    assert stats["occupied_apartments"] == 1
    assert stats["total_requests"] == 2
    assert stats["total_tenants"] == 2
    assert stats["total_income"] == 1200


def test_analytics_rejects_bad_range(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    assert client.get("/analytics", params={"start": "2024-05-01", "end": "2024-01-01"}).status_code == 400
    assert client.get("/analytics", params={"start": "May 1"}).status_code == 400


# ============================================================
# Failure handling
# ============================================================
def test_store_failure_is_service_unavailable(client: TestClient, login_as, mock_admin_user, scope_store):
    scope_store.fail = True
    login_as(mock_admin_user)

    response = client.get("/payments")

    assert response.status_code == 503


def test_failed_refresh_keeps_last_scope(client: TestClient, login_as, mock_admin_user, scope_store):
    login_as(mock_admin_user)
    client.put("/scope/selection", json={"building_id": "bldg-b"})

    scope_store.fail = True
    assert client.post("/scope/refresh").status_code == 503

    body = client.get("/scope").json()
    assert body["status"] == "error"
    assert body["selection"] == "bldg-b"
    # Scoped views refuse to run on an errored scope
    assert client.get("/apartments").status_code == 503

    scope_store.fail = False
    assert client.post("/scope/refresh").json()["status"] == "resolved"


def test_health_reports_sessions(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)
    client.get("/scope")

    body = client.get("/health/app").json()

    assert body["status"] == "ok"
    assert body["scope_sessions"] == 1


def test_apartment_lookup_failure_is_service_unavailable(
    client: TestClient, login_as, mock_admin_user, fake_supabase
):
    login_as(mock_admin_user)
    fake_supabase.fail_tables = {"apartments"}

    assert client.get("/payments").status_code == 503
    assert client.get("/maintenance-requests").status_code == 503


def test_tenancy_lookup_failure_is_service_unavailable(
    client: TestClient, login_as, mock_tenant_user, fake_supabase
):
    login_as(mock_tenant_user)
    client.get("/scope")
    fake_supabase.fail_tables = {"tenants"}

    assert client.get("/payments").status_code == 503
