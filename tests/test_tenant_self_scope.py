# tests/test_tenant_self_scope.py

"""
Tenants see and write only their own tenancy's rows, even inside a
building they share with other tenants.
"""

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from dependencies.auth import CurrentUser


# ============================================================
# Reads
# ============================================================
def test_tenant_sees_only_own_payments(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    data = client.get("/payments").json()["data"]

    # pay-9 belongs to the neighbour in apt-a2
    assert [p["id"] for p in data] == ["pay-1"]


def test_tenant_sees_only_own_apartment_requests(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    data = client.get("/maintenance-requests").json()["data"]

    assert [r["id"] for r in data] == ["req-1"]


def test_admin_still_sees_whole_building(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    data = client.get("/payments").json()["data"]

    assert sorted(p["id"] for p in data) == ["pay-1", "pay-9"]


def test_tenant_without_tenancy_row_sees_nothing(client: TestClient, login_as):
    # Resolves through the fallback sample, but owns no tenancy
    login_as(CurrentUser(id="ghost", email="ghost@example.com", role="tenant"))

    assert client.get("/payments").json()["data"] == []
    assert client.get("/maintenance-requests").json()["data"] == []
    assert client.get("/dashboard/me").status_code == 404


# ============================================================
# Writes
# ============================================================
def test_tenant_cannot_pay_for_neighbour(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.post("/payments", json={
        "apartment_id": "apt-a2",
        "amount": 1100,
        "due_date": "2024-05-01",
    })

    assert response.status_code == 403


def test_tenant_payment_is_always_pending(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.post("/payments", json={
        "apartment_id": "apt-a1",
        "tenant_id": "ten-3",
        "amount": 1200,
        "status": "completed",
        "due_date": "2024-05-01",
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["submission_status"] == "pending"
    assert data["tenant_id"] == "ten-1"


def test_tenant_cannot_request_maintenance_for_neighbour(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.post("/maintenance-requests", json={"apartment_id": "apt-a2", "title": "Noise"})

    assert response.status_code == 403


# ============================================================
# Payment review
# ============================================================
def test_admin_approves_pending_payment(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    response = client.patch("/payments/pay-9", json={"decision": "approved", "notes": "Receipt ok"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["submission_status"] == "approved"
    assert data["paid_date"] == datetime.now(timezone.utc).date().isoformat()
    assert data["reviewed_by"] == "admin-user"

    # Already reviewed
    again = client.patch("/payments/pay-9", json={"decision": "rejected"})
    assert again.status_code == 400


def test_admin_rejects_tenant_submission(client: TestClient, login_as, mock_tenant_user, mock_admin_user):
    login_as(mock_tenant_user)
    submitted = client.post("/payments", json={
        "apartment_id": "apt-a1",
        "amount": 50,
        "due_date": "2024-05-01",
    }).json()["data"]

    login_as(mock_admin_user)
    response = client.patch(f"/payments/{submitted['id']}", json={"decision": "rejected"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "failed"
    assert response.json()["data"]["submission_status"] == "rejected"


def test_tenant_cannot_review_payments(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.patch("/payments/pay-1", json={"decision": "approved"})

    assert response.status_code == 403


def test_review_outside_scope_is_not_found(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    response = client.patch("/payments/pay-2", json={"decision": "approved"})

    assert response.status_code == 404


# ============================================================
# Tenant dashboard
# ============================================================
def test_tenant_dashboard(client: TestClient, login_as, mock_tenant_user):
    login_as(mock_tenant_user)

    response = client.get("/dashboard/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tenant"] == {
        "tenant_id": "ten-1",
        "name": "Ana Lopez",
        "email": "ana@example.com",
        "apartment_id": "apt-a1",
        "apartment_number": "101",
        "building_name": "Alder House",
    }
    assert data["stats"]["total_payments"] == 1
    assert data["stats"]["completed_payments"] == 1
    assert data["stats"]["total_maintenance_requests"] == 1
    assert data["stats"]["pending_maintenance_requests"] == 1
    assert [p["id"] for p in data["recent_payments"]] == ["pay-1"]


def test_admin_has_no_tenant_dashboard(client: TestClient, login_as, mock_admin_user):
    login_as(mock_admin_user)

    assert client.get("/dashboard/me").status_code == 403
