# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import uuid
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch
from typing import Generator

from core.access_scope import BuildingRef, DataStoreError
from core.scope_registry import ScopeRegistry
from dependencies.auth import CurrentUser, get_current_user, get_optional_auth
from main import create_app


# ============================================================
# In-memory stand-ins
# ============================================================
class FakeScopeStore:
    """Grant reads for AccessScopeResolver, backed by dicts."""

    def __init__(self, grants=None, tenancies=None, buildings=None):
        self.grants = grants or {}          # principal → [BuildingRef]
        self.tenancies = tenancies or {}    # principal → BuildingRef
        self.buildings = buildings or []    # fallback sample source
        self.fail = False
        self.calls = []

    def _maybe_fail(self, operation):
        if self.fail:
            raise DataStoreError(operation, "connection reset")

    def admin_building_grants(self, principal_id):
        self.calls.append(("grants", principal_id))
        self._maybe_fail("Fetch admin building access")
        return list(self.grants.get(principal_id, []))

    def active_tenancy_building(self, principal_id):
        self.calls.append(("tenancy", principal_id))
        self._maybe_fail("Fetch tenancy")
        return self.tenancies.get(principal_id)

    def sample_buildings(self, limit):
        self.calls.append(("sample", limit))
        self._maybe_fail("Fetch building sample")
        return list(self.buildings[:limit])


class FakeQuery:
    """Just enough of the PostgREST builder for the scoped views."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.filters = []
        self._order = None
        self._limit = None
        self._insert = None
        self._update = None

    def select(self, columns="*"):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and str(row[column]) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and str(row[column]) <= value)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def insert(self, data):
        self._insert = data
        return self

    def update(self, data):
        self._update = data
        return self

    def execute(self):
        self.db.executed.append(self.table)
        if self.table in self.db.fail_tables:
            raise Exception(f"connection reset reading {self.table}")
        rows = self.db.tables.setdefault(self.table, [])

        if self._insert is not None:
            row = {"id": str(uuid.uuid4()), **self._insert}
            rows.append(row)
            return FakeResponse([dict(row)])

        matched = [r for r in rows if all(f(r) for f in self.filters)]

        if self._update is not None:
            for row in matched:
                row.update(self._update)
            return FakeResponse([dict(r) for r in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResponse([dict(r) for r in matched])


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.executed = []
        self.fail_tables = set()

    def table(self, name):
        return FakeQuery(self, name)


# ============================================================
# Sample data: buildings A and B, B has no apartments
# ============================================================
BUILDING_A = BuildingRef(id="bldg-a", name="Alder House")
BUILDING_B = BuildingRef(id="bldg-b", name="Birch Court")
BUILDING_C = BuildingRef(id="bldg-c", name="Cedar Place")


def sample_tables():
    return {
        "buildings": [
            {"id": "bldg-a", "name": "Alder House", "total_apartments": 2},
            {"id": "bldg-b", "name": "Birch Court", "total_apartments": 0},
            {"id": "bldg-c", "name": "Cedar Place", "total_apartments": 1},
        ],
        "apartments": [
            {"id": "apt-a1", "building_id": "bldg-a", "unit_number": "101", "floor": 1, "monthly_rent": 1200, "is_occupied": True},
            {"id": "apt-a2", "building_id": "bldg-a", "unit_number": "102", "floor": 1, "monthly_rent": 1100, "is_occupied": False},
            {"id": "apt-c1", "building_id": "bldg-c", "unit_number": "1", "floor": 0, "monthly_rent": 900, "is_occupied": True},
        ],
        "tenants": [
            {"id": "ten-1", "user_id": "tenant-user", "apartment_id": "apt-a1", "is_active": True,
             "created_at": "2024-01-10T00:00:00+00:00", "lease_start_date": "2023-01-01"},
            {"id": "ten-2", "user_id": "other-user", "apartment_id": "apt-c1", "is_active": True,
             "created_at": "2024-02-10T00:00:00+00:00", "lease_start_date": "2023-06-01"},
            # neighbour of tenant-user in the same building
            {"id": "ten-3", "user_id": "neighbour-user", "apartment_id": "apt-a2", "is_active": True,
             "created_at": "2024-02-20T00:00:00+00:00", "lease_start_date": "2023-09-01"},
        ],
        "user_profiles": [
            {"id": "tenant-user", "first_name": "Ana", "last_name": "Lopez", "email": "ana@example.com"},
        ],
        "payments": [
            {"id": "pay-1", "apartment_id": "apt-a1", "tenant_id": "ten-1", "amount": 1200, "status": "completed",
             "due_date": "2024-03-01", "paid_date": "2024-03-01", "created_at": "2024-03-01T00:00:00+00:00"},
            {"id": "pay-2", "apartment_id": "apt-c1", "tenant_id": "ten-2", "amount": 900, "status": "overdue",
             "due_date": "2024-03-01", "paid_date": None, "created_at": "2024-03-02T00:00:00+00:00"},
            {"id": "pay-9", "apartment_id": "apt-a2", "tenant_id": "ten-3", "amount": 1100, "status": "pending",
             "submission_status": "pending", "due_date": "2024-04-01", "paid_date": None,
             "created_at": "2024-04-01T00:00:00+00:00"},
        ],
        "maintenance_requests": [
            {"id": "req-1", "apartment_id": "apt-a1", "building_id": "bldg-a", "title": "Leak", "status": "pending",
             "priority": "high", "estimated_cost": 150, "created_at": "2024-03-05T00:00:00+00:00"},
            {"id": "req-2", "apartment_id": "apt-c1", "building_id": "bldg-c", "title": "Heater", "status": "completed",
             "priority": "low", "estimated_cost": 80, "created_at": "2024-03-06T00:00:00+00:00"},
            {"id": "req-9", "apartment_id": "apt-a2", "building_id": "bldg-a", "title": "Door", "status": "pending",
             "priority": "medium", "estimated_cost": 40, "created_at": "2024-04-02T00:00:00+00:00"},
        ],
        "expenses": [],
        "community_posts": [
            {"id": "post-1", "building_id": "bldg-a", "author_id": "tenant-user", "title": "Bake sale",
             "content": "Saturday", "post_type": "social", "is_pinned": False, "created_at": "2024-03-02T00:00:00+00:00"},
            {"id": "post-2", "building_id": "bldg-a", "author_id": "admin-user", "title": "Water shut-off",
             "content": "Monday 9am", "post_type": "announcement", "is_pinned": True, "created_at": "2024-03-01T00:00:00+00:00"},
            {"id": "post-3", "building_id": "bldg-c", "author_id": "other-user", "title": "Elsewhere",
             "content": "Not visible", "post_type": "question", "is_pinned": False, "created_at": "2024-03-03T00:00:00+00:00"},
        ],
    }


# ============================================================
# Fixtures
# ============================================================
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def scope_store():
    return FakeScopeStore(
        grants={"admin-user": [BUILDING_A, BUILDING_B]},
        tenancies={"tenant-user": BUILDING_A},
        buildings=[BUILDING_A, BUILDING_B, BUILDING_C],
    )


@pytest.fixture
def fake_supabase():
    return FakeSupabase(sample_tables())


@pytest.fixture
def mock_admin_user():
    return CurrentUser(id="admin-user", email="admin@example.com", role="admin")


@pytest.fixture
def mock_tenant_user():
    return CurrentUser(id="tenant-user", email="ana@example.com", role="tenant")


@pytest.fixture(scope="function")
def app(scope_store, fake_supabase):
    """FastAPI app wired to the fake grant store and fake Supabase."""
    registry = ScopeRegistry(lambda: scope_store, fallback_enabled=True, fallback_sample_size=2)
    with patch("dependencies.scope.get_supabase_client", return_value=fake_supabase):
        yield create_app(scope_registry=registry)


@pytest.fixture
def login_as(app):
    """login_as(user) makes every request authenticate as `user`."""
    def _login(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_auth] = lambda: user
    yield _login
    app.dependency_overrides = {}


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_cache():
    """Reset cache before each test."""
    from core.cache import cache_clear
    cache_clear()
    yield
    cache_clear()
