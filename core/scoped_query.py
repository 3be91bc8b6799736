# core/scoped_query.py

"""
Building-scoped query helpers.

Every list/detail read of apartments, tenants, payments, maintenance
requests and analytics goes through ScopedQueryGuard:

    • apartments (and expenses) carry building_id → filtered directly
    • tenants, payments, maintenance requests carry apartment_id →
      filtered by the apartment ids of the scoped buildings

A self-scoped guard (tenants) narrows further to the principal's own
apartment, and payments/tenant rows to their own tenancy.

An empty id set short-circuits to "no rows". It is never turned into
"no filter".
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from core.access_scope import (
    ALL_BUILDINGS,
    DataStoreError,
    ResolverStatus,
    ScopeError,
    ScopeSnapshot,
    ScopeSource,
)
from core.errors import extract_supabase_error
from core.logging_config import get_logger

logger = get_logger("scoped_query")

# Tables whose rows belong to one tenancy → column holding tenants.id
OWNER_COLUMNS = {
    "payments": "tenant_id",
    "tenants": "id",
}


def _execute(operation: str, query) -> list:
    try:
        res = query.execute()
    except Exception as e:
        raise DataStoreError(operation, extract_supabase_error(e)) from e
    return res.data or []


@dataclass(frozen=True)
class TenancyRef:
    """The principal's active tenants row."""

    tenant_id: str
    apartment_id: Optional[str]


def lookup_tenancy(client, user_id: str) -> Optional[TenancyRef]:
    rows = _execute(
        "Fetch own tenancy",
        client.table("tenants")
        .select("id, apartment_id")
        .eq("user_id", user_id)
        .eq("is_active", True)
        .limit(1),
    )
    if not rows or not rows[0].get("id"):
        return None
    return TenancyRef(tenant_id=rows[0]["id"], apartment_id=rows[0].get("apartment_id"))


@dataclass(frozen=True)
class BuildingScope:
    """The building ids the current selection expands to."""

    building_ids: Tuple[str, ...]
    principal_id: Optional[str] = None
    selection: str = ALL_BUILDINGS
    source: ScopeSource = ScopeSource.none

    @property
    def is_empty(self) -> bool:
        return not self.building_ids

    def contains(self, building_id: Optional[str]) -> bool:
        return building_id is not None and building_id in self.building_ids

    @classmethod
    def from_snapshot(cls, snapshot: ScopeSnapshot) -> "BuildingScope":
        """
        "all"  → every building in the resolved set
        id     → just that building
        The resolved set is what the principal may see, so "all" never
        means "every row in the table".
        """
        if snapshot.status == ResolverStatus.error:
            raise ScopeError(snapshot.error or "Building access could not be resolved")
        if snapshot.status != ResolverStatus.resolved:
            raise ScopeError("Building access has not been resolved")

        if not snapshot.authenticated or not snapshot.buildings:
            ids = ()
        elif snapshot.selection == ALL_BUILDINGS:
            ids = tuple(snapshot.building_ids)
        elif snapshot.selection in snapshot.building_ids:
            ids = (snapshot.selection,)
        else:
            ids = ()

        return cls(
            building_ids=ids,
            principal_id=snapshot.principal_id,
            selection=snapshot.selection,
            source=snapshot.source,
        )


class ScopedQueryGuard:
    """
    Builds Supabase queries restricted to a BuildingScope.

    Query builders return None when the scope (or the transitive apartment
    set) is empty; `fetch(None)` is an empty list. With self_only set, the
    apartment set is the tenancy's apartment (if it lies in scope) and
    OWNER_COLUMNS tables are filtered to the tenancy.
    """

    def __init__(self, client, scope: BuildingScope, tenancy: Optional[TenancyRef] = None, self_only: bool = False):
        self.client = client
        self.scope = scope
        self.tenancy = tenancy
        self.self_only = self_only
        self._apartment_ids: Optional[List[str]] = None

    # -----------------------------------------------------
    # Transitive step: buildings → apartment ids
    # -----------------------------------------------------
    def apartment_ids(self) -> List[str]:
        if self._apartment_ids is not None:
            return self._apartment_ids

        if self.scope.is_empty or (self.self_only and not (self.tenancy and self.tenancy.apartment_id)):
            self._apartment_ids = []
            return self._apartment_ids

        query = (
            self.client.table("apartments")
            .select("id")
            .in_("building_id", list(self.scope.building_ids))
        )
        if self.self_only:
            query = query.eq("id", self.tenancy.apartment_id)

        rows = _execute("Fetch scoped apartments", query)
        self._apartment_ids = [row["id"] for row in rows if row.get("id")]

        if not self._apartment_ids:
            logger.debug(f"No apartments in scope {self.scope.building_ids}")

        return self._apartment_ids

    def contains_apartment(self, apartment_id: Optional[str]) -> bool:
        return apartment_id is not None and apartment_id in self.apartment_ids()

    # -----------------------------------------------------
    # Query builders
    # -----------------------------------------------------
    def by_building(self, table: str, columns: str = "*", column: str = "building_id"):
        if self.scope.is_empty:
            return None
        return (
            self.client.table(table)
            .select(columns)
            .in_(column, list(self.scope.building_ids))
        )

    def by_apartment(self, table: str, columns: str = "*", column: str = "apartment_id"):
        apartment_ids = self.apartment_ids()
        if not apartment_ids:
            return None
        query = (
            self.client.table(table)
            .select(columns)
            .in_(column, apartment_ids)
        )
        owner_column = OWNER_COLUMNS.get(table)
        if self.self_only and owner_column:
            query = query.eq(owner_column, self.tenancy.tenant_id)
        return query

    @staticmethod
    def fetch(query) -> list:
        if query is None:
            return []
        res = query.execute()
        return res.data or []
