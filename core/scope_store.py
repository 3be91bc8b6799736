# core/scope_store.py

from typing import List, Optional

from supabase import Client

from core.access_scope import BuildingRef, DataStoreError
from core.errors import extract_supabase_error
from core.logging_config import get_logger

logger = get_logger("scope_store")

DEFAULT_BUILDING_NAME = "Building"


class SupabaseScopeStore:
    """
    Grant and building reads used by AccessScopeResolver.

    Joins are expressed as explicit steps (ids first, then the rows they
    reference) rather than nested selects. Any client failure is raised as
    DataStoreError; nothing here falls back to a broader query.
    """

    def __init__(self, client: Optional[Client]):
        self._client = client

    def _table(self, name: str):
        if self._client is None:
            raise DataStoreError("Supabase client", "not configured")
        return self._client.table(name)

    def _execute(self, operation: str, query) -> list:
        try:
            res = query.execute()
        except DataStoreError:
            raise
        except Exception as e:
            raise DataStoreError(operation, extract_supabase_error(e)) from e
        return res.data or []

    # -----------------------------------------------------
    # Building lookup
    # -----------------------------------------------------
    def _buildings_by_id(self, building_ids: List[str]) -> dict:
        if not building_ids:
            return {}
        rows = self._execute(
            "Fetch buildings",
            self._table("buildings").select("id, name").in_("id", building_ids),
        )
        return {row["id"]: row for row in rows}

    # -----------------------------------------------------
    # 1) Explicit admin grants
    # -----------------------------------------------------
    def admin_building_grants(self, principal_id: str) -> List[BuildingRef]:
        grant_rows = self._execute(
            "Fetch admin building access",
            self._table("admin_building_access")
            .select("building_id")
            .eq("admin_id", principal_id),
        )

        # Distinct ids in grant order
        building_ids = list(dict.fromkeys(
            row["building_id"] for row in grant_rows if row.get("building_id")
        ))
        if not building_ids:
            return []

        building_map = self._buildings_by_id(building_ids)

        return [
            BuildingRef(
                id=bid,
                name=(building_map.get(bid) or {}).get("name") or DEFAULT_BUILDING_NAME,
            )
            for bid in building_ids
        ]

    # -----------------------------------------------------
    # 2) Active tenancy → apartment → building
    # -----------------------------------------------------
    def active_tenancy_building(self, principal_id: str) -> Optional[BuildingRef]:
        tenant_rows = self._execute(
            "Fetch tenancy",
            self._table("tenants")
            .select("apartment_id")
            .eq("user_id", principal_id)
            .eq("is_active", True)
            .limit(1),
        )
        if not tenant_rows or not tenant_rows[0].get("apartment_id"):
            return None

        apartment_id = tenant_rows[0]["apartment_id"]
        apartment_rows = self._execute(
            "Fetch tenancy apartment",
            self._table("apartments")
            .select("building_id")
            .eq("id", apartment_id)
            .limit(1),
        )
        if not apartment_rows or not apartment_rows[0].get("building_id"):
            logger.warning(f"Tenant {principal_id} references apartment {apartment_id} with no building")
            return None

        building_id = apartment_rows[0]["building_id"]
        building = self._buildings_by_id([building_id]).get(building_id) or {}

        return BuildingRef(
            id=building_id,
            name=building.get("name") or DEFAULT_BUILDING_NAME,
        )

    # -----------------------------------------------------
    # 3) Fallback sample
    # -----------------------------------------------------
    def sample_buildings(self, limit: int) -> List[BuildingRef]:
        rows = self._execute(
            "Fetch building sample",
            self._table("buildings").select("id, name").limit(limit),
        )
        return [
            BuildingRef(id=row["id"], name=row.get("name") or DEFAULT_BUILDING_NAME)
            for row in rows
            if row.get("id")
        ]
