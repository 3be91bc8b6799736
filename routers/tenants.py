# routers/tenants.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from core.cache import cache_get, cache_set, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.lookups import apartment_map, profile_map
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard


router = APIRouter(
    prefix="/tenants",
    tags=["Tenants"],
)


def flatten_tenant(tenant: dict, apartments: dict, profiles: dict) -> dict:
    apartment = apartments.get(tenant.get("apartment_id")) or {}
    profile = profiles.get(tenant.get("user_id")) or {}
    return {
        "id": tenant["id"],
        "user_id": tenant.get("user_id"),
        "apartment_id": tenant.get("apartment_id"),
        "first_name": profile.get("first_name") or "",
        "last_name": profile.get("last_name") or "",
        "email": profile.get("email") or "",
        "phone": tenant.get("phone") or "",
        "dni": tenant.get("dni") or "",
        "apartment": apartment.get("unit_number") or "",
        "floor": apartment.get("floor") or 0,
        "monthly_rent": apartment.get("monthly_rent") or 0,
        "lease_start_date": tenant.get("lease_start_date"),
        "lease_end_date": tenant.get("lease_end_date"),
        "is_active": tenant.get("is_active"),
        "emergency_contact_name": tenant.get("emergency_contact_name") or "",
        "emergency_contact_phone": tenant.get("emergency_contact_phone") or "",
    }


def _flatten_all(guard: ScopedQueryGuard, rows: list) -> list:
    apartments = apartment_map(guard.client, [r.get("apartment_id") for r in rows])
    profiles = profile_map(guard.client, [r.get("user_id") for r in rows])
    return [flatten_tenant(r, apartments, profiles) for r in rows]


# ============================================================
# LIST TENANTS (apartment → building filter)
# ============================================================
@router.get(
    "",
    summary="List Tenants",
    description="""
    Tenants whose apartment lies in the caller's active building scope.

    **Permissions:** Requires `tenants:read` permission.
    """,
    dependencies=[Depends(requires_permission("tenants:read"))],
)
def list_tenants(
    active: Optional[bool] = None,
    limit: int = Query(500, ge=1, le=1000),
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "tenants", guard.scope.selection, active, limit)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        query = guard.by_apartment("tenants")
        if query is not None:
            if active is not None:
                query = query.eq("is_active", active)
            query = query.order("created_at", desc=True).limit(limit)

        rows = guard.fetch(query)
        data = _flatten_all(guard, rows)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch tenants", 500)

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# GET TENANT
# ============================================================
@router.get(
    "/{tenant_id}",
    summary="Get Tenant",
    dependencies=[Depends(requires_permission("tenants:read"))],
)
def get_tenant(
    tenant_id: str,
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    try:
        query = guard.by_apartment("tenants")
        if query is not None:
            query = query.eq("id", tenant_id).limit(1)
        rows = guard.fetch(query)
        if not rows:
            raise HTTPException(404, f"Tenant '{tenant_id}' not found")
        return _flatten_all(guard, rows)[0]
    except HTTPException:
        raise
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch tenant", 500)
