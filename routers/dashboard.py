# routers/dashboard.py

from datetime import date

from fastapi import APIRouter, HTTPException, Depends

from core.analytics import sum_amounts, tenant_dashboard_stats
from core.cache import cache_get, cache_set, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.lookups import apartment_map, profile_map
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from core.utils import first_of_month
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard
from models.enums import MaintenanceStatus, PaymentStatus


router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)


def compute_dashboard_stats(guard: ScopedQueryGuard) -> dict:
    apartments = guard.fetch(guard.by_building("apartments", "id, is_occupied"))

    open_requests = guard.by_apartment("maintenance_requests", "id")
    if open_requests is not None:
        open_requests = open_requests.in_("status", MaintenanceStatus.open_states())

    active_tenants = guard.by_apartment("tenants", "id")
    if active_tenants is not None:
        active_tenants = active_tenants.eq("is_active", True)

    completed = guard.by_apartment("payments", "amount, paid_date")
    if completed is not None:
        completed = completed.eq("status", PaymentStatus.completed.value)
    completed_payments = guard.fetch(completed)

    month_start = first_of_month().isoformat()
    monthly_payments = [
        p for p in completed_payments
        if p.get("paid_date") and str(p["paid_date"])[:10] >= month_start
    ]

    return {
        "total_apartments": len(apartments),
        "occupied_apartments": len([a for a in apartments if a.get("is_occupied")]),
        "total_requests": len(guard.fetch(open_requests)),
        "total_tenants": len(guard.fetch(active_tenants)),
        "total_income": sum_amounts(completed_payments),
        "monthly_income": sum_amounts(monthly_payments),
    }


# ============================================================
# DASHBOARD STATS
# ============================================================
@router.get(
    "/stats",
    summary="Dashboard statistics",
    description="""
    Counts and income for the caller's active building scope.

    - `total_requests`: pending + in-progress maintenance requests
    - `total_tenants`: active tenants
    - `monthly_income`: completed payments paid since the 1st of this month
    """,
    dependencies=[Depends(requires_permission("dashboard:read"))],
)
def get_dashboard_stats(
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "dashboard", guard.scope.selection)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        stats = compute_dashboard_stats(guard)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch dashboard stats", 500)

    result = {"success": True, "data": stats}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# TENANT DASHBOARD (own tenancy only)
# ============================================================
RECENT_ITEMS = 5


@router.get(
    "/me",
    summary="Tenant self-service dashboard",
    description="""
    The caller's own tenancy: apartment, building, payment and
    maintenance counts, and the most recent items of each.

    **Permissions:** Requires `dashboard:self` permission.
    """,
    dependencies=[Depends(requires_permission("dashboard:self"))],
)
def get_my_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    if not guard.self_only or guard.tenancy is None:
        raise HTTPException(404, "Tenant information not found")

    cache_key = view_cache_key(current_user.id, "dashboard_me", guard.scope.selection)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        own_apartments = guard.apartment_ids()
        apartment = apartment_map(guard.client, own_apartments).get(guard.tenancy.apartment_id) or {}
        building_rows = guard.fetch(guard.by_building("buildings", "id, name", column="id"))
        buildings = {b["id"]: b for b in building_rows}

        payments = guard.by_apartment("payments")
        payments = guard.fetch(payments.order("created_at", desc=True) if payments is not None else None)

        requests = guard.by_apartment("maintenance_requests")
        requests = guard.fetch(requests.order("created_at", desc=True) if requests is not None else None)

        profile = profile_map(guard.client, [current_user.id]).get(current_user.id) or {}
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch tenant dashboard", 500)

    if not own_apartments:
        raise HTTPException(404, "Tenant information not found")

    data = {
        "tenant": {
            "tenant_id": guard.tenancy.tenant_id,
            "name": f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip(),
            "email": current_user.email,
            "apartment_id": guard.tenancy.apartment_id,
            "apartment_number": apartment.get("unit_number") or "",
            "building_name": (buildings.get(apartment.get("building_id")) or {}).get("name") or "",
        },
        "stats": tenant_dashboard_stats(payments, requests, date.today()),
        "recent_payments": payments[:RECENT_ITEMS],
        "recent_maintenance_requests": requests[:RECENT_ITEMS],
    }

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result
