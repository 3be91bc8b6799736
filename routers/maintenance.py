# routers/maintenance.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from datetime import datetime, timezone

from core.cache import cache_get, cache_set, invalidate_principal, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.lookups import apartment_map
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard
from models.enums import MaintenancePriority, MaintenanceStatus
from models.maintenance import MaintenanceRequestCreate, MaintenanceRequestUpdate


router = APIRouter(
    prefix="/maintenance-requests",
    tags=["Maintenance"],
)


def _fetch_scoped_request(guard: ScopedQueryGuard, request_id: str) -> dict:
    query = guard.by_apartment("maintenance_requests")
    if query is not None:
        query = query.eq("id", request_id).limit(1)
    rows = guard.fetch(query)
    if not rows:
        raise HTTPException(404, f"Maintenance request '{request_id}' not found")
    return rows[0]


# ============================================================
# LIST REQUESTS
# ============================================================
@router.get(
    "",
    summary="List Maintenance Requests",
    description="""
    Maintenance requests for apartments in the caller's active building
    scope, newest first.

    **Permissions:** Requires `maintenance:read` permission.
    """,
    dependencies=[Depends(requires_permission("maintenance:read"))],
)
def list_requests(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    status: Optional[MaintenanceStatus] = None,
    priority: Optional[MaintenancePriority] = None,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "maintenance", guard.scope.selection, limit, status, priority)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        query = guard.by_apartment("maintenance_requests")
        if query is not None:
            if status:
                query = query.eq("status", status.value)
            if priority:
                query = query.eq("priority", priority.value)
            query = query.order("created_at", desc=True)
            if limit:
                query = query.limit(limit)

        rows = guard.fetch(query)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch maintenance requests", 500)

    result = {"success": True, "data": rows}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# CREATE REQUEST
# ============================================================
@router.post(
    "",
    summary="Create Maintenance Request",
    dependencies=[Depends(requires_permission("maintenance:write"))],
)
def create_request(
    payload: MaintenanceRequestCreate,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    try:
        in_scope = guard.contains_apartment(payload.apartment_id)
        apartment = apartment_map(guard.client, [payload.apartment_id]).get(payload.apartment_id) if in_scope else None
    except Exception as e:
        raise handle_supabase_error(e, "Failed to verify apartment scope", 500)

    if not in_scope or apartment is None:
        raise HTTPException(403, f"Apartment '{payload.apartment_id}' is outside your building scope")

    data = sanitize(payload.model_dump())
    data.update({
        "status": MaintenanceStatus.pending.value,
        "building_id": apartment.get("building_id"),
        "apartment": apartment.get("unit_number"),
        "tenant_id": current_user.id,
    })

    try:
        res = guard.client.table("maintenance_requests").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create maintenance request", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    invalidate_principal(current_user.id)
    logger.info(f"Maintenance request created by {current_user.id} for apartment {payload.apartment_id}")

    return {"success": True, "data": res.data[0]}


# ============================================================
# UPDATE REQUEST
# ============================================================
@router.patch(
    "/{request_id}",
    summary="Update Maintenance Request",
    dependencies=[Depends(requires_permission("maintenance:update"))],
)
def update_request(
    request_id: str,
    payload: MaintenanceRequestUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    update_data = sanitize(payload.model_dump(exclude_unset=True))
    if not update_data:
        raise HTTPException(400, "No fields to update")

    try:
        existing = _fetch_scoped_request(guard, request_id)

        if (
            update_data.get("status") == MaintenanceStatus.completed.value
            and existing.get("status") != MaintenanceStatus.completed.value
        ):
            update_data["completed_at"] = datetime.now(timezone.utc).isoformat()

        res = (
            guard.client.table("maintenance_requests")
            .update(update_data)
            .eq("id", request_id)
            .execute()
        )
    except HTTPException:
        raise
    except Exception as e:
        raise handle_supabase_error(e, "Failed to update maintenance request", 500)

    if not res.data:
        raise HTTPException(404, f"Maintenance request '{request_id}' not found")

    invalidate_principal(current_user.id)
    return {"success": True, "data": res.data[0]}
