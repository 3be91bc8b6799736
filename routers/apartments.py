# routers/apartments.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from core.cache import cache_get, cache_set, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard


router = APIRouter(
    prefix="/apartments",
    tags=["Apartments"],
)


# ============================================================
# LIST APARTMENTS (building_id filter)
# ============================================================
@router.get(
    "",
    summary="List Apartments",
    description="""
    Apartments in the caller's active building scope.

    **Caching:** cached per principal and selection; dropped on scope change.
    **Permissions:** Requires `apartments:read` permission.
    """,
    dependencies=[Depends(requires_permission("apartments:read"))],
)
def list_apartments(
    limit: int = Query(500, ge=1, le=1000),
    occupied: Optional[bool] = None,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "apartments", guard.scope.selection, limit, occupied)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        query = guard.by_building("apartments")
        if query is not None:
            if occupied is not None:
                query = query.eq("is_occupied", occupied)
            query = query.order("unit_number").limit(limit)

        rows = guard.fetch(query)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch apartments", 500)

    result = {"success": True, "data": rows}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# GET APARTMENT
# ============================================================
@router.get(
    "/{apartment_id}",
    summary="Get Apartment",
    dependencies=[Depends(requires_permission("apartments:read"))],
)
def get_apartment(
    apartment_id: str,
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    try:
        query = guard.by_building("apartments")
        if query is not None:
            query = query.eq("id", apartment_id).limit(1)
        rows = guard.fetch(query)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch apartment", 500)

    # Outside the scope looks the same as missing
    if not rows:
        raise HTTPException(404, f"Apartment '{apartment_id}' not found")

    return rows[0]
