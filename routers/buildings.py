# routers/buildings.py

from fastapi import APIRouter, HTTPException, Depends

from core.cache import cache_get, cache_set, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard


router = APIRouter(
    prefix="/buildings",
    tags=["Buildings"],
)


def with_apartment_counts(buildings: list, apartments: list) -> list:
    counts = {}
    for apt in apartments:
        total, occupied = counts.get(apt.get("building_id"), (0, 0))
        counts[apt.get("building_id")] = (total + 1, occupied + (1 if apt.get("is_occupied") else 0))

    output = []
    for building in buildings:
        total, occupied = counts.get(building["id"], (0, 0))
        output.append({
            **building,
            "apartment_count": total,
            "occupied_count": occupied,
        })
    return output


def _fetch_buildings(guard: ScopedQueryGuard, building_id: str = None) -> list:
    query = guard.by_building("buildings", column="id")
    if query is None:
        return []
    if building_id:
        query = query.eq("id", building_id)
    buildings = guard.fetch(query.order("created_at", desc=True))
    if not buildings:
        return []

    apartments = guard.fetch(
        guard.client.table("apartments")
        .select("id, building_id, is_occupied")
        .in_("building_id", [b["id"] for b in buildings])
    )
    return with_apartment_counts(buildings, apartments)


# ============================================================
# LIST BUILDINGS
# ============================================================
@router.get(
    "",
    summary="List Buildings",
    description="""
    Buildings in the caller's active selection, newest first, with
    apartment and occupied counts.

    **Permissions:** Requires `buildings:read` permission.
    """,
    dependencies=[Depends(requires_permission("buildings:read"))],
)
def list_buildings(
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "buildings", guard.scope.selection)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        data = _fetch_buildings(guard)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch buildings", 500)

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# GET BUILDING
# ============================================================
@router.get(
    "/{building_id}",
    summary="Get Building",
    dependencies=[Depends(requires_permission("buildings:read"))],
)
def get_building(
    building_id: str,
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    if not guard.scope.contains(building_id):
        raise HTTPException(404, f"Building '{building_id}' not found")

    try:
        rows = _fetch_buildings(guard, building_id)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch building", 500)

    if not rows:
        raise HTTPException(404, f"Building '{building_id}' not found")

    return rows[0]
