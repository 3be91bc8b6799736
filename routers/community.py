# routers/community.py

from fastapi import APIRouter, HTTPException, Depends, Query

from core.cache import cache_get, cache_set, invalidate_principal, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.lookups import profile_map
from core.permission_helpers import has_permission, requires_permission
from core.scoped_query import ScopedQueryGuard
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard
from models.community import CommunityPostCreate


router = APIRouter(
    prefix="/community-posts",
    tags=["Community Board"],
)


def author_name(profile: dict) -> str:
    if not profile:
        return "Anonymous"
    return f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip() or "Anonymous"


# ============================================================
# LIST POSTS
# ============================================================
@router.get(
    "",
    summary="List Community Posts",
    description="""
    Board posts of the buildings in the active selection. Pinned posts
    first, then newest first.

    **Permissions:** Requires `community:read` permission.
    """,
    dependencies=[Depends(requires_permission("community:read"))],
)
def list_posts(
    limit: int = Query(100, ge=1, le=500),
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "community", guard.scope.selection, limit)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        query = guard.by_building("community_posts")
        if query is not None:
            query = query.order("created_at", desc=True).limit(limit)
        rows = guard.fetch(query)
        profiles = profile_map(guard.client, [r.get("author_id") for r in rows])
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch community posts", 500)

    # stable sort keeps newest-first inside each group
    rows = sorted(rows, key=lambda r: not r.get("is_pinned"))
    data = [
        {**row, "author_name": author_name(profiles.get(row.get("author_id")))}
        for row in rows
    ]

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# CREATE POST
# ============================================================
@router.post(
    "",
    summary="Create Community Post",
    dependencies=[Depends(requires_permission("community:write"))],
)
def create_post(
    payload: CommunityPostCreate,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    building_id = payload.building_id
    if building_id is None:
        if len(guard.scope.building_ids) != 1:
            raise HTTPException(400, "building_id is required unless a single building is selected")
        building_id = guard.scope.building_ids[0]

    if not guard.scope.contains(building_id):
        raise HTTPException(403, f"Building '{building_id}' is outside your building scope")

    if payload.is_pinned and not has_permission(current_user, "community:pin"):
        raise HTTPException(403, "Insufficient permissions: 'community:pin' required")

    data = sanitize(payload.model_dump())
    data.update({
        "building_id": building_id,
        "author_id": current_user.id,
        "likes_count": 0,
        "comments_count": 0,
    })

    try:
        res = guard.client.table("community_posts").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create community post", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    invalidate_principal(current_user.id, "community")
    logger.info(f"Community post created by {current_user.id} in building {building_id}")

    return {"success": True, "data": res.data[0]}
