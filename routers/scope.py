# routers/scope.py

from typing import Optional
from fastapi import APIRouter, Depends

from core.access_scope import DataStoreError, ScopeSnapshot, ResolverStatus, ScopeSource
from core.errors import scope_http_error
from core.logging_config import logger
from core.permission_helpers import requires_permission
from core.scope_registry import ScopeRegistry
from dependencies.auth import get_current_user, get_optional_auth, CurrentUser
from dependencies.scope import get_scope_registry, get_scope_snapshot
from models.scope import ScopeRead, SelectionUpdate, SelectionResult


router = APIRouter(
    prefix="/scope",
    tags=["Building Scope"],
)

UNAUTHENTICATED_SCOPE = ScopeSnapshot(
    status=ResolverStatus.resolved,
    source=ScopeSource.unauthenticated,
)


# ============================================================
# GET CURRENT SCOPE
# ============================================================
@router.get(
    "",
    response_model=ScopeRead,
    summary="Current building scope",
    description="""
    Buildings the caller may act on and the active selection.

    The first call after sign-in resolves the scope. Anonymous callers
    receive an empty scope (`authenticated: false`), never every building.
    """,
)
async def get_scope(
    current_user: Optional[CurrentUser] = Depends(get_optional_auth),
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    if current_user is None:
        return UNAUTHENTICATED_SCOPE.to_dict()

    snapshot = await get_scope_snapshot(current_user, registry)
    return snapshot.to_dict()


# ============================================================
# SET SELECTION
# ============================================================
@router.put(
    "/selection",
    response_model=SelectionResult,
    summary="Select a building (or all)",
    dependencies=[Depends(requires_permission("scope:read"))],
)
async def set_selection(
    payload: SelectionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    # Make sure there is a resolved set to validate against
    await get_scope_snapshot(current_user, registry)

    resolver = registry.for_principal(current_user.id)
    applied = resolver.set_selection(payload.building_id)

    return {"applied": applied, "scope": resolver.snapshot().to_dict()}


# ============================================================
# REFRESH
# ============================================================
@router.post(
    "/refresh",
    response_model=ScopeRead,
    summary="Re-resolve building access",
    dependencies=[Depends(requires_permission("scope:read"))],
)
async def refresh_scope(
    current_user: CurrentUser = Depends(get_current_user),
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    resolver = registry.for_principal(current_user.id)

    try:
        if resolver.status == ResolverStatus.unresolved:
            snapshot = await resolver.resolve(current_user.id)
        else:
            snapshot = await resolver.refresh()
    except DataStoreError as e:
        raise scope_http_error(e)

    return snapshot.to_dict()


# ============================================================
# SIGN-OUT: discard the session's resolver
# ============================================================
@router.delete(
    "",
    summary="Discard building scope (sign-out)",
)
async def discard_scope(
    current_user: CurrentUser = Depends(get_current_user),
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    discarded = registry.discard(current_user.id)
    logger.info(f"Scope discarded for {current_user.id}: {discarded}")
    return {"success": True, "discarded": discarded}
