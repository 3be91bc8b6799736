# dependencies/scope.py

from fastapi import Depends, HTTPException, Request

from core.access_scope import DataStoreError, ResolverStatus, ScopeError, ScopeSnapshot, ScopeSource
from core.errors import scope_http_error
from core.permission_helpers import is_self_scoped
from core.scope_registry import ScopeRegistry
from core.scoped_query import BuildingScope, ScopedQueryGuard, lookup_tenancy
from core.supabase_client import get_supabase_client
from dependencies.auth import get_current_user, CurrentUser


# ============================================================
# Registry (owned by the app, see main.create_app)
# ============================================================
def get_scope_registry(request: Request) -> ScopeRegistry:
    return request.app.state.scope_registry


# ============================================================
# Snapshot: resolves lazily on the principal's first request
# ============================================================
async def get_scope_snapshot(
    current_user: CurrentUser = Depends(get_current_user),
    registry: ScopeRegistry = Depends(get_scope_registry),
) -> ScopeSnapshot:
    resolver = registry.for_principal(current_user.id)

    if resolver.status == ResolverStatus.unresolved:
        try:
            return await resolver.resolve(current_user.id)
        except DataStoreError as e:
            raise scope_http_error(e)

    return resolver.snapshot()


# ============================================================
# BuildingScope + guard for scoped views
# ============================================================
def get_building_scope(snapshot: ScopeSnapshot = Depends(get_scope_snapshot)) -> BuildingScope:
    try:
        return BuildingScope.from_snapshot(snapshot)
    except ScopeError as e:
        raise scope_http_error(e)


def get_scoped_guard(
    scope: BuildingScope = Depends(get_building_scope),
    current_user: CurrentUser = Depends(get_current_user),
) -> ScopedQueryGuard:
    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    # Tenants (and anyone whose access comes from a tenancy) see their own rows only
    if not (is_self_scoped(current_user) or scope.source == ScopeSource.tenancy):
        return ScopedQueryGuard(client, scope)

    try:
        tenancy = lookup_tenancy(client, current_user.id)
    except DataStoreError as e:
        raise scope_http_error(e)

    return ScopedQueryGuard(client, scope, tenancy=tenancy, self_only=True)
