# core/access_scope.py

"""
Building access scope for a signed-in principal.

The resolver answers two questions for one session:
    • which buildings may this principal act on?
    • which of them is currently selected ("all" or one building id)?

Every scoped read in the API is intersected with that selection
(see core/scoped_query.py).

Resolution order (first match wins, never a union):
    1. explicit admin grants   (admin_building_access)
    2. active tenancy          (tenants → apartments → buildings)
    3. fallback sample         (development only, see SCOPE_FALLBACK_ENABLED)
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from core.logging_config import get_logger

logger = get_logger("resolver")


ALL_BUILDINGS = "all"


# ============================================================
# Errors
# ============================================================
class ScopeError(Exception):
    """Base class for building scope errors."""


class DataStoreError(ScopeError):
    """The query layer failed. The resolver keeps its last good state."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidSelection(ScopeError):
    """A selection outside the resolved building set."""

    def __init__(self, building_id: str):
        self.building_id = building_id
        super().__init__(f"Building '{building_id}' is not in the resolved scope")


class _Superseded(Exception):
    """A newer resolve started while this one was in flight."""


# ============================================================
# Types
# ============================================================
@dataclass(frozen=True)
class BuildingRef:
    id: str
    name: str


class ResolverStatus(str, Enum):
    unresolved = "unresolved"
    resolved = "resolved"
    error = "error"


class ScopeSource(str, Enum):
    """Which resolution rule produced the building set."""

    unauthenticated = "unauthenticated"
    admin_grants = "admin_grants"
    tenancy = "tenancy"
    fallback = "fallback"
    none = "none"


@dataclass(frozen=True)
class ScopeSnapshot:
    status: ResolverStatus
    buildings: Tuple[BuildingRef, ...] = ()
    selection: str = ALL_BUILDINGS
    source: ScopeSource = ScopeSource.none
    principal_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.principal_id is not None and self.source != ScopeSource.unauthenticated

    @property
    def building_ids(self) -> List[str]:
        return [b.id for b in self.buildings]

    @property
    def selected_building(self) -> Optional[BuildingRef]:
        if self.selection == ALL_BUILDINGS:
            return None
        for building in self.buildings:
            if building.id == self.selection:
                return building
        return None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "authenticated": self.authenticated,
            "source": self.source.value,
            "buildings": [{"id": b.id, "name": b.name} for b in self.buildings],
            "selection": self.selection,
            "selected_building": (
                {"id": self.selected_building.id, "name": self.selected_building.name}
                if self.selected_building
                else None
            ),
            "error": self.error,
        }


# ============================================================
# Selection reconciliation
# ============================================================
def reconcile_selection(current: str, buildings: List[BuildingRef]) -> str:
    """
    Selection to use after the building set changes.

        empty set                     → "all" (vacuous, matches nothing)
        exactly one building          → that building
        current id no longer present  → first building
        otherwise                     → current (including "all")
    """
    if not buildings:
        return ALL_BUILDINGS

    if len(buildings) == 1:
        return buildings[0].id

    ids = [b.id for b in buildings]
    if current != ALL_BUILDINGS and current not in ids:
        return ids[0]

    return current


def dedupe_buildings(rows: List[BuildingRef]) -> List[BuildingRef]:
    """Drop repeated ids, keeping first-seen order."""
    seen = set()
    unique = []
    for building in rows:
        if not building.id or building.id in seen:
            continue
        seen.add(building.id)
        unique.append(building)
    return unique


# ============================================================
# Resolver
# ============================================================
ScopeListener = Callable[[ScopeSnapshot], None]


@dataclass
class _ResolvedSet:
    buildings: List[BuildingRef]
    source: ScopeSource


class AccessScopeResolver:
    """
    Owns the building scope of one principal for one session.

    `store` exposes three blocking reads (see core/scope_store.py):
        admin_building_grants(principal_id)   -> List[BuildingRef]
        active_tenancy_building(principal_id) -> Optional[BuildingRef]
        sample_buildings(limit)               -> List[BuildingRef]

    A newer resolve/refresh supersedes any call still in flight: the
    older call's result is discarded instead of overwriting newer state.
    """

    def __init__(
        self,
        store,
        fallback_enabled: bool = True,
        fallback_sample_size: int = 50,
        production: bool = False,
    ):
        self._store = store
        self._fallback_enabled = fallback_enabled
        self._fallback_sample_size = fallback_sample_size
        self._production = production

        self._status = ResolverStatus.unresolved
        self._buildings: List[BuildingRef] = []
        self._selection: str = ALL_BUILDINGS
        self._source = ScopeSource.none
        self._principal_id: Optional[str] = None
        self._error: Optional[str] = None

        self._generation = 0
        self._pending_principal: Optional[str] = None
        self._latest: Optional[asyncio.Future] = None
        self._listeners: List[ScopeListener] = []

    # -----------------------------------------------------
    # Read accessors
    # -----------------------------------------------------
    @property
    def status(self) -> ResolverStatus:
        return self._status

    @property
    def buildings(self) -> List[BuildingRef]:
        return list(self._buildings)

    @property
    def selection(self) -> str:
        return self._selection

    @property
    def principal_id(self) -> Optional[str]:
        return self._principal_id

    def snapshot(self) -> ScopeSnapshot:
        return ScopeSnapshot(
            status=self._status,
            buildings=tuple(self._buildings),
            selection=self._selection,
            source=self._source,
            principal_id=self._principal_id,
            error=self._error,
        )

    # -----------------------------------------------------
    # Change notification
    # -----------------------------------------------------
    def subscribe(self, listener: ScopeListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Scope listener failed: {e}", exc_info=True)

    # -----------------------------------------------------
    # resolve / refresh
    # -----------------------------------------------------
    async def resolve(self, principal_id: Optional[str]) -> ScopeSnapshot:
        """
        Resolve the building set for principal_id and reconcile the
        selection against it.

        Returns once the newest resolution has settled: a call overtaken
        by a later resolve/refresh waits for that one and returns its
        outcome rather than the intermediate state.
        """
        self._generation += 1
        self._pending_principal = principal_id

        task = asyncio.ensure_future(self._run(self._generation, principal_id))
        self._latest = task
        return await self._settle(task)

    async def refresh(self) -> ScopeSnapshot:
        """Re-run resolve for the principal of the last resolve, even if it failed."""
        return await self.resolve(self._pending_principal)

    async def _settle(self, task: "asyncio.Future") -> ScopeSnapshot:
        while True:
            try:
                # shield: a cancelled request must not cancel a shared resolution
                return await asyncio.shield(task)
            except _Superseded:
                task = self._latest

    async def _run(self, generation: int, principal_id: Optional[str]) -> ScopeSnapshot:
        if not principal_id:
            if generation != self._generation:
                raise _Superseded()
            logger.info("No authenticated principal, scope is empty")
            self._commit(None, _ResolvedSet([], ScopeSource.unauthenticated))
            return self.snapshot()

        try:
            resolved = await self._load(principal_id)
        except DataStoreError as e:
            if generation != self._generation:
                logger.info(f"Discarding superseded scope failure for {principal_id}: {e}")
                raise _Superseded()

            # Fail closed: buildings and selection stay as they were
            logger.error(f"Scope resolution failed for {principal_id}: {e}")
            self._status = ResolverStatus.error
            self._error = str(e)
            self._notify()
            raise

        if generation != self._generation:
            logger.info(f"Discarding superseded scope resolution for {principal_id}")
            raise _Superseded()

        self._commit(principal_id, resolved)
        return self.snapshot()

    def _commit(self, principal_id: Optional[str], resolved: _ResolvedSet):
        previous = self.snapshot()

        self._principal_id = principal_id
        self._buildings = resolved.buildings
        self._source = resolved.source
        self._selection = reconcile_selection(self._selection, resolved.buildings)
        self._status = ResolverStatus.resolved
        self._error = None

        logger.info(
            f"Scope resolved for {principal_id}: source={resolved.source.value} "
            f"buildings={len(resolved.buildings)} selection={self._selection}"
        )

        if self.snapshot() != previous:
            self._notify()

    async def _load(self, principal_id: str) -> _ResolvedSet:
        # 1) Explicit admin grants
        granted = await run_in_threadpool(self._store.admin_building_grants, principal_id)
        if granted:
            return _ResolvedSet(dedupe_buildings(granted), ScopeSource.admin_grants)

        # 2) Active tenancy
        tenancy_building = await run_in_threadpool(self._store.active_tenancy_building, principal_id)
        if tenancy_building is not None:
            return _ResolvedSet([tenancy_building], ScopeSource.tenancy)

        # 3) Fallback sample
        if not self._fallback_enabled:
            logger.info(f"No grants or tenancy for {principal_id}, fallback disabled")
            return _ResolvedSet([], ScopeSource.none)

        if self._production:
            logger.error(
                f"TRUST BOUNDARY: principal {principal_id} has no grants and no tenancy; "
                f"serving fallback building sample in production"
            )
        else:
            logger.warning(f"Principal {principal_id} has no grants or tenancy, using fallback sample")

        sample = await run_in_threadpool(self._store.sample_buildings, self._fallback_sample_size)
        return _ResolvedSet(dedupe_buildings(sample), ScopeSource.fallback)

    # -----------------------------------------------------
    # Selection
    # -----------------------------------------------------
    def validate_selection(self, building_id: str) -> str:
        if self._status != ResolverStatus.resolved:
            raise InvalidSelection(building_id)
        if building_id == ALL_BUILDINGS:
            return building_id
        if building_id not in [b.id for b in self._buildings]:
            raise InvalidSelection(building_id)
        return building_id

    def set_selection(self, building_id: str) -> bool:
        """
        Select one building or "all". Ids outside the resolved set are
        ignored. Returns True if the selection was applied.
        """
        try:
            selection = self.validate_selection(building_id)
        except InvalidSelection as e:
            logger.warning(f"Ignoring selection for {self._principal_id}: {e}")
            return False

        # A single-building scope never widens back to "all"
        selection = reconcile_selection(selection, self._buildings)
        if selection == self._selection:
            return True

        self._selection = selection
        logger.info(f"Scope selection for {self._principal_id} set to {selection}")
        self._notify()
        return True
