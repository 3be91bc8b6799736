# core/scope_registry.py

import time
from typing import Callable, Dict, Optional

from core.access_scope import AccessScopeResolver, ScopeSnapshot
from core.cache import invalidate_principal
from core.config import settings
from core.logging_config import get_logger

logger = get_logger("scope_registry")


class ScopeRegistry:
    """
    One AccessScopeResolver per signed-in principal.

    Created once by create_app() and stored on app.state. A resolver is
    created at the principal's first scoped request and discarded on
    sign-out, or once it has been idle for `idle_seconds`. Scope changes
    drop that principal's cached views.
    """

    def __init__(
        self,
        store_factory: Callable,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        **resolver_options,
    ):
        self._store_factory = store_factory
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._resolver_options = resolver_options
        self._resolvers: Dict[str, AccessScopeResolver] = {}
        self._unsubscribers: Dict[str, Callable[[], None]] = {}
        self._last_seen: Dict[str, float] = {}

    @classmethod
    def from_settings(cls, store_factory: Callable) -> "ScopeRegistry":
        return cls(
            store_factory,
            idle_seconds=settings.SCOPE_SESSION_IDLE_SECONDS,
            fallback_enabled=settings.SCOPE_FALLBACK_ENABLED,
            fallback_sample_size=settings.SCOPE_FALLBACK_SAMPLE_SIZE,
            production=settings.is_production,
        )

    def get(self, principal_id: str) -> Optional[AccessScopeResolver]:
        return self._resolvers.get(principal_id)

    def for_principal(self, principal_id: str) -> AccessScopeResolver:
        now = self._clock()
        self.evict_idle(now, keep=principal_id)
        self._last_seen[principal_id] = now

        resolver = self._resolvers.get(principal_id)
        if resolver is not None:
            return resolver

        resolver = AccessScopeResolver(self._store_factory(), **self._resolver_options)

        def on_change(snapshot: ScopeSnapshot):
            invalidate_principal(principal_id)

        self._unsubscribers[principal_id] = resolver.subscribe(on_change)
        self._resolvers[principal_id] = resolver
        logger.info(f"Created scope resolver for {principal_id}")
        return resolver

    def discard(self, principal_id: str) -> bool:
        resolver = self._resolvers.pop(principal_id, None)
        unsubscribe = self._unsubscribers.pop(principal_id, None)
        self._last_seen.pop(principal_id, None)
        if unsubscribe:
            unsubscribe()
        invalidate_principal(principal_id)
        if resolver is not None:
            logger.info(f"Discarded scope resolver for {principal_id}")
        return resolver is not None

    def evict_idle(self, now: Optional[float] = None, keep: Optional[str] = None) -> int:
        """Discard resolvers not used for idle_seconds. Returns the count evicted."""
        if not self._idle_seconds:
            return 0

        now = self._clock() if now is None else now
        idle = [
            pid for pid, seen in self._last_seen.items()
            if pid != keep and now - seen >= self._idle_seconds
        ]
        for pid in idle:
            self.discard(pid)

        if idle:
            logger.info(f"Evicted {len(idle)} idle scope sessions")
        return len(idle)

    def session_count(self) -> int:
        return len(self._resolvers)
