# tests/test_scope_registry.py

import pytest

from conftest import BUILDING_A, FakeScopeStore
from core.cache import cache_get, cache_set, view_cache_key
from core.scope_registry import ScopeRegistry


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    store = FakeScopeStore(grants={"u1": [BUILDING_A], "u2": [BUILDING_A]})
    return ScopeRegistry(lambda: store, idle_seconds=60, clock=clock)


def test_same_principal_reuses_resolver(registry):
    first = registry.for_principal("u1")

    assert registry.for_principal("u1") is first
    assert registry.session_count() == 1


def test_idle_sessions_are_evicted(registry, clock):
    registry.for_principal("u1")
    cache_key = view_cache_key("u1", "payments", "all")
    cache_set(cache_key, {"data": []})

    clock.advance(61)
    registry.for_principal("u2")

    assert registry.get("u1") is None
    assert registry.get("u2") is not None
    assert registry.session_count() == 1
    assert cache_get(cache_key) is None


def test_active_sessions_survive(registry, clock):
    registry.for_principal("u1")
    clock.advance(40)
    registry.for_principal("u1")
    clock.advance(40)

    assert registry.evict_idle() == 0
    assert registry.get("u1") is not None


def test_principal_being_served_is_not_evicted(registry, clock):
    first = registry.for_principal("u1")
    clock.advance(600)

    assert registry.for_principal("u1") is first


def test_no_idle_limit_keeps_sessions(clock):
    registry = ScopeRegistry(lambda: FakeScopeStore(), idle_seconds=None, clock=clock)
    registry.for_principal("u1")
    clock.advance(10_000)

    assert registry.evict_idle() == 0
    assert registry.session_count() == 1


def test_discard(registry):
    registry.for_principal("u1")

    assert registry.discard("u1") is True
    assert registry.discard("u1") is False
    assert registry.session_count() == 0
