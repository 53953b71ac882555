"""
tests/test_cache.py

Pytest unit tests for the tagged TTL / stale-while-revalidate cache.
A controllable clock replaces time.monotonic.
"""

from __future__ import annotations

import pytest

from app.services.cache import (
    DASHBOARD_CACHE,
    CacheStrategy,
    TaggedCache,
    dashboard_tags,
    get_cache,
    invalidate_dashboard_cache,
    team_tags,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> TaggedCache:
    return TaggedCache(clock=clock)


class Loader:
    def __init__(self, *values: object) -> None:
        self.values = list(values)
        self.calls = 0

    def __call__(self) -> object:
        self.calls += 1
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


STRATEGY = CacheStrategy(ttl=10, swr=20)


class TestTaggedCache:
    def test_fresh_value_served_from_cache(self, cache: TaggedCache, clock: FakeClock) -> None:
        loader = Loader("a", "b")
        assert cache.get_or_load("k", STRATEGY, loader) == "a"
        clock.now += 5
        assert cache.get_or_load("k", STRATEGY, loader) == "a"
        assert loader.calls == 1

    def test_stale_window_revalidates(self, cache: TaggedCache, clock: FakeClock) -> None:
        loader = Loader("a", "b")
        cache.get_or_load("k", STRATEGY, loader)
        clock.now += 15
        assert cache.get_or_load("k", STRATEGY, loader) == "b"

    def test_stale_value_served_when_revalidation_fails(self, cache: TaggedCache, clock: FakeClock) -> None:
        loader = Loader("a", RuntimeError("db down"))
        cache.get_or_load("k", STRATEGY, loader)
        clock.now += 15
        assert cache.get_or_load("k", STRATEGY, loader) == "a"

    def test_expired_beyond_swr_raises_loader_error(self, cache: TaggedCache, clock: FakeClock) -> None:
        loader = Loader("a", RuntimeError("db down"))
        cache.get_or_load("k", STRATEGY, loader)
        clock.now += 31
        with pytest.raises(RuntimeError):
            cache.get_or_load("k", STRATEGY, loader)

    def test_invalidate_tags(self, cache: TaggedCache) -> None:
        cache.set("dash", 1, STRATEGY, ["dashboard_org_o1", "dashboard_team_t1"])
        cache.set("team", 2, STRATEGY, ["team_t1"])
        cache.set("other", 3, STRATEGY, ["dashboard_org_o2"])

        assert cache.invalidate_tags(["dashboard_team_t1", "team_t1"]) == 2

        loader = Loader("fresh")
        assert cache.get_or_load("dash", STRATEGY, loader) == "fresh"
        assert cache.get_or_load("other", STRATEGY, Loader("unused")) == 3

    def test_load_racing_invalidation_is_not_stored(self, cache: TaggedCache) -> None:
        def load_while_invalidated() -> str:
            cache.invalidate_tags(["dashboard_org_o1"])
            return "loaded-before-write"

        value = cache.get_or_load("dash", STRATEGY, load_while_invalidated, ["dashboard_org_o1"])

        assert value == "loaded-before-write"
        assert cache.get_or_load("dash", STRATEGY, Loader("fresh"), ["dashboard_org_o1"]) == "fresh"

    def test_invalidating_other_tags_does_not_block_store(self, cache: TaggedCache) -> None:
        def load() -> str:
            cache.invalidate_tags(["dashboard_org_o2"])
            return "kept"

        cache.get_or_load("dash", STRATEGY, load, ["dashboard_org_o1"])
        assert cache.get_or_load("dash", STRATEGY, Loader("unused"), ["dashboard_org_o1"]) == "kept"

    def test_expired_entries_pruned_on_write(self, cache: TaggedCache, clock: FakeClock) -> None:
        cache.set("old", 1, STRATEGY)
        clock.now += 31
        cache.set("new", 2, STRATEGY)
        assert len(cache) == 1


class TestTags:
    def test_dashboard_tags(self) -> None:
        assert dashboard_tags("o1") == ["dashboard_org_o1"]
        assert dashboard_tags("o1", "t1") == ["dashboard_org_o1", "dashboard_team_t1"]

    def test_team_tags(self) -> None:
        assert team_tags("t1") == ["team_t1"]

    def test_invalidate_dashboard_cache_uses_shared_cache(self) -> None:
        shared = get_cache()
        shared.set("dashboard:o-test:all", ["chart"], DASHBOARD_CACHE, dashboard_tags("o-test"))

        invalidate_dashboard_cache("o-test", "t-test")

        loader = Loader(["reloaded"])
        assert shared.get_or_load("dashboard:o-test:all", DASHBOARD_CACHE, loader) == ["reloaded"]
        shared.clear()
