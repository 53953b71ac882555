"""
app/services/cache.py

Process-local read cache with TTL, a stale window and tag invalidation.

Within ``ttl`` an entry is served as-is. Between ``ttl`` and ``ttl + swr``
the loader is re-run; if it fails the stale value is served instead.
Past ``ttl + swr`` the entry is dropped. Writers invalidate by tag.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheStrategy:
    ttl: int
    swr: int = 0


LIST_CACHE = CacheStrategy(ttl=60, swr=120)
SINGLE_ITEM_CACHE = CacheStrategy(ttl=30, swr=60)
DASHBOARD_CACHE = CacheStrategy(ttl=60, swr=300)
TIME_SERIES_CACHE = CacheStrategy(ttl=120, swr=300)
AUTH_CHECK_CACHE = CacheStrategy(ttl=10, swr=30)
CONFIG_CACHE = CacheStrategy(ttl=30, swr=120)
SHORT_LIVED_CACHE = CacheStrategy(ttl=5, swr=15)


@dataclass
class _Entry:
    value: Any
    stored_at: float
    strategy: CacheStrategy
    tags: frozenset[str]


class TaggedCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, _Entry] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _snapshot(self, tags: frozenset[str]) -> dict[str, int]:
        with self._lock:
            return {tag: self._generations.get(tag, 0) for tag in tags}

    def get_or_load(
        self,
        key: str,
        strategy: CacheStrategy,
        loader: Callable[[], T],
        tags: Iterable[str] = (),
    ) -> T:
        tag_set = frozenset(tags)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)

        if entry is not None:
            age = now - entry.stored_at
            if age < entry.strategy.ttl:
                return entry.value
            if age < entry.strategy.ttl + entry.strategy.swr:
                generations = self._snapshot(tag_set)
                try:
                    value = loader()
                except Exception:
                    logger.warning("Cache revalidation failed key=%s serving stale value", key, exc_info=True)
                    return entry.value
                self._store(key, value, strategy, tag_set, generations)
                return value

        generations = self._snapshot(tag_set)
        value = loader()
        self._store(key, value, strategy, tag_set, generations)
        return value

    def set(self, key: str, value: Any, strategy: CacheStrategy, tags: Iterable[str] = ()) -> None:
        self._store(key, value, strategy, frozenset(tags), None)

    def _store(
        self,
        key: str,
        value: Any,
        strategy: CacheStrategy,
        tags: frozenset[str],
        generations: dict[str, int] | None,
    ) -> bool:
        """
        Store ``value`` unless one of its tags was invalidated after
        ``generations`` was taken. Expired entries are pruned on every write.
        """

        now = self._clock()
        with self._lock:
            if generations is not None and any(
                self._generations.get(tag, 0) != seen for tag, seen in generations.items()
            ):
                logger.debug("Cache store skipped key=%s invalidated during load", key)
                return False
            expired = [
                cached_key
                for cached_key, entry in self._entries.items()
                if now - entry.stored_at >= entry.strategy.ttl + entry.strategy.swr
            ]
            for cached_key in expired:
                del self._entries[cached_key]
            self._entries[key] = _Entry(value=value, stored_at=now, strategy=strategy, tags=tags)
        return True

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """
        Drop every entry carrying any of ``tags``. Returns the number dropped.

        Loads already in flight for those tags will not be stored.
        """

        wanted = set(tags)
        with self._lock:
            for tag in wanted:
                self._generations[tag] = self._generations.get(tag, 0) + 1
            doomed = [key for key, entry in self._entries.items() if entry.tags & wanted]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_cache = TaggedCache()


def get_cache() -> TaggedCache:
    return _cache


def dashboard_tags(organization_id: str, team_id: str | None = None) -> list[str]:
    tags = [f"dashboard_org_{organization_id}"]
    if team_id:
        tags.append(f"dashboard_team_{team_id}")
    return tags


def team_tags(team_id: str) -> list[str]:
    return [f"team_{team_id}"]


def invalidate_cache_by_tags(tags: Iterable[str]) -> None:
    tag_list = [tag for tag in tags if tag]
    if not tag_list:
        return
    dropped = _cache.invalidate_tags(tag_list)
    logger.debug("Cache invalidated tags=%s entries=%s", tag_list, dropped)


def invalidate_dashboard_cache(organization_id: str, team_id: str | None = None) -> None:
    invalidate_cache_by_tags(dashboard_tags(organization_id, team_id))
