"""
Keyed cache of fetched collections with stale marking.

Keys are tuples whose first element names the collection, e.g.
``("pt-bookings", "2026-09-27", "2026-11-07", None)``. Invalidating a
collection marks every key under it stale; the next read refetches.
Entries also expire after ``ttl`` seconds, so writes made outside this
process show up within that window.

Each collection carries a generation counter bumped on every invalidation.
A load that was in flight while its collection was invalidated still answers
the read that started it, but is stored stale.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from studiodesk.core.settings import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

CLASS_SCHEDULE_SESSIONS = "class-schedule-sessions"
CLASS_SESSION_BOOKINGS = "class-session-bookings"
PT_BOOKINGS = "pt-bookings"

CacheKey = Tuple[Hashable, ...]


@dataclass
class CacheEntry:
    value: Any
    loaded_at: float
    stale: bool = False


class CollectionCache:
    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = CACHE_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}
        self._generations: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _lock(self, key: CacheKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _is_fresh(self, entry: Optional[CacheEntry]) -> bool:
        if entry is None or entry.stale:
            return False
        return self._clock() - entry.loaded_at < self.ttl

    def _prune(self) -> None:
        """Drop expired and stale entries nobody is loading."""
        for key in [key for key, entry in self._entries.items() if not self._is_fresh(entry)]:
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            del self._entries[key]
            self._locks.pop(key, None)

    def generation(self, collection: Hashable) -> int:
        return self._generations.get(collection, 0)

    async def get(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, loading it when missing, stale or expired."""
        entry = self._entries.get(key)
        if self._is_fresh(entry):
            return entry.value

        # One fetch per key at a time
        async with self._lock(key):
            entry = self._entries.get(key)
            if self._is_fresh(entry):
                return entry.value
            self._prune()

            collection = key[0]
            generation = self.generation(collection)
            logger.debug("Loading collection %s", key)
            value = await loader()

            invalidated = self.generation(collection) != generation
            if invalidated:
                logger.debug("Collection %s invalidated while loading %s", collection, key)
            self._entries[key] = CacheEntry(value=value, loaded_at=self._clock(), stale=invalidated)
            return value

    def invalidate(self, collection: str) -> int:
        """Mark every key of ``collection`` stale; returns how many were marked."""
        self._generations[collection] = self.generation(collection) + 1
        marked = 0
        for key, entry in self._entries.items():
            if key and key[0] == collection and not entry.stale:
                entry.stale = True
                marked += 1
        logger.debug("Invalidated %s cached %s entries", marked, collection)
        return marked

    def is_stale(self, key: CacheKey) -> bool:
        return not self._is_fresh(self._entries.get(key))

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()
