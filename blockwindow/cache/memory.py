"""In-memory block window cache with TTL and LRU eviction."""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

import structlog

from blockwindow.blocks.window import DailyBlockWindow
from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.types import AccessSequence, CacheKey, CacheStats, TimestampMillis

logger = structlog.get_logger()


@dataclass
class _MemoryEntry:
    window: DailyBlockWindow
    created_at: TimestampMillis
    last_accessed: TimestampMillis
    access_seq: AccessSequence

    def is_expired(self, ttl: Optional[timedelta]) -> bool:
        return ttl is not None and self.created_at.is_older_than(ttl)

    def touch(self, access_seq: AccessSequence) -> None:
        self.last_accessed = TimestampMillis.now()
        self.access_seq = access_seq


class MemoryCache(BlockWindowCache):
    """Process-local cache. Data is lost when the process exits.

    Reads refresh an entry's access marker, so the capacity bound evicts the
    least recently used entry.
    """

    backend_name = "MemoryCache"

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl: Optional[timedelta] = None,
    ):
        """Initialize memory cache.

        Args:
            max_entries: Maximum number of entries before LRU eviction (None = unbounded)
            ttl: Maximum entry age before it is treated as absent (None = never expires)
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.max_entries = max_entries
        self.ttl = ttl

        self._entries: Dict[CacheKey, _MemoryEntry] = {}
        self._next_seq = AccessSequence()
        self._stats = CacheStats()
        self._lock = asyncio.Lock()

        self.logger = logger.bind(component="memory_cache")

    def _advance_seq(self) -> AccessSequence:
        seq = self._next_seq
        self._next_seq = seq.next()
        return seq

    def _evict_lru(self) -> None:
        if not self._entries:
            return

        lru_key = min(
            self._entries,
            key=lambda k: (self._entries[k].last_accessed, self._entries[k].access_seq),
        )
        del self._entries[lru_key]
        self._stats.evictions += 1
        self.logger.debug("evicted_lru_entry", key=str(lru_key))

    async def get(self, key: CacheKey) -> Optional[DailyBlockWindow]:
        async with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._stats.misses += 1
                self.logger.debug("cache_miss", key=str(key))
                return None

            if entry.is_expired(self.ttl):
                del self._entries[key]
                self._stats.expirations += 1
                self._stats.entries = len(self._entries)
                self.logger.debug("cache_entry_expired", key=str(key))
                return None

            entry.touch(self._advance_seq())
            self._stats.hits += 1
            self.logger.debug("cache_hit", key=str(key))
            return entry.window

    async def insert(self, key: CacheKey, window: DailyBlockWindow) -> bool:
        async with self._lock:
            if self.max_entries is not None and key not in self._entries:
                while len(self._entries) >= self.max_entries:
                    self._evict_lru()

            now = TimestampMillis.now()
            self._entries[key] = _MemoryEntry(
                window=window,
                created_at=now,
                last_accessed=now,
                access_seq=self._advance_seq(),
            )
            self._stats.entries = len(self._entries)
            self.logger.debug("cache_insert", key=str(key), entries=self._stats.entries)
            return True

    async def clear(self) -> bool:
        async with self._lock:
            self.logger.debug("cache_cleared", entries=len(self._entries))
            self._entries.clear()
            self._stats.entries = 0
            return True

    async def stats(self) -> CacheStats:
        async with self._lock:
            self._stats.entries = len(self._entries)
            return self._stats.snapshot()
