"""Persistent JSON block window cache with advisory file locking.

The whole cache is stored as one JSON snapshot::

    {
      "version": 1,
      "entries": {
        "42161:2025-10-15": {
          "window": {...},
          "created_at_millis": 1760486400123,
          "access_sequence": 7
        }
      }
    }

Every mutation is a read-modify-write of the snapshot under an exclusive
``fcntl`` lock on a sidecar ``<path>.lock`` file; the new snapshot is written
to a temp file and moved into place with ``os.replace`` so readers never see a
partial file. Locking only reduces cross-process races, it does not make the
update transactional. TTL and capacity are constructor settings and are not
persisted.
"""

import asyncio
import fcntl
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from blockwindow.blocks.window import DailyBlockWindow
from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.types import AccessSequence, CacheKey, CacheStats, TimestampMillis
from blockwindow.chains import Chain
from blockwindow.errors import (
    BlockWindowError,
    CacheError,
    CacheIOError,
    CacheSerializationError,
)

logger = structlog.get_logger()

CACHE_VERSION = 1


class _WindowRecord(BaseModel):
    chain: int
    date: date
    start_block: int = Field(ge=0)
    end_block: int = Field(ge=0)
    start_ts: int
    end_ts_exclusive: int

    def to_window(self) -> DailyBlockWindow:
        return DailyBlockWindow(
            chain=Chain.from_id(self.chain),
            date=self.date,
            start_block=self.start_block,
            end_block=self.end_block,
            start_ts=self.start_ts,
            end_ts_exclusive=self.end_ts_exclusive,
        )


class _EntryRecord(BaseModel):
    window: _WindowRecord
    created_at_millis: int
    access_sequence: int = 0


class _CacheFile(BaseModel):
    version: int
    entries: Dict[str, _EntryRecord] = Field(default_factory=dict)


@dataclass
class _DiskEntry:
    window: DailyBlockWindow
    created_at: TimestampMillis
    access_seq: AccessSequence

    def is_expired(self, ttl: Optional[timedelta]) -> bool:
        return ttl is not None and self.created_at.is_older_than(ttl)

    def ordering(self):
        return (self.created_at, self.access_seq)


class DiskCache(BlockWindowCache):
    """Cache persisted to a JSON file, shared between runs and processes."""

    backend_name = "DiskCache"

    def __init__(
        self,
        path: Union[str, Path],
        max_entries: Optional[int] = None,
        ttl: Optional[timedelta] = None,
    ):
        """Initialize disk cache.

        The file is created on first insert. Path problems surface as logged
        cache misses; call ``validate()`` to check the path up front.

        Args:
            path: Cache file location
            max_entries: Maximum number of entries before oldest-first eviction
            ttl: Maximum entry age before it is treated as absent
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.max_entries = max_entries
        self.ttl = ttl

        self._stats = CacheStats()
        self._lock = asyncio.Lock()

        self.logger = logger.bind(component="disk_cache", path=str(self.path))

    def validate(self) -> "DiskCache":
        """Create the parent directory if needed and check it is writable.

        Raises:
            CacheIOError: If the directory cannot be created or written to
        """
        parent = self.path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            marker = parent / ".cache_write_test"
            marker.write_bytes(b"test")
            marker.unlink()
        except OSError as e:
            raise CacheIOError(str(parent), f"Cache directory is not writable: {e}") from e

        self.logger.debug("cache_path_validated")
        return self

    @contextmanager
    def _file_lock(self, exclusive: bool) -> Iterator[None]:
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a+")
        except OSError as e:
            raise CacheIOError(str(self.lock_path), f"Failed to open lock file: {e}") from e

        try:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            except OSError as e:
                raise CacheIOError(str(self.lock_path), f"Failed to acquire lock: {e}") from e
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def _read_entries(self) -> Dict[CacheKey, _DiskEntry]:
        """Parse the snapshot. Caller holds the file lock."""
        if not self.path.exists():
            return {}

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise CacheIOError(str(self.path), f"Failed to read cache file: {e}") from e

        try:
            cache_file = _CacheFile.model_validate_json(raw)
        except ValidationError as e:
            raise CacheSerializationError(str(self.path), f"Failed to parse cache file: {e}") from e

        if cache_file.version != CACHE_VERSION:
            self.logger.warning(
                "cache_version_mismatch",
                cached_version=cache_file.version,
                current_version=CACHE_VERSION,
            )
            return {}

        entries: Dict[CacheKey, _DiskEntry] = {}
        for raw_key, record in cache_file.entries.items():
            try:
                key = CacheKey.parse(raw_key)
                window = record.window.to_window()
            except (ValueError, BlockWindowError) as e:
                raise CacheSerializationError(
                    str(self.path), f"Invalid cache entry '{raw_key}': {e}"
                ) from e
            entries[key] = _DiskEntry(
                window=window,
                created_at=TimestampMillis(record.created_at_millis),
                access_seq=AccessSequence(record.access_sequence),
            )
        return entries

    def _write_entries(self, entries: Dict[CacheKey, _DiskEntry]) -> None:
        """Write the snapshot atomically. Caller holds the exclusive lock."""
        cache_file = _CacheFile(
            version=CACHE_VERSION,
            entries={
                str(key): _EntryRecord(
                    window=_WindowRecord(**entry.window.to_dict()),
                    created_at_millis=entry.created_at.millis,
                    access_sequence=entry.access_seq.value,
                )
                for key, entry in sorted(entries.items())
            },
        )
        try:
            payload = cache_file.model_dump_json(indent=2)
        except (ValueError, TypeError) as e:
            raise CacheSerializationError(str(self.path), f"Failed to encode cache: {e}") from e

        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            raise CacheIOError(str(self.path), f"Failed to write cache file: {e}") from e

    def _load(self) -> Dict[CacheKey, _DiskEntry]:
        with self._file_lock(exclusive=False):
            return self._read_entries()

    def _remove_if_expired(self, key: CacheKey) -> int:
        with self._file_lock(exclusive=True):
            entries = self._read_entries()
            entry = entries.get(key)
            if entry is not None and entry.is_expired(self.ttl):
                del entries[key]
                self._write_entries(entries)
            return len(entries)

    def _insert(self, key: CacheKey, window: DailyBlockWindow) -> Dict[str, int]:
        with self._file_lock(exclusive=True):
            try:
                entries = self._read_entries()
            except CacheSerializationError as e:
                self.logger.warning("cache_unreadable_overwriting", error=str(e))
                entries = {}

            evicted = 0
            if self.max_entries is not None and key not in entries:
                while entries and len(entries) >= self.max_entries:
                    oldest_key = min(entries, key=lambda k: entries[k].ordering())
                    del entries[oldest_key]
                    evicted += 1
                    self.logger.debug("evicted_oldest_entry", key=str(oldest_key))

            last_seq = max(
                (entry.access_seq for entry in entries.values()),
                default=None,
            )
            entries[key] = _DiskEntry(
                window=window,
                created_at=TimestampMillis.now(),
                access_seq=last_seq.next() if last_seq is not None else AccessSequence(),
            )
            self._write_entries(entries)
            return {"evicted": evicted, "entries": len(entries)}

    def _clear(self) -> None:
        with self._file_lock(exclusive=True):
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise CacheIOError(str(self.path), f"Failed to delete cache file: {e}") from e

    async def get(self, key: CacheKey) -> Optional[DailyBlockWindow]:
        async with self._lock:
            try:
                entries = await asyncio.to_thread(self._load)
            except CacheError as e:
                self.logger.warning("cache_load_failed_treating_as_miss", error=str(e))
                self._stats.misses += 1
                return None

            self._stats.entries = len(entries)
            entry = entries.get(key)

            if entry is None:
                self._stats.misses += 1
                self.logger.debug("cache_miss", key=str(key))
                return None

            if entry.is_expired(self.ttl):
                self._stats.expirations += 1
                self.logger.debug("cache_entry_expired", key=str(key))
                try:
                    self._stats.entries = await asyncio.to_thread(self._remove_if_expired, key)
                except CacheError as e:
                    self.logger.warning("expired_entry_removal_failed", key=str(key), error=str(e))
                return None

            self._stats.hits += 1
            self.logger.debug("cache_hit", key=str(key))
            return entry.window

    async def insert(self, key: CacheKey, window: DailyBlockWindow) -> bool:
        async with self._lock:
            try:
                result = await asyncio.to_thread(self._insert, key, window)
            except CacheError as e:
                self.logger.warning("cache_insert_failed", key=str(key), error=str(e))
                return False

            self._stats.evictions += result["evicted"]
            self._stats.entries = result["entries"]
            self.logger.debug("cache_insert", key=str(key), entries=result["entries"])
            return True

    async def clear(self) -> bool:
        async with self._lock:
            try:
                await asyncio.to_thread(self._clear)
            except CacheError as e:
                self.logger.warning("cache_clear_failed", error=str(e))
                return False

            self._stats.entries = 0
            self.logger.debug("cache_cleared")
            return True

    async def stats(self) -> CacheStats:
        async with self._lock:
            try:
                entries = await asyncio.to_thread(self._load)
                self._stats.entries = len(entries)
            except CacheError as e:
                self.logger.warning("cache_stats_load_failed", error=str(e))
            return self._stats.snapshot()
