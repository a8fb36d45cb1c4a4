"""Backend contract for daily block window caches."""

from abc import ABC, abstractmethod
from typing import Optional

from blockwindow.blocks.window import DailyBlockWindow
from blockwindow.cache.types import CacheKey, CacheStats


class BlockWindowCache(ABC):
    """Storage for daily block windows keyed by ``(chain, date)``.

    Caching is best-effort. Implementations log and absorb their own I/O and
    serialization failures: ``get`` reports a miss and ``insert``/``clear``
    return ``False``. Implementations must be safe for concurrent callers.
    """

    backend_name = "BlockWindowCache"

    def name(self) -> str:
        """Static backend identifier used in log events."""
        return self.backend_name

    @abstractmethod
    async def get(self, key: CacheKey) -> Optional[DailyBlockWindow]:
        """Return the cached window, or None if absent, expired or unreadable."""

    @abstractmethod
    async def insert(self, key: CacheKey, window: DailyBlockWindow) -> bool:
        """Store a window, evicting older entries if a capacity is set."""

    @abstractmethod
    async def clear(self) -> bool:
        """Remove every entry."""

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Return a snapshot of the cache counters."""
