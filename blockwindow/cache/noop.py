"""Cache backend that disables caching."""

from typing import Optional

from blockwindow.blocks.window import DailyBlockWindow
from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.types import CacheKey, CacheStats


class NoOpCache(BlockWindowCache):
    """Always misses, accepts and discards writes, reports zero stats."""

    backend_name = "NoOpCache"

    async def get(self, key: CacheKey) -> Optional[DailyBlockWindow]:
        return None

    async def insert(self, key: CacheKey, window: DailyBlockWindow) -> bool:
        return True

    async def clear(self) -> bool:
        return True

    async def stats(self) -> CacheStats:
        return CacheStats()
