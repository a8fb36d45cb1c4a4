"""Cache backends for daily block windows and range-keyed aggregates."""

from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.disk import DiskCache
from blockwindow.cache.gas_cache import GasCache, GasCostResult
from blockwindow.cache.memory import MemoryCache
from blockwindow.cache.noop import NoOpCache
from blockwindow.cache.range_cache import BlockRangeCache, Mergeable
from blockwindow.cache.types import AccessSequence, CacheKey, CacheStats, TimestampMillis

__all__ = [
    "AccessSequence",
    "BlockRangeCache",
    "BlockWindowCache",
    "CacheKey",
    "CacheStats",
    "DiskCache",
    "GasCache",
    "GasCostResult",
    "MemoryCache",
    "Mergeable",
    "NoOpCache",
    "TimestampMillis",
]
