"""Daily block window resolution and block-range caching for EVM chains."""

from blockwindow.blocks.calculator import BlockWindowCalculator
from blockwindow.blocks.provider import ChainDataProvider, LogFilter, RawLog
from blockwindow.blocks.rpc_client import JsonRpcProvider
from blockwindow.blocks.window import DailyBlockWindow
from blockwindow.cache import (
    AccessSequence,
    BlockWindowCache,
    CacheKey,
    CacheStats,
    DiskCache,
    GasCache,
    GasCostResult,
    MemoryCache,
    NoOpCache,
    TimestampMillis,
)
from blockwindow.chains import Chain
from blockwindow.errors import (
    BlockNotFoundError,
    BlockWindowError,
    CacheError,
    InvalidRangeError,
    InvalidTimestampRangeError,
    NonMonotonicTimestampsError,
    RpcError,
)
from blockwindow.gas.scanner import GasCostScanner

__version__ = "0.1.0"
