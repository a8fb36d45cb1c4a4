"""Daily block window resolution.

Maps a UTC calendar day on a chain to the inclusive range of blocks produced
during that day. Block times are irregular, so the boundaries are located by
binary search over ``eth_getBlockByNumber`` probes, O(log tip) calls per
boundary. Results are stored in a pluggable ``BlockWindowCache`` so a day is
only ever resolved once per cache lifetime.

The search assumes block timestamps are non-decreasing in block number. The
assumption is checked on the two boundary blocks before anything is cached;
a provider that violates it gets ``NonMonotonicTimestampsError`` instead of
a wrong window.
"""

from collections import OrderedDict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import pytz
import structlog

from blockwindow.blocks.provider import ChainDataProvider
from blockwindow.blocks.window import DailyBlockWindow, day_bounds
from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.disk import DiskCache
from blockwindow.cache.memory import MemoryCache
from blockwindow.cache.noop import NoOpCache
from blockwindow.cache.types import CacheKey, CacheStats
from blockwindow.chains import Chain
from blockwindow.errors import (
    InvalidRangeError,
    NonMonotonicTimestampsError,
    RpcError,
)

logger = structlog.get_logger()


def _utc_now_ts() -> int:
    return int(datetime.now(pytz.utc).timestamp())


class _ProbeSession:
    """Timestamp lookups for a single resolution, memoised by block number."""

    def __init__(self, provider: ChainDataProvider):
        self.provider = provider
        self.timestamps: Dict[int, int] = {}

    @property
    def probes(self) -> int:
        return len(self.timestamps)

    async def timestamp(self, block_number: int) -> int:
        if block_number not in self.timestamps:
            try:
                ts = await self.provider.get_block_timestamp(block_number)
            except RpcError:
                raise
            except Exception as e:
                raise RpcError("get_block", str(e), block_number=block_number) from e
            self.timestamps[block_number] = int(ts)
        return self.timestamps[block_number]

    async def first_block_matching(
        self,
        lo: int,
        hi: int,
        predicate: Callable[[int], bool],
    ) -> int:
        """Smallest block in ``[lo, hi]`` whose timestamp satisfies ``predicate``.

        ``predicate`` must be monotone (False...False True...True) over block
        numbers. Returns ``hi + 1`` when no block qualifies.
        """
        result = hi + 1
        while lo <= hi:
            mid = (lo + hi) // 2
            if predicate(await self.timestamp(mid)):
                result = mid
                hi = mid - 1
            else:
                lo = mid + 1
        return result


class BlockWindowCalculator:
    """Calculates and caches daily block windows.

    Example:

        calculator = BlockWindowCalculator.with_disk_cache(provider, "cache/windows.json")
        window = await calculator.get_daily_window(Chain.ARBITRUM, date(2025, 10, 15))
    """

    def __init__(self, provider: ChainDataProvider, cache: BlockWindowCache):
        """Initialize calculator.

        Args:
            provider: Remote chain-data provider used for tip and block probes
            cache: Backend that stores resolved windows
        """
        self.provider = provider
        self.cache = cache

        self.logger = logger.bind(component="block_window_calculator", cache=cache.name())

    @classmethod
    def with_disk_cache(
        cls,
        provider: ChainDataProvider,
        cache_path: Union[str, Path],
        max_entries: Optional[int] = None,
        ttl: Optional[timedelta] = None,
    ) -> "BlockWindowCalculator":
        """Calculator backed by a validated ``DiskCache``.

        Raises:
            CacheIOError: If the cache directory cannot be created or written
        """
        cache = DiskCache(cache_path, max_entries=max_entries, ttl=ttl).validate()
        return cls(provider, cache)

    @classmethod
    def with_memory_cache(
        cls,
        provider: ChainDataProvider,
        max_entries: Optional[int] = None,
        ttl: Optional[timedelta] = None,
    ) -> "BlockWindowCalculator":
        return cls(provider, MemoryCache(max_entries=max_entries, ttl=ttl))

    @classmethod
    def without_cache(cls, provider: ChainDataProvider) -> "BlockWindowCalculator":
        return cls(provider, NoOpCache())

    async def cache_stats(self) -> CacheStats:
        return await self.cache.stats()

    async def _get_tip(self) -> int:
        try:
            return int(await self.provider.get_tip_block_number())
        except RpcError:
            raise
        except Exception as e:
            raise RpcError("get_block_number", str(e)) from e

    async def get_daily_window(self, chain: Chain, day: date) -> DailyBlockWindow:
        """Get (or compute and cache) the block window for a UTC day.

        Args:
            chain: Chain to resolve on
            day: UTC calendar date

        Returns:
            Window with the first and last block produced during the day

        Raises:
            InvalidRangeError: If the day is after the chain tip or before genesis
            RpcError: If any provider call fails
            NonMonotonicTimestampsError: If probed timestamps contradict each other
        """
        key = CacheKey(chain, day)
        log = self.logger.bind(chain=str(chain), date=day.isoformat())

        cached = await self.cache.get(key)
        if cached is not None:
            log.info("daily_window_cache_hit")
            return cached

        start_ts, end_ts_exclusive = day_bounds(day)
        tip = await self._get_tip()

        log.info(
            "computing_daily_window",
            start_ts=start_ts,
            end_ts_exclusive=end_ts_exclusive,
            tip=tip,
        )

        session = _ProbeSession(self.provider)

        start_block = await session.first_block_matching(0, tip, lambda ts: ts >= start_ts)
        end_block = (
            await session.first_block_matching(
                start_block, tip, lambda ts: ts >= end_ts_exclusive
            )
            - 1
        )

        if end_block < start_block:
            if start_block > tip:
                raise InvalidRangeError(
                    start_block, end_block, f"{day} is after the chain tip ({tip})"
                )
            if start_block == 0:
                raise InvalidRangeError(
                    start_block, end_block, f"{day} is before the first block"
                )
            # No block was produced during the day: bracket it from outside.
            log.warning("no_blocks_in_day", first_block_after=start_block)
            start_block, end_block = start_block - 1, start_block
            await self._check_bracket(session, start_block, end_block, start_ts, end_ts_exclusive)
        else:
            await self._check_boundaries(session, start_block, end_block, start_ts, end_ts_exclusive)

        window = DailyBlockWindow(
            chain=chain,
            date=day,
            start_block=start_block,
            end_block=end_block,
            start_ts=start_ts,
            end_ts_exclusive=end_ts_exclusive,
        )

        log.info(
            "daily_window_computed",
            start_block=window.start_block,
            end_block=window.end_block,
            block_count=window.block_count,
            probes=session.probes,
        )

        if end_block == tip and end_ts_exclusive > _utc_now_ts():
            # The day is still running; later blocks may still land in it.
            log.info("daily_window_in_progress_not_cached", tip=tip)
        elif not await self.cache.insert(key, window):
            log.debug("daily_window_not_cached")

        return window

    async def _check_boundaries(
        self,
        session: _ProbeSession,
        start_block: int,
        end_block: int,
        start_ts: int,
        end_ts_exclusive: int,
    ) -> None:
        start_block_ts = await session.timestamp(start_block)
        if not start_ts <= start_block_ts < end_ts_exclusive:
            raise NonMonotonicTimestampsError(
                start_block, start_block_ts, f"within [{start_ts}, {end_ts_exclusive})"
            )

        end_block_ts = await session.timestamp(end_block)
        if not start_block_ts <= end_block_ts < end_ts_exclusive:
            raise NonMonotonicTimestampsError(
                end_block, end_block_ts, f"within [{start_block_ts}, {end_ts_exclusive})"
            )

        if start_block > 0:
            before_ts = await session.timestamp(start_block - 1)
            if before_ts >= start_ts:
                raise NonMonotonicTimestampsError(
                    start_block - 1, before_ts, f"before {start_ts}"
                )

    async def _check_bracket(
        self,
        session: _ProbeSession,
        before_block: int,
        after_block: int,
        start_ts: int,
        end_ts_exclusive: int,
    ) -> None:
        before_ts = await session.timestamp(before_block)
        if before_ts >= start_ts:
            raise NonMonotonicTimestampsError(before_block, before_ts, f"before {start_ts}")

        after_ts = await session.timestamp(after_block)
        if after_ts < end_ts_exclusive:
            raise NonMonotonicTimestampsError(
                after_block, after_ts, f"at or after {end_ts_exclusive}"
            )

    async def get_daily_windows(
        self,
        chain: Chain,
        start_date: date,
        end_date: date,
    ) -> "OrderedDict[date, DailyBlockWindow]":
        """Resolve every day in ``[start_date, end_date]``, in order.

        Raises:
            ValueError: If end_date is before start_date
            BlockWindowError: The first failure aborts the whole range
        """
        if end_date < start_date:
            raise ValueError(f"end_date ({end_date}) is before start_date ({start_date})")

        log = self.logger.bind(
            chain=str(chain),
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        log.info("fetching_daily_windows")

        windows: "OrderedDict[date, DailyBlockWindow]" = OrderedDict()
        current = start_date
        while current <= end_date:
            try:
                windows[current] = await self.get_daily_window(chain, current)
            except Exception as e:
                log.error("daily_window_failed", date=current.isoformat(), error=str(e))
                raise
            current += timedelta(days=1)

        log.info("daily_windows_complete", num_days=len(windows))
        return windows
