"""Incremental gas cost scanning over a shared ``GasCache``.

Only the blocks the cache has not seen are fetched. The cache lock is held
for lookups and inserts, never across a fetch, so concurrent scans for
different signers overlap freely. Scans for one signer are serialised by a
per-signer lock held across the whole lookup, fetch and insert sequence.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, DefaultDict, List, Optional

import structlog

from blockwindow.cache.gas_cache import GasCache, GasCostResult, normalize_signer
from blockwindow.cache.range_cache import BlockRange

logger = structlog.get_logger()

GapFetcher = Callable[[str, int, int], Awaitable[GasCostResult]]


def split_range(start_block: int, end_block: int, max_block_range: int) -> List[BlockRange]:
    """Split an inclusive range into chunks of at most ``max_block_range`` blocks."""
    if max_block_range < 1:
        raise ValueError("max_block_range must be at least 1")
    chunks = []
    current = start_block
    while current <= end_block:
        chunk_end = min(current + max_block_range - 1, end_block)
        chunks.append((current, chunk_end))
        current = chunk_end + 1
    return chunks


class GasCostScanner:
    """Answers gas totals for a signer, fetching only uncached block ranges."""

    def __init__(
        self,
        fetch_range: GapFetcher,
        cache: Optional[GasCache] = None,
        lock: Optional[asyncio.Lock] = None,
        max_block_range: int = 2000,
    ):
        """Initialize scanner.

        Args:
            fetch_range: Async callable computing the gas total of one signer
                over an inclusive block range
            cache: Shared cache (a fresh one is created if omitted)
            lock: Lock guarding ``cache`` when it is shared between scanners
            max_block_range: Largest range handed to a single fetch
        """
        if max_block_range < 1:
            raise ValueError("max_block_range must be at least 1")

        self.fetch_range = fetch_range
        self.cache = cache if cache is not None else GasCache()
        self.lock = lock or asyncio.Lock()
        self.max_block_range = max_block_range
        self._signer_locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self.logger = logger.bind(component="gas_cost_scanner")

    async def get_gas_cost(self, signer: str, start_block: int, end_block: int) -> GasCostResult:
        """Total gas spent by ``signer`` in ``[start_block, end_block]``.

        Scans for the same signer run one at a time, so a gap is never fetched
        and inserted twice.

        Raises:
            ValueError: If the range is inverted or the signer malformed
            Exception: Whatever ``fetch_range`` raises; gaps fetched before
                the failure stay cached
        """
        signer = normalize_signer(signer)
        if end_block < start_block:
            raise ValueError(f"end_block ({end_block}) < start_block ({start_block})")

        async with self._signer_locks[signer]:
            return await self._scan(signer, start_block, end_block)

    async def _scan(self, signer: str, start_block: int, end_block: int) -> GasCostResult:
        log = self.logger.bind(signer=signer, start_block=start_block, end_block=end_block)

        async with self.lock:
            cached, gaps = self.cache.calculate_gaps(signer, start_block, end_block)

        if cached is not None and not gaps:
            log.info("gas_cost_cache_hit")
            return cached

        total = cached if cached is not None else GasCostResult(signer=signer)
        log.info("gas_cost_gaps_found", gaps=len(gaps), cached=cached is not None)

        for gap_start, gap_end in gaps:
            for chunk_start, chunk_end in split_range(gap_start, gap_end, self.max_block_range):
                log.debug("fetching_gas_range", chunk_start=chunk_start, chunk_end=chunk_end)
                chunk_result = await self.fetch_range(signer, chunk_start, chunk_end)

                async with self.lock:
                    self.cache.insert(signer, chunk_start, chunk_end, chunk_result)

                total.merge(chunk_result)

        log.info(
            "gas_cost_computed",
            transaction_count=total.transaction_count,
            total_gas_cost=str(total.total_gas_cost),
        )
        return total
