"""Per-signer gas cost accumulator with gap detection.

Gas totals for a signer are cached per block range. Overlapping or adjacent
inserts are consolidated, and ``calculate_gaps`` tells a caller exactly which
block ranges still have to be scanned. Totals use saturating 256-bit
arithmetic.

Example:

    cache = GasCache()
    cache.insert(signer, 100, 200, result_a)
    cache.insert(signer, 300, 400, result_b)
    cached, gaps = cache.calculate_gaps(signer, 50, 500)
    # gaps == [(50, 99), (201, 299), (401, 500)]
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from blockwindow.cache.range_cache import BlockRange, BlockRangeCache
from blockwindow.numeric import U256_MAX, saturating_add, saturating_mul


def normalize_signer(signer: str) -> str:
    """Lowercase an address so lookups are case-insensitive."""
    if not signer.startswith("0x") or len(signer) != 42:
        raise ValueError(f"Invalid Ethereum address: {signer}")
    return signer.lower()


@dataclass
class GasCostResult:
    """Aggregated gas spend of one signer over a block range."""

    signer: str
    transaction_count: int = 0
    total_gas_cost: int = 0

    def __post_init__(self):
        self.signer = normalize_signer(self.signer)
        if self.transaction_count < 0 or self.total_gas_cost < 0:
            raise ValueError("gas aggregates must be non-negative")
        self.total_gas_cost = min(self.total_gas_cost, U256_MAX)

    def add_transaction(self, gas_used: int, effective_gas_price: int, l1_fee: int = 0) -> None:
        """Accumulate one transaction's ``gas_used * price + l1_fee`` (in wei)."""
        cost = saturating_add(saturating_mul(gas_used, effective_gas_price), l1_fee)
        self.total_gas_cost = saturating_add(self.total_gas_cost, cost)
        self.transaction_count += 1

    def merge(self, other: "GasCostResult") -> None:
        if other.signer != self.signer:
            raise ValueError(f"Cannot merge gas costs of {other.signer} into {self.signer}")
        self.total_gas_cost = saturating_add(self.total_gas_cost, other.total_gas_cost)
        self.transaction_count += other.transaction_count


class GasCache:
    """In-process cache of ``GasCostResult`` keyed by (signer, start, end).

    Not safe for concurrent mutation on its own; share one instance behind a
    single lock (see ``GasCostScanner``).
    """

    def __init__(self):
        self._inner: BlockRangeCache[str, GasCostResult] = BlockRangeCache()

    def __len__(self) -> int:
        return len(self._inner)

    def is_empty(self) -> bool:
        return self._inner.is_empty()

    def ranges(self, signer: str) -> List[BlockRange]:
        return self._inner.ranges(normalize_signer(signer))

    def get(self, signer: str, start_block: int, end_block: int) -> Optional[GasCostResult]:
        """Cached result for a range that fully contains ``[start_block, end_block]``."""
        return self._inner.get(normalize_signer(signer), start_block, end_block)

    def insert(self, signer: str, start_block: int, end_block: int, result: GasCostResult) -> None:
        """Cache a result, consolidating overlapping and adjacent ranges."""
        key = normalize_signer(signer)
        if result.signer != key:
            raise ValueError(f"Result for {result.signer} cannot be cached under {key}")
        self._inner.insert(key, start_block, end_block, result)

    def calculate_gaps(
        self,
        signer: str,
        start_block: int,
        end_block: int,
    ) -> Tuple[Optional[GasCostResult], List[BlockRange]]:
        """Return merged cached data and the uncached gaps of a request.

        - Fully cached: ``(result, [])``
        - Nothing cached: ``(None, [(start_block, end_block)])``
        - Partially cached: merged data and the sorted gaps
        """
        key = normalize_signer(signer)
        return self._inner.calculate_gaps(
            key, start_block, end_block, lambda: GasCostResult(signer=key)
        )

    def clear_signer(self, signer: str) -> int:
        """Drop every cached range for a signer."""
        key = normalize_signer(signer)
        return self._inner.retain(lambda cached_key, _start, _end: cached_key != key)

    def clear_below(self, min_block: int) -> int:
        """Drop entries that end before ``min_block``."""
        return self._inner.retain(lambda _key, _start, end: end >= min_block)
