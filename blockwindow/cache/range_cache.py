"""Generic cache for values aggregated over inclusive block ranges.

Entries are keyed by ``(key, start_block, end_block)``. Inserting a range that
overlaps or touches existing ranges for the same key folds them into a single
entry, so each key holds one entry per disjoint island of cached blocks.
``calculate_gaps`` reports the sub-ranges of a request that are not covered.
"""

import copy
from typing import Callable, Dict, Generic, Hashable, List, Optional, Protocol, Tuple, TypeVar

BlockRange = Tuple[int, int]


class Mergeable(Protocol):
    def merge(self, other) -> None:
        """Fold ``other`` into this value in place."""


K = TypeVar("K", bound=Hashable)
V = TypeVar("V", bound=Mergeable)


def _overlaps(cached_start: int, cached_end: int, start: int, end: int) -> bool:
    return not (cached_end < start or cached_start > end)


def _touches(cached_start: int, cached_end: int, start: int, end: int) -> bool:
    return not (cached_end + 1 < start or cached_start > end + 1)


class BlockRangeCache(Generic[K, V]):
    """Range-keyed cache with overlap-aware merging and gap detection.

    Not thread-safe; share it behind a single lock.
    """

    def __init__(self):
        self._cache: Dict[Tuple[K, int, int], V] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def is_empty(self) -> bool:
        return not self._cache

    def ranges(self, key: K) -> List[BlockRange]:
        """Cached ranges for ``key`` sorted by start block."""
        return sorted((s, e) for (k, s, e) in self._cache if k == key)

    def get(self, key: K, start_block: int, end_block: int) -> Optional[V]:
        """Return a cached value whose range fully contains the request.

        Partial coverage is never returned.
        """
        exact = self._cache.get((key, start_block, end_block))
        if exact is not None:
            return copy.copy(exact)

        for (cached_key, cached_start, cached_end), value in self._cache.items():
            if cached_key == key and cached_start <= start_block and cached_end >= end_block:
                return copy.copy(value)

        return None

    def _find(
        self,
        key: K,
        start_block: int,
        end_block: int,
        predicate: Callable[[int, int, int, int], bool],
    ) -> List[Tuple[Tuple[K, int, int], V]]:
        found = [
            (cache_key, value)
            for cache_key, value in self._cache.items()
            if cache_key[0] == key and predicate(cache_key[1], cache_key[2], start_block, end_block)
        ]
        found.sort(key=lambda item: item[0][1])
        return found

    def insert(self, key: K, start_block: int, end_block: int, value: V) -> None:
        """Store ``value`` for the range, merging overlapping or adjacent entries."""
        if end_block < start_block:
            raise ValueError(f"end_block ({end_block}) < start_block ({start_block})")

        neighbours = self._find(key, start_block, end_block, _touches)
        if not neighbours:
            self._cache[(key, start_block, end_block)] = copy.copy(value)
            return

        merged = copy.copy(value)
        min_start, max_end = start_block, end_block
        for cache_key, cached_value in neighbours:
            _, cached_start, cached_end = cache_key
            min_start = min(min_start, cached_start)
            max_end = max(max_end, cached_end)
            merged.merge(cached_value)
            del self._cache[cache_key]

        self._cache[(key, min_start, max_end)] = merged

    def calculate_gaps(
        self,
        key: K,
        start_block: int,
        end_block: int,
        create_empty: Callable[[], V],
    ) -> Tuple[Optional[V], List[BlockRange]]:
        """Split a request into cached data and uncached gaps.

        Returns the merged value of every cached range overlapping the request
        (None when nothing overlaps) and the sorted, disjoint gaps that still
        need computing. Together, gaps and overlapping ranges cover
        ``[start_block, end_block]`` exactly.
        """
        if end_block < start_block:
            raise ValueError(f"end_block ({end_block}) < start_block ({start_block})")

        covering = self.get(key, start_block, end_block)
        if covering is not None:
            return covering, []

        overlapping = self._find(key, start_block, end_block, _overlaps)
        if not overlapping:
            return None, [(start_block, end_block)]

        merged = create_empty()
        gaps: List[BlockRange] = []
        covered_until = start_block

        for (_, cached_start, cached_end), cached_value in overlapping:
            merged.merge(cached_value)
            if cached_start > covered_until:
                gaps.append((covered_until, cached_start - 1))
            covered_until = max(covered_until, cached_end + 1)

        if covered_until <= end_block:
            gaps.append((covered_until, end_block))

        return merged, gaps

    def retain(self, predicate: Callable[[K, int, int], bool]) -> int:
        """Keep only entries for which ``predicate(key, start, end)`` holds.

        Returns the number of entries removed.
        """
        doomed = [k for k in self._cache if not predicate(*k)]
        for cache_key in doomed:
            del self._cache[cache_key]
        return len(doomed)
