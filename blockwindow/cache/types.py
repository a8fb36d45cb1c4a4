"""Cache keys, statistics and ordering primitives shared by all backends.

``TimestampMillis`` and ``AccessSequence`` together give every cache entry a
total order: entries are compared by timestamp first and by sequence number
when two entries were stamped in the same millisecond. The oldest pair is the
eviction victim.
"""

import time
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Dict

from blockwindow.chains import Chain

ACCESS_SEQUENCE_MAX = 2**64 - 1


@dataclass(frozen=True, order=True)
class TimestampMillis:
    """Unix timestamp in milliseconds."""

    millis: int

    @classmethod
    def now(cls) -> "TimestampMillis":
        return cls(time.time_ns() // 1_000_000)

    def age_since_now(self) -> timedelta:
        """Age relative to now; zero for timestamps in the future."""
        age_millis = max(0, TimestampMillis.now().millis - self.millis)
        return timedelta(milliseconds=age_millis)

    def is_older_than(self, duration: timedelta) -> bool:
        return self.age_since_now() > duration


@dataclass(frozen=True, order=True)
class AccessSequence:
    """Monotonic tie-breaker for entries sharing a timestamp.

    ``next()`` saturates at 2**64 - 1 instead of wrapping.
    """

    value: int = 0

    def next(self) -> "AccessSequence":
        return AccessSequence(min(self.value + 1, ACCESS_SEQUENCE_MAX))


@dataclass(frozen=True, order=True)
class CacheKey:
    """Identity of a cached daily window: ``(chain, date)``."""

    chain: Chain
    date: date

    def __str__(self) -> str:
        return f"{int(self.chain)}:{self.date.isoformat()}"

    @classmethod
    def parse(cls, raw: str) -> "CacheKey":
        """Parse the ``"{chain_id}:{YYYY-MM-DD}"`` form produced by ``str``."""
        parts = raw.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid cache key format: {raw}")

        chain_part, date_part = parts
        try:
            chain_id = int(chain_part)
        except ValueError:
            raise ValueError(f"Invalid chain ID in key '{raw}'") from None

        try:
            day = date.fromisoformat(date_part)
        except ValueError:
            raise ValueError(f"Invalid date in key '{raw}'") from None

        return cls(Chain.from_id(chain_id), day)


@dataclass
class CacheStats:
    """Process-local cache counters. Never persisted."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    entries: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage (0.0 to 100.0)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100.0

    def snapshot(self) -> "CacheStats":
        return CacheStats(**asdict(self))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data

    def __str__(self) -> str:
        return (
            f"hits={self.hits}, misses={self.misses}, evictions={self.evictions}, "
            f"expirations={self.expirations}, entries={self.entries}, "
            f"hit_rate={self.hit_rate:.1f}%"
        )
