"""Daily block windows: the inclusive block range covering one UTC day."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Tuple

import pytz

from blockwindow.chains import Chain
from blockwindow.errors import InvalidRangeError, InvalidTimestampRangeError

SECONDS_PER_DAY = 86400


def day_bounds(day: date) -> Tuple[int, int]:
    """Return ``(start_ts, end_ts_exclusive)`` in Unix seconds for a UTC day."""
    midnight = pytz.utc.localize(datetime(day.year, day.month, day.day))
    start_ts = int(midnight.timestamp())
    end_ts_exclusive = int((midnight + timedelta(days=1)).timestamp())
    return start_ts, end_ts_exclusive


@dataclass(frozen=True)
class DailyBlockWindow:
    """Inclusive block range for a specific UTC day on a chain.

    ``start_block`` is the first block produced at or after 00:00:00 UTC and
    ``end_block`` the last block produced before 00:00:00 UTC of the next day.
    ``end_ts_exclusive`` is always ``start_ts + 86400``.
    """

    chain: Chain
    date: date
    start_block: int
    end_block: int
    start_ts: int
    end_ts_exclusive: int

    def __post_init__(self):
        if self.end_block < self.start_block:
            raise InvalidRangeError(self.start_block, self.end_block)
        if self.start_block < 0:
            raise InvalidRangeError(self.start_block, self.end_block, "negative block number")
        if self.end_ts_exclusive - self.start_ts != SECONDS_PER_DAY:
            raise InvalidTimestampRangeError(self.start_ts, self.end_ts_exclusive)

    @classmethod
    def for_day(
        cls,
        chain: Chain,
        day: date,
        start_block: int,
        end_block: int,
    ) -> "DailyBlockWindow":
        """Build a window, deriving the timestamps from the date."""
        start_ts, end_ts_exclusive = day_bounds(day)
        return cls(
            chain=chain,
            date=day,
            start_block=start_block,
            end_block=end_block,
            start_ts=start_ts,
            end_ts_exclusive=end_ts_exclusive,
        )

    @property
    def block_count(self) -> int:
        """Number of blocks in the window (inclusive)."""
        return self.end_block - self.start_block + 1

    def contains_block(self, block_number: int) -> bool:
        return self.start_block <= block_number <= self.end_block

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": int(self.chain),
            "date": self.date.isoformat(),
            "start_block": self.start_block,
            "end_block": self.end_block,
            "start_ts": self.start_ts,
            "end_ts_exclusive": self.end_ts_exclusive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyBlockWindow":
        return cls(
            chain=Chain.from_id(data["chain"]),
            date=date.fromisoformat(data["date"]),
            start_block=int(data["start_block"]),
            end_block=int(data["end_block"]),
            start_ts=int(data["start_ts"]),
            end_ts_exclusive=int(data["end_ts_exclusive"]),
        )
