import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure the project root (containing the blockwindow package) is importable.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from blockwindow.blocks.provider import ChainDataProvider, LogFilter, RawLog  # noqa: E402
from blockwindow.blocks.window import DailyBlockWindow  # noqa: E402
from blockwindow.cache.gas_cache import GasCostResult  # noqa: E402
from blockwindow.chains import Chain  # noqa: E402
from blockwindow.errors import BlockNotFoundError  # noqa: E402

# 2024-01-14 00:00:00 UTC
GENESIS_TS = 1705190400
BLOCK_TIME = 600
CHAIN_LENGTH = 700

SIGNER = "0x1111111111111111111111111111111111111111"
OTHER_SIGNER = "0x2222222222222222222222222222222222222222"


class FakeChainProvider(ChainDataProvider):
    """In-memory chain with explicit block timestamps that counts every call."""

    def __init__(self, timestamps: List[int]):
        self.timestamps = list(timestamps)
        self.tip_calls = 0
        self.probed: List[int] = []
        self.logs: List[RawLog] = []

    @property
    def probe_count(self) -> int:
        return len(self.probed)

    async def get_tip_block_number(self) -> int:
        self.tip_calls += 1
        return len(self.timestamps) - 1

    async def get_block_timestamp(self, block_number: int) -> int:
        self.probed.append(block_number)
        if not 0 <= block_number < len(self.timestamps):
            raise BlockNotFoundError(block_number)
        return self.timestamps[block_number]

    async def get_logs(self, log_filter: LogFilter) -> List[RawLog]:
        return [
            entry for entry in self.logs
            if log_filter.from_block <= entry.block_number <= log_filter.to_block
        ]


def regular_timestamps(
    length: int = CHAIN_LENGTH,
    genesis_ts: int = GENESIS_TS,
    block_time: int = BLOCK_TIME,
) -> List[int]:
    return [genesis_ts + block_time * n for n in range(length)]


def make_window(
    day: date = date(2024, 1, 15),
    start_block: int = 144,
    end_block: int = 287,
    chain: Chain = Chain.ARBITRUM,
) -> DailyBlockWindow:
    return DailyBlockWindow.for_day(chain, day, start_block, end_block)


@pytest.fixture
def fake_provider():
    """Chain starting 2024-01-14 00:00 UTC with a block every 10 minutes (144 per day)."""
    return FakeChainProvider(regular_timestamps())


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "block_windows.json"


def gas_result(count: int, cost: int, signer: Optional[str] = None) -> GasCostResult:
    return GasCostResult(signer=signer or SIGNER, transaction_count=count, total_gas_cost=cost)
