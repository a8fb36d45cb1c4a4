"""Remote chain-data provider capability consumed by the resolver."""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogFilter(BaseModel):
    """Filter for ``eth_getLogs``."""

    address: Optional[str] = None
    topics: List[Optional[str]] = Field(default_factory=list)
    from_block: int
    to_block: int

    @field_validator("to_block")
    @classmethod
    def validate_block_order(cls, v: int, info) -> int:
        from_block = info.data.get("from_block")
        if from_block is not None and v < from_block:
            raise ValueError(f"to_block ({v}) < from_block ({from_block})")
        return v

    def to_rpc_params(self) -> dict:
        params = {
            "fromBlock": hex(self.from_block),
            "toBlock": hex(self.to_block),
            "topics": self.topics,
        }
        if self.address:
            params["address"] = self.address
        return params


class RawLog(BaseModel):
    """Raw log entry from eth_getLogs."""

    model_config = ConfigDict(populate_by_name=True)

    address: str
    topics: List[str]
    data: str
    block_number: int = Field(alias="blockNumber")
    transaction_hash: str = Field(alias="transactionHash")
    transaction_index: int = Field(alias="transactionIndex")
    block_hash: str = Field(alias="blockHash")
    log_index: int = Field(alias="logIndex")
    removed: bool = False

    @field_validator(
        "block_number", "transaction_index", "log_index", mode="before"
    )
    @classmethod
    def parse_hex_quantity(cls, v):
        if isinstance(v, str):
            return int(v, 16)
        return v


class ChainDataProvider(ABC):
    """Async access to block heights, block timestamps and logs.

    Implementations own transport concerns (connections, rate limits,
    retries) and raise ``RpcError`` on failure.
    """

    @abstractmethod
    async def get_tip_block_number(self) -> int:
        """Return the current chain tip block number."""

    @abstractmethod
    async def get_block_timestamp(self, block_number: int) -> int:
        """Return a block's timestamp in Unix seconds."""

    @abstractmethod
    async def get_logs(self, log_filter: LogFilter) -> List[RawLog]:
        """Return logs matching the filter, ordered by block and log index."""
