"""Error types for block window resolution and range caching.

Errors come in two tiers. Everything that affects the correctness of a
returned value (invalid ranges, provider failures) propagates to the caller.
``CacheError`` and its subclasses only affect performance: cache backends
catch and log them at their boundary, so callers of ``get``/``insert`` never
see one.
"""

from typing import Optional


class BlockWindowError(Exception):
    """Base class for all errors raised by this package."""
    pass


class InvalidRangeError(BlockWindowError):
    """Raised when a block range ends before it starts."""

    def __init__(self, start_block: int, end_block: int, reason: str = ""):
        self.start_block = start_block
        self.end_block = end_block
        self.reason = reason
        message = (
            f"Invalid block range: end_block ({end_block}) < start_block ({start_block})"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidTimestampRangeError(BlockWindowError):
    """Raised when a window's timestamps do not span exactly one day."""

    def __init__(self, start_ts: int, end_ts: int):
        self.start_ts = start_ts
        self.end_ts = end_ts
        super().__init__(
            f"Invalid timestamp range: start_ts={start_ts}, end_ts={end_ts}"
        )


class NonMonotonicTimestampsError(BlockWindowError):
    """Raised when probed block timestamps contradict the search result."""

    def __init__(self, block_number: int, timestamp: int, expectation: str):
        self.block_number = block_number
        self.timestamp = timestamp
        super().__init__(
            f"Block {block_number} has timestamp {timestamp}, expected {expectation}; "
            f"provider timestamps are not non-decreasing"
        )


class RpcError(BlockWindowError):
    """Raised when the remote chain-data provider fails."""

    def __init__(
        self,
        operation: str,
        message: str,
        block_number: Optional[int] = None,
    ):
        self.operation = operation
        self.block_number = block_number
        prefix = f"RPC {operation} failed"
        if block_number is not None:
            prefix = f"{prefix} for block {block_number}"
        super().__init__(f"{prefix}: {message}")


class BlockNotFoundError(RpcError):
    """Raised when the provider has no block at the requested height."""

    def __init__(self, block_number: int):
        super().__init__("get_block", "block not found", block_number=block_number)


class CacheError(BlockWindowError):
    """Cache-layer failure. Logged and absorbed by cache backends."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{message} ({path})")


class CacheIOError(CacheError):
    """Reading, writing or locking the cache file failed."""
    pass


class CacheSerializationError(CacheError):
    """The cache file could not be parsed or encoded."""
    pass
