"""JSON-RPC implementation of the chain-data provider.

Transport concerns live here and only here: HTTP session handling, bounded
request concurrency and retries with exponential backoff. Callers see either
a result or an ``RpcError``.
"""

import asyncio
from typing import Any, List, Optional

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from blockwindow.blocks.provider import ChainDataProvider, LogFilter, RawLog
from blockwindow.errors import BlockNotFoundError, RpcError

logger = structlog.get_logger()


class JsonRpcProvider(ChainDataProvider):
    """Async client for an EVM JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        rate_limit_semaphore: Optional[asyncio.Semaphore] = None,
        timeout: int = 30,
        max_retries: int = 5,
    ):
        """Initialize JSON-RPC provider.

        Args:
            rpc_url: HTTP(S) endpoint of the node or RPC service
            rate_limit_semaphore: Optional semaphore bounding concurrent requests
            timeout: Request timeout in seconds
            max_retries: Attempts per call on transport errors

        Raises:
            ValueError: If rpc_url is empty
        """
        if not rpc_url:
            raise ValueError("rpc_url is required")

        self.rpc_url = rpc_url
        self.rate_limit = rate_limit_semaphore or asyncio.Semaphore(15)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self._request_id = 0
        self._session: Optional[aiohttp.ClientSession] = None

        self.logger = logger.bind(component="json_rpc_provider")

    async def __aenter__(self) -> "JsonRpcProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post(self, method: str, params: List[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        async with self.rate_limit:
            session = self._get_session()
            async with session.post(self.rpc_url, json=payload) as response:
                response.raise_for_status()
                data = await response.json()

        if "error" in data:
            error = data["error"]
            error_msg = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            self.logger.error("rpc_error", method=method, error=error_msg)
            raise RpcError(method, error_msg)

        return data.get("result")

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make a JSON-RPC call, retrying transport failures.

        Raises:
            RpcError: On JSON-RPC errors or once retries are exhausted
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=60),
            retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._post(method, params)
        except RetryError as e:
            cause = e.last_attempt.exception()
            self.logger.error(
                "rpc_retries_exhausted",
                method=method,
                attempts=self.max_retries,
                error=str(cause),
            )
            raise RpcError(method, f"transport failure after {self.max_retries} attempts: {cause}") from cause

    async def get_tip_block_number(self) -> int:
        result = await self._rpc_call("eth_blockNumber", [])
        if result is None:
            raise RpcError("eth_blockNumber", "empty result")
        return int(result, 16)

    async def get_block_timestamp(self, block_number: int) -> int:
        result = await self._rpc_call("eth_getBlockByNumber", [hex(block_number), False])
        if result is None:
            raise BlockNotFoundError(block_number)
        return int(result["timestamp"], 16)

    async def get_logs(self, log_filter: LogFilter) -> List[RawLog]:
        log = self.logger.bind(
            from_block=log_filter.from_block,
            to_block=log_filter.to_block,
            operation="get_logs",
        )
        result = await self._rpc_call("eth_getLogs", [log_filter.to_rpc_params()])
        logs = [RawLog.model_validate(entry) for entry in result or []]
        logs.sort(key=lambda entry: (entry.block_number, entry.log_index))
        log.debug("fetched_logs", count=len(logs))
        return logs
