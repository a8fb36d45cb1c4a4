"""Build cache backends and services from ``Settings``.

This is the only module that turns configuration into objects; the cache and
resolver classes take plain constructor arguments.
"""

import asyncio
from typing import Optional

from blockwindow.blocks.calculator import BlockWindowCalculator
from blockwindow.blocks.provider import ChainDataProvider
from blockwindow.blocks.rpc_client import JsonRpcProvider
from blockwindow.cache.base import BlockWindowCache
from blockwindow.cache.disk import DiskCache
from blockwindow.cache.memory import MemoryCache
from blockwindow.cache.noop import NoOpCache
from blockwindow.common.config import Settings, settings as default_settings
from blockwindow.gas.scanner import GapFetcher, GasCostScanner


def create_block_window_cache(settings: Optional[Settings] = None) -> BlockWindowCache:
    """Cache backend selected by ``BLOCK_CACHE_BACKEND``."""
    settings = settings or default_settings
    settings.validate()

    if settings.cache_backend == "none":
        return NoOpCache()
    if settings.cache_backend == "memory":
        return MemoryCache(max_entries=settings.cache_capacity, ttl=settings.cache_ttl)
    return DiskCache(
        settings.cache_path,
        max_entries=settings.cache_capacity,
        ttl=settings.cache_ttl,
    ).validate()


def create_provider(settings: Optional[Settings] = None) -> JsonRpcProvider:
    settings = settings or default_settings
    settings.validate()
    if not settings.rpc_url:
        raise ValueError("RPC_URL must be set")

    return JsonRpcProvider(
        settings.rpc_url,
        rate_limit_semaphore=asyncio.Semaphore(settings.rpc_concurrency),
        timeout=settings.http_timeout,
        max_retries=settings.max_retries,
    )


def create_calculator(
    settings: Optional[Settings] = None,
    provider: Optional[ChainDataProvider] = None,
) -> BlockWindowCalculator:
    """Resolver wired to the configured provider and cache backend."""
    settings = settings or default_settings
    return BlockWindowCalculator(
        provider or create_provider(settings),
        create_block_window_cache(settings),
    )


def create_gas_scanner(
    fetch_range: GapFetcher,
    settings: Optional[Settings] = None,
) -> GasCostScanner:
    settings = settings or default_settings
    settings.validate()
    return GasCostScanner(fetch_range, max_block_range=settings.gas_scan_max_block_range)
