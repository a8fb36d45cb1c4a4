import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

CACHE_BACKENDS = ("disk", "memory", "none")


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass
class Settings:
    # Chain access
    rpc_url: str = field(default_factory=lambda: os.getenv("RPC_URL", ""))
    chain_id: int = field(default_factory=lambda: _env_int("CHAIN_ID", "1"))

    # Block window cache
    cache_backend: str = field(default_factory=lambda: os.getenv("BLOCK_CACHE_BACKEND", "disk").lower())
    cache_path: str = field(default_factory=lambda: os.getenv("BLOCK_CACHE_PATH", "./cache/block_windows.json"))
    cache_ttl_seconds: int = field(default_factory=lambda: _env_int("BLOCK_CACHE_TTL_SECONDS", "0"))  # 0 = never expire
    cache_max_entries: int = field(default_factory=lambda: _env_int("BLOCK_CACHE_MAX_ENTRIES", "0"))  # 0 = unbounded

    # Gas scanning
    gas_scan_max_block_range: int = field(default_factory=lambda: _env_int("GAS_SCAN_MAX_BLOCK_RANGE", "2000"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("LOG_DIR", "./logs"))

    # HTTP Settings
    http_timeout: int = field(default_factory=lambda: _env_int("HTTP_TIMEOUT", "30"))  # seconds
    max_retries: int = field(default_factory=lambda: _env_int("MAX_RETRIES", "5"))
    rpc_concurrency: int = field(default_factory=lambda: _env_int("RPC_CONCURRENCY", "15"))

    @property
    def cache_ttl(self) -> Optional[timedelta]:
        if self.cache_ttl_seconds <= 0:
            return None
        return timedelta(seconds=self.cache_ttl_seconds)

    @property
    def cache_capacity(self) -> Optional[int]:
        if self.cache_max_entries <= 0:
            return None
        return self.cache_max_entries

    def validate(self):
        """Validate configuration before building services"""
        if self.cache_backend not in CACHE_BACKENDS:
            raise ValueError(
                f"BLOCK_CACHE_BACKEND must be one of {', '.join(CACHE_BACKENDS)}, got '{self.cache_backend}'"
            )
        if self.cache_backend == "disk" and not self.cache_path:
            raise ValueError("BLOCK_CACHE_PATH must be set for the disk cache")
        if self.cache_ttl_seconds < 0 or self.cache_max_entries < 0:
            raise ValueError("Cache TTL and max entries must not be negative")
        if self.http_timeout <= 0 or self.max_retries < 1 or self.rpc_concurrency < 1:
            raise ValueError("HTTP_TIMEOUT, MAX_RETRIES and RPC_CONCURRENCY must be positive")
        if self.gas_scan_max_block_range < 1:
            raise ValueError("GAS_SCAN_MAX_BLOCK_RANGE must be positive")
        return True


settings = Settings()
