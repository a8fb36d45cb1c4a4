import os
from datetime import timedelta
from unittest.mock import patch

import pytest

from blockwindow.common.config import Settings


def test_settings_defaults():
    """Test Settings class with default values"""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings()

        assert settings.rpc_url == ""
        assert settings.chain_id == 1
        assert settings.cache_backend == "disk"
        assert settings.cache_path == "./cache/block_windows.json"
        assert settings.cache_ttl is None
        assert settings.cache_capacity is None
        assert settings.gas_scan_max_block_range == 2000
        assert settings.log_level == "INFO"
        assert settings.log_dir == "./logs"
        assert settings.http_timeout == 30
        assert settings.max_retries == 5
        assert settings.rpc_concurrency == 15
        assert settings.validate() is True


def test_settings_from_environment():
    """Test Settings class reads from environment variables"""
    env_vars = {
        "RPC_URL": "https://arb1.example.org",
        "CHAIN_ID": "42161",
        "BLOCK_CACHE_BACKEND": "Memory",
        "BLOCK_CACHE_PATH": "/var/cache/windows.json",
        "BLOCK_CACHE_TTL_SECONDS": "3600",
        "BLOCK_CACHE_MAX_ENTRIES": "500",
        "GAS_SCAN_MAX_BLOCK_RANGE": "250",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": "/custom/logs",
        "HTTP_TIMEOUT": "60",
        "MAX_RETRIES": "10",
        "RPC_CONCURRENCY": "4",
    }

    with patch.dict(os.environ, env_vars):
        settings = Settings()

        assert settings.rpc_url == "https://arb1.example.org"
        assert settings.chain_id == 42161
        assert settings.cache_backend == "memory"
        assert settings.cache_path == "/var/cache/windows.json"
        assert settings.cache_ttl == timedelta(hours=1)
        assert settings.cache_capacity == 500
        assert settings.gas_scan_max_block_range == 250
        assert settings.log_level == "DEBUG"
        assert settings.log_dir == "/custom/logs"
        assert settings.http_timeout == 60
        assert settings.max_retries == 10
        assert settings.rpc_concurrency == 4


@pytest.mark.parametrize(
    "env_vars",
    [
        {"BLOCK_CACHE_BACKEND": "redis"},
        {"BLOCK_CACHE_BACKEND": "disk", "BLOCK_CACHE_PATH": ""},
        {"BLOCK_CACHE_TTL_SECONDS": "-1"},
        {"MAX_RETRIES": "0"},
        {"GAS_SCAN_MAX_BLOCK_RANGE": "0"},
    ],
)
def test_validate_rejects_bad_values(env_vars):
    """Test validation catches unusable configuration"""
    with patch.dict(os.environ, env_vars, clear=True):
        settings = Settings()

        with pytest.raises(ValueError):
            settings.validate()
