import json
import logging
import sys
from logging.handlers import TimedRotatingFileHandler

import pytest
import structlog

from blockwindow.common.config import Settings
from blockwindow.common.logging_setup import StructuredJsonFormatter, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()


def test_structured_json_formatter():
    """Test JSON formatter produces correct structured output"""
    formatter = StructuredJsonFormatter()

    record = logging.LogRecord(
        name="test_logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg="cache_hit",
        args=(),
        exc_info=None,
    )
    record.component = "memory_cache"
    record.key = "42161:2025-10-15"
    record.error = ""

    data = json.loads(formatter.format(record))

    assert "ts" in data
    assert data["level"] == "INFO"
    assert data["component"] == "memory_cache"
    assert data["key"] == "42161:2025-10-15"
    assert data["message"] == "cache_hit"
    # Empty fields are dropped
    assert "error" not in data


def test_structured_json_formatter_with_exception():
    """Test JSON formatter with exception info"""
    formatter = StructuredJsonFormatter()

    try:
        raise ValueError("Test error")
    except ValueError:
        exc_info = sys.exc_info()

    record = logging.LogRecord(
        name="test_logger",
        level=logging.ERROR,
        pathname="test.py",
        lineno=10,
        msg="daily_window_failed",
        args=(),
        exc_info=exc_info,
    )

    data = json.loads(formatter.format(record))

    assert data["status"] == "error"
    assert "ValueError: Test error" in data["error"]


def test_setup_logging(tmp_path, restore_logging):
    """Test logging setup creates console and rotating file handlers"""
    settings = Settings(log_level="DEBUG", log_dir=str(tmp_path / "logs"))

    setup_logging(settings)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2
    assert any(isinstance(h, TimedRotatingFileHandler) for h in root.handlers)
    assert all(isinstance(h.formatter, StructuredJsonFormatter) for h in root.handlers)
    assert (tmp_path / "logs").is_dir()


def test_structlog_events_reach_log_file(tmp_path, restore_logging):
    """Test structlog key-value context ends up as JSON fields in the log file"""
    log_dir = tmp_path / "logs"
    setup_logging(Settings(log_level="INFO", log_dir=str(log_dir)))

    structlog.get_logger("blockwindow.test").bind(component="disk_cache").info(
        "cache_insert", key="42161:2025-10-15", entries=3
    )
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_files = list(log_dir.glob("blockwindow_*.log"))
    assert len(log_files) == 1

    lines = [json.loads(line) for line in log_files[0].read_text().splitlines() if line]
    event = next(line for line in lines if line["message"] == "cache_insert")
    assert event["component"] == "disk_cache"
    assert event["key"] == "42161:2025-10-15"
    assert event["entries"] == 3
    assert event["level"] == "INFO"
