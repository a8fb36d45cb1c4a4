import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

import structlog

from .config import Settings, settings as default_settings

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class StructuredJsonFormatter(logging.Formatter):
    """JSON formatter: one object per line with the event and its context"""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in data:
                data[key] = value

        if record.exc_info:
            data["error"] = self.formatException(record.exc_info)
            data["status"] = "error"

        # Remove empty fields for cleaner logs
        data = {k: v for k, v in data.items() if v != "" and v is not None}

        return json.dumps(data, default=str)


def configure_structlog() -> None:
    """Route structlog events through stdlib logging as ``extra`` fields"""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging with JSON format and daily rotation"""
    settings = settings or default_settings
    os.makedirs(settings.log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Remove any existing handlers
    root.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(root.level)
    console_handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(console_handler)

    log_filename = os.path.join(
        settings.log_dir,
        f"blockwindow_{datetime.now().strftime('%Y%m%d')}.log"
    )
    file_handler = TimedRotatingFileHandler(
        filename=log_filename,
        when="midnight",
        interval=1,
        backupCount=30,  # Keep 30 days of logs
        encoding="utf-8"
    )
    file_handler.suffix = "%Y%m%d.log"
    file_handler.setLevel(root.level)
    file_handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(file_handler)

    configure_structlog()
