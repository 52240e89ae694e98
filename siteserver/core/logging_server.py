"""
Logging Configuration Module

This module provides logging configuration for the server and the deploy
tool, in either a human-readable or a structured (JSON) format.

Features:
    - Human-readable format with millisecond timestamps (default)
    - Structured JSON format for machine-readable logs
    - Console handler, optional file handler
    - Suppression for noisy uvicorn loggers

Log Fields (Structured Mode):
    - timestamp: ISO format timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - module / function / line: Call site
    - client / url / command: (optional) Request or command context
    - exception: (optional) Exception traceback

Usage:
    from siteserver.core.logging_server import setup_logging

    setup_logging(log_level=logging.INFO)
    setup_logging(log_level=logging.DEBUG, use_structured=True, log_dir="logs")
"""

import sys
import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """
    Formatter for structured JSON logging.

    Outputs log records as JSON objects with consistent field names.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for field in ("client", "url", "command"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """
    Simple human-readable log formatter with milliseconds.

    Format: [TIMESTAMP.mmm] LEVEL:LOGGER:MESSAGE
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s:%(name)s:%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str = None) -> str:
        ct = datetime.fromtimestamp(record.created)
        s = ct.strftime(datefmt or "%Y-%m-%d %H:%M:%S")
        return f"{s}.{int(record.msecs):03d}"


def setup_logging(
    log_level: int = logging.INFO,
    use_structured: bool = False,
    log_dir: Optional[str] = None,
    log_file: str = "siteserver.log"
) -> None:
    """
    Configure application logging.

    Args:
        log_level: Minimum log level to capture (default: INFO)
        use_structured: Use JSON format if True, simple format if False
        log_dir: Directory for the log file (None = console only)
        log_file: File name inside log_dir
    """
    if use_structured:
        formatter = StructuredFormatter()
    else:
        formatter = SimpleFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_path / log_file,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _suppress_noisy_loggers()


def _suppress_noisy_loggers() -> None:
    """Suppress verbose logging from third-party libraries."""
    noisy_loggers = [
        "uvicorn.access",
        "uvicorn.error",
        "asyncio",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
