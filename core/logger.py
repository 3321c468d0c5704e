#!/usr/bin/env python3
"""
Service logger setup

Configures the standard library logging tree once per process: a console
handler, an optional file handler and an optional JSON formatter.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("segment_service", level="INFO")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Marks handlers installed here so repeated setup replaces instead of stacking
_HANDLER_FLAG = "_service_logger_handler"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, ISO-8601 timestamps"""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_service_logger(
    service_name: str,
    level: str = "INFO",
    log_file: Optional[str] = None,
    structured: bool = False,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure logging for a service and return its named logger

    Args:
        service_name: Logger name and service label in structured output
        level: Log level name
        log_file: Optional path; falls back to console only if it can't be opened
        structured: Emit JSON lines instead of the plain text format
        log_format: Plain text format string

    Returns:
        The service logger
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root.removeHandler(handler)
            handler.close()

    formatter: logging.Formatter
    if structured:
        formatter = JSONFormatter(service_name)
    else:
        formatter = logging.Formatter(log_format)

    handlers = [logging.StreamHandler(sys.stderr)]
    file_error = None
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_FLAG, True)
        root.addHandler(handler)

    logger = logging.getLogger(service_name)
    if file_error:
        logger.warning(f"Cannot open log file {log_file}: {file_error}. Logging to stderr only.")
    return logger


__all__ = ["setup_service_logger", "JSONFormatter"]
