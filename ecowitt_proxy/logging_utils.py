#!/usr/bin/env python3
"""
hass-ecowitt-proxy - Logging Utilities

Configures process-wide logging for the proxy: level, output target and
format. Text logging is the default; structured NDJSON output is opt-in via
the LOG_JSON_ENABLED environment variable.

Key Features:
- Log levels OFF, DEBUG, INFO, WARN, ERROR
- Output to stdout, stderr or a file
- NDJSON (newline-delimited JSON) format for log aggregation
- Automatic correlation ID injection from the Flask request context

Usage:
    from ecowitt_proxy.logging_utils import setup_json_logging

    # At service startup
    logger = setup_json_logging(
        service_name="hass-ecowitt-proxy",
        version="1.0.0",
        level="INFO",
        output="stderr",
    )

    # Use logger normally - formatting handled automatically
    logger.info("Forwarding event", extra={"fields": 12})

Environment Variables:
    LOG_JSON_ENABLED: Enable JSON logging (default: false)
    POD_NAME: Kubernetes pod name for metadata
"""

import enum
import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List

from flask import g, has_request_context

TEXT_FORMAT = "%(asctime)s - %(levelname)s - [%(correlation_id)s] - %(message)s"


class LogLevel(enum.IntEnum):
    OFF = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    def to_logging(self) -> int:
        """Equivalent stdlib logging level (OFF maps above CRITICAL)."""
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }.get(self, logging.CRITICAL + 10)


def log_level_names() -> List[str]:
    return [level.name for level in LogLevel]


def log_level_from_str(name: str) -> LogLevel:
    """
    Parse a level name, case-insensitively. WARNING is accepted for WARN.

    Raises:
        ValueError: for unknown names
    """
    key = (name or "").strip().upper()
    if key == "WARNING":
        key = "WARN"
    try:
        return LogLevel[key]
    except KeyError:
        raise ValueError(f"invalid log level {name!r}") from None


class CorrelationIdFilter(logging.Filter):
    """Automatically adds correlation ID to all log records."""

    def filter(self, record):
        correlation_id = None
        if has_request_context():
            correlation_id = g.get("correlation_id")
        record.correlation_id = correlation_id or getattr(record, "correlation_id", None) or "system"
        return True


class NDJSONFormatter(logging.Formatter):
    """
    Formatter that outputs logs as NDJSON (newline-delimited JSON).

    Each log record is serialized as a single JSON object on one line.

    Fields included:
    - timestamp: ISO 8601 format with timezone
    - level, message, logger, module, function, line, thread
    - service, version, pod_name
    - correlation_id: Request correlation ID ("system" outside a request)
    - error: Exception details (if exception present)
    - any extra fields passed via ``extra={}``
    """

    RESERVED = {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
        "processName", "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "correlation_id", "taskName",
    }

    def __init__(self, service_name: str, version: str):
        super().__init__()
        self.service_name = service_name
        self.version = version
        self.pod_name = os.getenv("POD_NAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": threading.get_ident(),
            "service": self.service_name,
            "version": self.version,
            "pod_name": self.pod_name,
            "correlation_id": getattr(record, "correlation_id", None) or "system",
        }

        if record.exc_info:
            log_entry["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry, default=str)


def _make_handler(output: str) -> logging.Handler:
    target = (output or "stdout").strip()
    if target.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target.lower() == "stderr":
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(target, encoding="utf-8")


def setup_json_logging(
    service_name: str,
    version: str,
    level: str = "INFO",
    output: str = "stdout",
) -> logging.Logger:
    """
    Configure logging for the proxy.

    The function is idempotent - it can be called multiple times safely.

    Args:
        service_name: Name of the service (e.g., "hass-ecowitt-proxy")
        version: Service version string (e.g., "1.0.0")
        level: One of OFF, DEBUG, INFO, WARN, ERROR
        output: "stdout", "stderr" or a filename

    Returns:
        Configured logger instance (root logger)

    Raises:
        ValueError: for an unknown level name
    """
    log_level = log_level_from_str(level)
    json_enabled = os.getenv("LOG_JSON_ENABLED", "false").lower() in ("true", "1", "yes", "on")

    logger = logging.getLogger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(log_level.to_logging())

    if log_level is LogLevel.OFF:
        logger.addHandler(logging.NullHandler())
        return logger

    handler = _make_handler(output)
    handler.setLevel(logger.level)
    handler.addFilter(CorrelationIdFilter())

    if json_enabled:
        handler.setFormatter(NDJSONFormatter(service_name=service_name, version=version))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.info(
        f"{'JSON' if json_enabled else 'Standard'} logging enabled for service={service_name} "
        f"version={version} level={log_level.name}"
    )
    return logger
