"""
otpdesk/core/logging.py

Purpose: Logging configuration

- JSON lines in production, coloured one-liners in development
- Per-task context (order_id, employee_id, ...) carried by contextvars,
  so concurrent requests never see each other's fields
- One namespace ("otpdesk.*") for every module logger
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from otpdesk.core.config import settings


# Fields rendered by both formatters, in this order
CONTEXT_FIELDS = ("order_id", "employee_id", "provider_status", "attempt", "process_time")

_log_context: contextvars.ContextVar = contextvars.ContextVar("otpdesk_log_context", default={})

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

NOISY_LOGGERS = ("httpx", "httpcore", "motor", "pymongo", "uvicorn.access")


def current_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}


class ContextFilter(logging.Filter):
    """
    Copies the active LogContext onto each record.
    Values passed explicitly through `extra=` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line, for log shippers.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context_of(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    [HH:MM:SS] LEVEL    logger: message [order=..., employee=...]
    """

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}[{timestamp}] {record.levelname:<8}{RESET} {record.name}: {record.getMessage()}"

        context = _context_of(record)
        if context:
            rendered = ", ".join(f"{key.replace('_id', '')}={value}" for key, value in context.items())
            line += f" [{rendered}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logging() -> logging.Logger:
    """
    Installs a single stdout handler on the root logger.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("otpdesk")
    logger.info(f"Logging configured (environment={settings.ENVIRONMENT}, level={settings.LOG_LEVEL})")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Module logger under the "otpdesk" namespace.
    """
    if name == "otpdesk" or name.startswith("otpdesk."):
        return logging.getLogger(name)
    return logging.getLogger(f"otpdesk.{name}")


class LogContext:
    """
    Adds fields to every record logged inside the block, in the current task only.

    Usage:
        with LogContext(order_id="12345", employee_id="65a1..."):
            logger.info("Polling provider")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
