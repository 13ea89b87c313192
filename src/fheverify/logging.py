"""
fheverify Logging Configuration.

Provides consistent logging across all fheverify components with:
- Structured JSON output for production
- Human-readable output for development
- Filtering of secret key material from structured extras

Usage:
    from fheverify.logging import configure_logging, get_logger

    # At program startup
    configure_logging(level="INFO", json_format=False)

    # In modules
    logger = get_logger(__name__)
    logger.info("Selected parameters", extra={"context_hash": ctx.get_hash()})
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional

# Extra fields whose names match one of these are never written out
SENSITIVE_PATTERNS = frozenset(
    {
        "secret",
        "secret_key",
        "secretkey",
        "private_key",
        "key_material",
        "material",
        "token",
    }
)

_RECORD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _is_sensitive_key(key: str) -> bool:
    """Check if a key name suggests secret material."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _filter_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively filter sensitive values from a dictionary."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            filtered[key] = "[REDACTED]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive(value)
        else:
            filtered[key] = value
    return filtered


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_FIELDS:
                continue
            if _is_sensitive_key(key):
                extra_fields[key] = "[REDACTED]"
            elif isinstance(value, dict):
                extra_fields[key] = _filter_sensitive(value)
            else:
                extra_fields[key] = value

        if extra_fields:
            log_data["extra"] = extra_fields

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if color else ""

        timestamp = datetime.utcnow().strftime("%H:%M:%S.%f")[:-3]
        level = f"{color}{record.levelname:8}{reset}"
        name = record.name.split(".")[-1][:15].ljust(15)
        formatted = f"{timestamp} {level} {name} {record.getMessage()}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: Optional[bool] = None,
    stream: Any = None,
) -> None:
    """
    Configure logging for fheverify components.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON output. Default: True when FHEV_ENVIRONMENT=production
        stream: Output stream. Default: sys.stderr (stdout carries the report)
    """
    if json_format is None:
        env = os.environ.get("FHEV_ENVIRONMENT", "development")
        json_format = env == "production"

    root_logger = logging.getLogger("fheverify")
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    target = stream or sys.stderr
    handler = logging.StreamHandler(target)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter(use_color=hasattr(target, "isatty") and target.isatty()))

    root_logger.addHandler(handler)
    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the fheverify namespace.

    Usage:
        logger = get_logger(__name__)
    """
    if not name.startswith("fheverify"):
        name = f"fheverify.{name}"
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "get_logger",
    "StructuredFormatter",
    "DevelopmentFormatter",
]
