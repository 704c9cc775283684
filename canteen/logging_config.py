"""
Centralized logging for the Canteen API.

Uses the standard library's logging with two formatters:
  - StructuredFormatter: one JSON object per line, for log aggregation
  - ConsoleFormatter: human-readable lines for development

Loggers returned by get_logger() accept keyword context, which is attached
to the record and rendered by both formatters:

    logger = get_logger(__name__)
    logger.info("Wallet debited", account_id=acct.id, amount=5000)

Every money or stock mutation is logged this way so that a failed
multi-step operation can be reconciled by hand from the logs alone.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from canteen.config import settings


class StructuredFormatter(logging.Formatter):
    """JSON formatter, one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.DEBUG:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """Logger that turns keyword arguments into structured record data."""

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = {"extra_data": kwargs or None}
        super()._log(level, msg, args, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.WARNING, msg, args, exc_info=exc_info, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.CRITICAL, msg, args, exc_info=exc_info, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure the root logger. Call once at application startup.
    """
    log_level = logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if settings.LOG_FORMAT == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger that accepts structured keyword context.

    Usage:
        from canteen.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Stock reserved", item_id=item.id, quantity=2)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_email(email: str | None) -> str:
    """Mask an email address for logs: "student@campus.ac.id" -> "st***@campus.ac.id"."""
    if not email:
        return "<no-email>"

    try:
        local, domain = email.split("@", 1)
    except ValueError:
        return "***@invalid"

    masked_local = local[0] + "***" if len(local) <= 2 else local[:2] + "***"
    return f"{masked_local}@{domain}"
