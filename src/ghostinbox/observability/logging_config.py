"""Structured JSON logging configuration.

Provides centralized logging setup with correlation IDs and JSON formatting.
Security-relevant lines (bans, blocked mail, rate limits) can additionally
be written to a dedicated file.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from .correlation import get_correlation_id

SECURITY_LOGGER_NAME = "ghostinbox.security"


class CorrelationIDFilter(logging.Filter):
    """Add correlation_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "no-correlation-id"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        # Extra fields
        if hasattr(record, "alias"):
            log_data["alias"] = str(record.alias)
        if hasattr(record, "ip"):
            log_data["ip"] = str(record.ip)

        return json.dumps(log_data)


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s - %(levelname)s - %(correlation_id)s - %(module)s.%(funcName)s - %(message)s"
    )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    security_log_file: Optional[str] = None,
) -> None:
    """Configure process-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise use simple format
        security_log_file: Optional path that also receives every record from
            the ghostinbox.security logger namespace
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if json_format else _plain_formatter())
    handler.addFilter(CorrelationIDFilter())
    root_logger.addHandler(handler)

    security_logger = logging.getLogger(SECURITY_LOGGER_NAME)
    for existing in list(security_logger.handlers):
        security_logger.removeHandler(existing)
        existing.close()

    if security_log_file:
        try:
            file_handler = logging.FileHandler(security_log_file, encoding="utf-8")
        except OSError as e:
            root_logger.warning(f"Cannot open security log file {security_log_file}: {e}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(JSONFormatter() if json_format else _plain_formatter())
            file_handler.addFilter(CorrelationIDFilter())
            security_logger.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
