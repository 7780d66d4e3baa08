"""Observability module for GhostInbox.

Provides structured logging, correlation IDs and health checks.
"""

from .correlation import (
    correlation_id_var,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .health import ComponentHealth, HealthStatus
from .logging_config import configure_logging

__all__ = [
    # Logging
    "configure_logging",
    # Correlation ID
    "correlation_id_var",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    # Health
    "ComponentHealth",
    "HealthStatus",
]
