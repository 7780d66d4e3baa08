"""Correlation ID for one message-handling execution.

The pipe entrypoint sets it from the message's Message-ID so every log line
of one relay run can be grouped; the admin API sets a fresh one per request.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a new unique correlation ID (UUID v4)."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID, or "no-correlation-id" if not set."""
    return correlation_id_var.get() or "no-correlation-id"


def set_correlation_id(correlation_id: Optional[str]) -> str:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: ID to use; a fresh one is generated when empty

    Returns:
        str: The ID now in effect
    """
    value = (correlation_id or "").strip().strip("<>") or generate_correlation_id()
    correlation_id_var.set(value)
    return value
