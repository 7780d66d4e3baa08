"""Security event logging service.

Centralized writer for the append-only security_events table. Only the
abuse mitigation engine calls it, inside the same transaction as the ban or
counter change the event describes.

Security Events:
- BAN, UNBAN
- RATE_LIMIT
- EMAIL_BLOCKED
- LOGIN_FAILED (reserved for the admin login collaborator)
"""

from typing import Optional, Union

from sqlalchemy.orm import Session

from ..models.security_event import SecurityEvent, SecurityEventType


def log_security_event(
    db: Session,
    timestamp: int,
    event_type: Union[SecurityEventType, str],
    ip: Optional[str] = None,
    details: Optional[str] = None,
    action_taken: Optional[str] = None,
) -> SecurityEvent:
    """Create a security event entry.

    Args:
        db: Database session (caller owns the transaction)
        timestamp: Event time in unix seconds
        event_type: Event kind (e.g. SecurityEventType.BAN)
        ip: Source IP the event concerns
        details: Free-text context (reason, sender, recipient)
        action_taken: What the system did about it

    Returns:
        SecurityEvent: The created entry

    Example:
        log_security_event(
            db=db,
            timestamp=clock.now(),
            event_type=SecurityEventType.RATE_LIMIT,
            ip="203.0.113.9",
            details="Too many emails per minute",
            action_taken="Email denied",
        )
    """
    event = SecurityEvent(
        timestamp=timestamp,
        ip=ip,
        event_type=SecurityEventType(event_type).value,
        details=details,
        action_taken=action_taken,
    )

    db.add(event)
    db.flush()

    return event
