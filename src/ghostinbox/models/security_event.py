"""SecurityEvent model - append-only security audit trail.

Entries are never updated or deleted. Besides auditing, recent BAN and
RATE_LIMIT entries feed the permanent-ban heuristic.
"""

from enum import Enum

from sqlalchemy import Column, Index, Integer, Text

from .base import SecurityBase


class SecurityEventType(str, Enum):
    """Kinds of security events."""
    BAN = "BAN"
    UNBAN = "UNBAN"
    RATE_LIMIT = "RATE_LIMIT"
    EMAIL_BLOCKED = "EMAIL_BLOCKED"
    LOGIN_FAILED = "LOGIN_FAILED"


class SecurityEvent(SecurityBase):
    """One security audit entry."""
    __tablename__ = "security_events"
    __table_args__ = (
        Index("ix_security_events_ip_timestamp", "ip", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(Integer, nullable=False, index=True)
    ip = Column(Text, nullable=True)
    event_type = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    action_taken = Column(Text, nullable=True)

    def to_dict(self):
        """Convert security event to dictionary representation"""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "ip": self.ip,
            "event_type": self.event_type,
            "details": self.details,
            "action_taken": self.action_taken,
        }

    def __repr__(self):
        return f"<SecurityEvent(ip={self.ip}, type={self.event_type})>"
