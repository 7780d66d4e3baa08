"""IPTracking model - rolling per-IP traffic counters.

Each counter is only valid for the time bucket stored in its paired
last_reset_* marker (minute = now // 60, hour = now // 3600,
day = now // 86400). Rows are created lazily and never deleted.
"""

from sqlalchemy import Column, Integer, Text

from .base import SecurityBase


class IPTracking(SecurityBase):
    """Traffic counters and offence history for one source IP."""
    __tablename__ = "ip_tracking"

    ip = Column(Text, primary_key=True)

    email_count_minute = Column(Integer, nullable=False, default=0)
    email_count_hour = Column(Integer, nullable=False, default=0)
    email_count_day = Column(Integer, nullable=False, default=0)
    connection_count_minute = Column(Integer, nullable=False, default=0)
    connection_count_hour = Column(Integer, nullable=False, default=0)

    # Email and connection counters share the bucket markers
    last_reset_minute = Column(Integer, nullable=False, default=0)
    last_reset_hour = Column(Integer, nullable=False, default=0)
    last_reset_day = Column(Integer, nullable=False, default=0)

    # Unix seconds
    first_seen = Column(Integer, nullable=False)
    last_seen = Column(Integer, nullable=False)

    violation_count = Column(Integer, nullable=False, default=0)
    ban_count = Column(Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "ip": self.ip,
            "email_count_minute": self.email_count_minute,
            "email_count_hour": self.email_count_hour,
            "email_count_day": self.email_count_day,
            "connection_count_minute": self.connection_count_minute,
            "connection_count_hour": self.connection_count_hour,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "violation_count": self.violation_count,
            "ban_count": self.ban_count,
        }

    def __repr__(self):
        return (
            f"<IPTracking(ip={self.ip}, violations={self.violation_count}, "
            f"bans={self.ban_count})>"
        )
