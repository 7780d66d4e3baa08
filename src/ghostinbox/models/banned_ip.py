"""BannedIP model - temporary and permanent IP bans.

An IP is banned iff the row is permanent or now < expires_at. Whitelisted
IPs never get a row.
"""

from sqlalchemy import Boolean, Column, Integer, Text, false

from .base import SecurityBase


class BannedIP(SecurityBase):
    """Ban record for one IP."""
    __tablename__ = "banned_ips"

    ip = Column(Text, primary_key=True)
    banned_at = Column(Integer, nullable=False)
    # Ignored when is_permanent
    expires_at = Column(Integer, nullable=True, index=True)
    reason = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)
    is_permanent = Column(Boolean, nullable=False, default=False, server_default=false())

    def is_active(self, now: int) -> bool:
        """True if this record bans its IP at `now`."""
        if self.is_permanent:
            return True
        return self.expires_at is not None and now < self.expires_at

    def remaining(self, now: int) -> int:
        """Seconds left on a temporary ban (0 when expired)."""
        if self.is_permanent or self.expires_at is None:
            return 0
        return max(0, self.expires_at - now)

    def to_dict(self):
        return {
            "ip": self.ip,
            "banned_at": self.banned_at,
            "expires_at": None if self.is_permanent else self.expires_at,
            "reason": self.reason,
            "duration": self.duration,
            "is_permanent": self.is_permanent,
        }

    def __repr__(self):
        return (
            f"<BannedIP(ip={self.ip}, permanent={self.is_permanent}, "
            f"expires_at={self.expires_at})>"
        )
