"""Rate limit and ban policy.

Holds the thresholds, ban tiers and permanent-ban heuristic parameters as
one immutable value, plus the pure functions the engine applies to them.
Nothing here touches storage.
"""

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class BanTier(str, Enum):
    """Temporary ban severity; each maps to a fixed duration."""
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class EventKind(str, Enum):
    """What is being counted for an IP."""
    EMAIL = "email"
    CONNECTION = "connection"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


class Window(str, Enum):
    """Counter time buckets, in ascending severity order."""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def seconds(self) -> int:
        return WINDOW_SECONDS[self]

    def bucket(self, now: int) -> int:
        """Epoch bucket number containing `now`."""
        return now // WINDOW_SECONDS[self]


WINDOW_SECONDS = {
    Window.MINUTE: 60,
    Window.HOUR: 3600,
    Window.DAY: 86400,
}

# Tier issued when a window's threshold is exceeded
WINDOW_TIERS = {
    Window.MINUTE: BanTier.LIGHT,
    Window.HOUR: BanTier.MEDIUM,
    Window.DAY: BanTier.HEAVY,
}

DEFAULT_BAN_DURATIONS = {
    BanTier.LIGHT: 1800,
    BanTier.MEDIUM: 7200,
    BanTier.HEAVY: 86400,
}


@dataclass(frozen=True)
class RateLimits:
    """Per-window maximums; None means the window is not limited."""
    per_minute: Optional[int] = None
    per_hour: Optional[int] = None
    per_day: Optional[int] = None

    def for_window(self, window: Window) -> Optional[int]:
        return {
            Window.MINUTE: self.per_minute,
            Window.HOUR: self.per_hour,
            Window.DAY: self.per_day,
        }[window]

    def windows(self) -> List[Tuple[Window, int]]:
        """Limited windows with their thresholds, minute first."""
        limited = []
        for window in Window:
            limit = self.for_window(window)
            if limit is not None:
                limited.append((window, limit))
        return limited


def extend_duration(existing_duration: int, tier_duration: int, factor: float = 1.5) -> int:
    """Duration for a repeat violation while a ban is still active.

    The new duration is the larger of the tier's duration and the existing
    duration scaled by `factor`, so a ban never shrinks.

    Examples:
        extend_duration(1800, 1800) -> 2700
        extend_duration(1800, 86400) -> 86400
    """
    return max(int(tier_duration), int(existing_duration * factor))


@dataclass(frozen=True)
class MitigationPolicy:
    """Thresholds and ban parameters for the abuse mitigation engine."""

    email_limits: RateLimits = RateLimits(per_minute=10, per_hour=50, per_day=200)
    connection_limits: RateLimits = RateLimits(per_minute=20, per_hour=100)
    ban_durations: Dict[BanTier, int] = field(
        default_factory=lambda: dict(DEFAULT_BAN_DURATIONS)
    )
    extension_factor: float = 1.5

    # Permanent ban heuristic
    critical_email_burst: int = 100
    critical_connection_burst: int = 200
    critical_burst_window: int = 300
    repeat_offender_ban_count: int = 3
    persistent_violation_count: int = 10
    rapid_violation_count: int = 5
    rapid_violation_window: int = 86400

    whitelist: Tuple[str, ...] = ("127.0.0.1", "::1")

    @classmethod
    def from_settings(cls, settings) -> "MitigationPolicy":
        return cls(
            email_limits=RateLimits(
                per_minute=settings.EMAIL_LIMIT_PER_MINUTE,
                per_hour=settings.EMAIL_LIMIT_PER_HOUR,
                per_day=settings.EMAIL_LIMIT_PER_DAY,
            ),
            connection_limits=RateLimits(
                per_minute=settings.CONNECTION_LIMIT_PER_MINUTE,
                per_hour=settings.CONNECTION_LIMIT_PER_HOUR,
            ),
            ban_durations={
                BanTier.LIGHT: settings.BAN_DURATION_LIGHT,
                BanTier.MEDIUM: settings.BAN_DURATION_MEDIUM,
                BanTier.HEAVY: settings.BAN_DURATION_HEAVY,
            },
            extension_factor=settings.BAN_EXTENSION_FACTOR,
            critical_email_burst=settings.CRITICAL_EMAIL_BURST,
            critical_connection_burst=settings.CRITICAL_CONNECTION_BURST,
            critical_burst_window=settings.CRITICAL_BURST_WINDOW,
            repeat_offender_ban_count=settings.REPEAT_OFFENDER_BAN_COUNT,
            persistent_violation_count=settings.PERSISTENT_VIOLATION_COUNT,
            rapid_violation_count=settings.RAPID_VIOLATION_COUNT,
            rapid_violation_window=settings.RAPID_VIOLATION_WINDOW,
            whitelist=tuple(settings.IP_WHITELIST),
        )

    def limits_for(self, kind: EventKind) -> RateLimits:
        if kind == EventKind.EMAIL:
            return self.email_limits
        return self.connection_limits

    def tier_duration(self, tier: BanTier) -> int:
        return self.ban_durations[BanTier(tier)]

    def critical_burst_for(self, kind: EventKind) -> int:
        if kind == EventKind.EMAIL:
            return self.critical_email_burst
        return self.critical_connection_burst

    def is_whitelisted(self, ip: str) -> bool:
        """Exact match, or containment in a whitelisted CIDR."""
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return ip in self.whitelist

        for entry in self.whitelist:
            try:
                if "/" in entry:
                    if address in ipaddress.ip_network(entry, strict=False):
                        return True
                elif address == ipaddress.ip_address(entry):
                    return True
            except ValueError:
                # Unparseable whitelist entry, compare literally
                if entry == ip:
                    return True
        return False
