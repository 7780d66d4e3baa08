"""SQLAlchemy models for GhostInbox."""

from .base import AliasBase, SecurityBase
from .alias import Alias, Setting, WILDCARD_SETTING_KEY
from .ip_tracking import IPTracking
from .banned_ip import BannedIP
from .security_event import SecurityEvent, SecurityEventType

__all__ = [
    "AliasBase",
    "SecurityBase",
    "Alias",
    "Setting",
    "WILDCARD_SETTING_KEY",
    "IPTracking",
    "BannedIP",
    "SecurityEvent",
    "SecurityEventType",
]
