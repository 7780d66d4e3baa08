"""Per-IP abuse mitigation: rate limits, escalating bans, audit trail."""

from .engine import AbuseMitigationEngine, UnavailableMitigationEngine
from .factory import create_mitigation_engine
from .policy import BanTier, EventKind, MitigationPolicy, RateLimits, Window
from .ports import AbuseMitigationPort, MitigationDecision

__all__ = [
    "AbuseMitigationEngine",
    "AbuseMitigationPort",
    "BanTier",
    "EventKind",
    "MitigationDecision",
    "MitigationPolicy",
    "RateLimits",
    "UnavailableMitigationEngine",
    "Window",
    "create_mitigation_engine",
]
