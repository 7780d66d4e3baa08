"""Abuse Mitigation Port - the interface the relay and admin surfaces use.

Two implementations exist: the storage-backed AbuseMitigationEngine and the
UnavailableMitigationEngine used when its storage cannot be initialized.
Callers never check for a missing engine; they always get one of these.

Architecture: Hexagonal - Port interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from .policy import BanTier


@dataclass(frozen=True)
class MitigationDecision:
    """Whether an event from an IP may proceed, and why."""
    allowed: bool
    reason: str

    @classmethod
    def allow(cls, reason: str) -> "MitigationDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "MitigationDecision":
        return cls(allowed=False, reason=reason)


class AbuseMitigationPort(ABC):
    """Per-IP rate limiting and ban management."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """False for the fail-open stand-in."""
        pass

    @abstractmethod
    def track_email(self, ip: str) -> MitigationDecision:
        pass

    @abstractmethod
    def track_connection(self, ip: str) -> MitigationDecision:
        pass

    @abstractmethod
    def is_banned(self, ip: str) -> bool:
        pass

    @abstractmethod
    def ban_ip(
        self,
        ip: str,
        reason: str,
        severity: BanTier = BanTier.MEDIUM,
        permanent: bool = False,
    ) -> bool:
        """Issue or escalate a ban. Returns False for whitelisted IPs."""
        pass

    @abstractmethod
    def unban_ip(self, ip: str) -> bool:
        pass

    @abstractmethod
    def cleanup_expired_bans(self) -> int:
        """Remove expired temporary bans; returns how many were removed."""
        pass

    @abstractmethod
    def record_blocked_email(self, ip: str, details: str) -> None:
        pass

    @abstractmethod
    def get_security_stats(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def list_active_bans(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_recent_ips(self, within: int = 86400, limit: int = 20) -> List[Dict[str, Any]]:
        pass
