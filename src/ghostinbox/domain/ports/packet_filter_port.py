"""Packet Filter Port - host-level enforcement of IP bans.

Enforcement is best-effort: callers log failures and carry on, a ban is
never rolled back because the filter could not be updated.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from enum import Enum


class FilterAction(str, Enum):
    """DROP installs a drop rule for an IP, ACCEPT retracts it."""
    DROP = "DROP"
    ACCEPT = "ACCEPT"


class PacketFilterPort(ABC):
    """Port interface for the host packet filter."""

    @abstractmethod
    def apply(self, ip: str, action: FilterAction) -> None:
        """Apply a filter action for an IP.

        Raises:
            OSError, subprocess.CalledProcessError, ValueError: On failure;
                the mitigation engine catches and logs these.
        """
        pass
