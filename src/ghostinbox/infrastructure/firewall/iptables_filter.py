"""iptables adapter for the PacketFilterPort.

DROP inserts `-I INPUT -s <ip> -j DROP`; ACCEPT deletes that same rule.
Errors propagate to the mitigation engine, which logs them and never rolls a
ban back because enforcement failed.
"""

import ipaddress
import logging
import subprocess
from typing import List

from ...domain.ports.packet_filter_port import FilterAction, PacketFilterPort

logger = logging.getLogger(__name__)


class IptablesPacketFilter(PacketFilterPort):
    """Enforce bans with iptables on the INPUT chain."""

    def __init__(self, iptables_path: str = "iptables", chain: str = "INPUT"):
        self.iptables_path = iptables_path
        self.chain = chain

    def build_command(self, ip: str, action: FilterAction) -> List[str]:
        """Build the iptables argv for an action.

        Raises:
            ValueError: If ip is not a valid IP address
        """
        address = str(ipaddress.ip_address(ip))
        operation = "-I" if FilterAction(action) == FilterAction.DROP else "-D"
        return [self.iptables_path, operation, self.chain, "-s", address, "-j", "DROP"]

    def apply(self, ip: str, action: FilterAction) -> None:
        command = self.build_command(ip, action)
        logger.debug(f"Running {' '.join(command)}")
        subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )


class NullPacketFilter(PacketFilterPort):
    """Packet filter used when firewall enforcement is disabled."""

    def apply(self, ip: str, action: FilterAction) -> None:
        logger.debug(f"Firewall disabled, not applying {FilterAction(action).value} for {ip}")
