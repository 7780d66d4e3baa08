from .iptables_filter import IptablesPacketFilter, NullPacketFilter

__all__ = ["IptablesPacketFilter", "NullPacketFilter"]
