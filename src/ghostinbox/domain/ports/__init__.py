"""Port interfaces for external collaborators."""

from .clock_port import ClockPort
from .mail_transmitter_port import (
    MailTransmitterPort,
    OutgoingMessage,
    TransmissionResult,
)
from .packet_filter_port import FilterAction, PacketFilterPort

__all__ = [
    "ClockPort",
    "MailTransmitterPort",
    "OutgoingMessage",
    "TransmissionResult",
    "FilterAction",
    "PacketFilterPort",
]
