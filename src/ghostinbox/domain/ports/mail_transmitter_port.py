"""Mail Transmitter Port - hands composed messages to the local MTA.

Actual SMTP/local delivery is delegated; the relay only composes headers and
body. Implementations report failure as a result, they do not raise, and do
not retry (retry is the MTA's job).

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OutgoingMessage:
    """A message ready for submission.

    Attributes:
        to: Envelope and header recipient
        from_address: Header From and envelope sender (always an alias)
        subject: Subject header
        body: Message body, passed through as-is
        reply_to: Optional Reply-To header
    """
    to: str
    from_address: str
    subject: str
    body: str
    reply_to: Optional[str] = None


@dataclass(frozen=True)
class TransmissionResult:
    """Outcome of a send attempt."""
    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "TransmissionResult":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: str) -> "TransmissionResult":
        return cls(success=False, reason=reason)


class MailTransmitterPort(ABC):
    """Port interface for message submission."""

    @abstractmethod
    def send(self, message: OutgoingMessage) -> TransmissionResult:
        """Submit a message for delivery.

        Args:
            message: Composed outgoing message

        Returns:
            TransmissionResult: success, or failure with the underlying reason
        """
        pass
