"""Relay Router - routes one inbound message between an alias and the mailbox.

Every message is classified by its From address:
- external sender -> alias: forwarded to the destination mailbox, with the
  alias as From/Reply-To and the original context lines prepended to the body
- destination mailbox -> alias: relayed back to the alias's last external
  correspondent under the alias identity

The destination mailbox address never appears in a message sent to an
external correspondent.

Architecture: Hexagonal - Application service orchestrating ports
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..aliases.store import AliasStore, normalize_alias_name
from ..domain.ports.mail_transmitter_port import MailTransmitterPort, OutgoingMessage
from ..infrastructure.ingest.message_parser import (
    ParsedMessage,
    extract_address,
    extract_origin_ip,
    parse_message,
)
from ..security.ports import AbuseMitigationPort

logger = logging.getLogger(__name__)


DROP_INVALID_DOMAIN = "Invalid recipient domain"
DROP_WILDCARD_DISABLED = "Alias not found and wildcards disabled"
DROP_ALIAS_BLOCKED = "Alias is blocked"
DROP_NO_LAST_SENDER = "No last sender recorded for reply"


@dataclass(frozen=True)
class RelayResult:
    """Outcome of handling one message.

    Policy drops are successes that were not forwarded; only a failed send
    or an unexpected error has success=False.
    """
    success: bool
    forwarded: bool
    forwarded_to: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def relayed(cls, to: str) -> "RelayResult":
        return cls(success=True, forwarded=True, forwarded_to=to)

    @classmethod
    def dropped(cls, reason: str) -> "RelayResult":
        return cls(success=True, forwarded=False, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "RelayResult":
        return cls(success=False, forwarded=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "forwarded": self.forwarded}
        if self.forwarded_to:
            result["forwarded_to"] = self.forwarded_to
        if self.reason:
            result["reason"] = self.reason
        return result


def reply_subject(subject: str) -> str:
    """Prefix `Re: ` unless the subject already carries it (any case)."""
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


class RelayRouter:
    """Per-message relay state machine."""

    def __init__(
        self,
        alias_store: AliasStore,
        mitigation: AbuseMitigationPort,
        transmitter: MailTransmitterPort,
        domain: str,
        destination_mailbox: str,
    ):
        self.alias_store = alias_store
        self.mitigation = mitigation
        self.transmitter = transmitter
        self.domain = domain.lower()
        self.destination_mailbox = destination_mailbox

    def handle(self, raw_message: str, recipient: Optional[str] = None) -> RelayResult:
        """Route one raw message.

        Args:
            raw_message: Raw message text as received from the MTA
            recipient: Envelope recipient, if the MTA supplied one; otherwise
                the To header is used and must be at the alias domain

        Returns:
            RelayResult: Never raises
        """
        try:
            return self._handle(parse_message(raw_message), recipient)
        except Exception as e:
            logger.exception(f"Error handling message: {e}")
            return RelayResult.failed(f"Processing error: {e}")

    def _handle(self, message: ParsedMessage, recipient: Optional[str]) -> RelayResult:
        alias_name = self.resolve_alias_name(message, recipient)
        if not alias_name:
            logger.info(f"Dropping message: {DROP_INVALID_DOMAIN}")
            return RelayResult.dropped(DROP_INVALID_DOMAIN)

        alias_address = f"{alias_name}@{self.domain}"
        from_header = message.get("From")
        sender = extract_address(from_header)
        subject = message.get("Subject")
        log_extra = {"alias": alias_name}

        origin_ip = extract_origin_ip(message.header_items)
        if origin_ip:
            decision = self.mitigation.track_email(origin_ip)
            if not decision.allowed:
                logger.info(
                    f"Dropping message to {alias_name} from {origin_ip}: {decision.reason}",
                    extra={**log_extra, "ip": origin_ip},
                )
                self.mitigation.record_blocked_email(
                    origin_ip,
                    f"From: {sender}, To: {alias_address}, Subject: {subject}",
                )
                return RelayResult.dropped(f"Blocked by security: {decision.reason}")
        else:
            logger.debug("No public origin IP in Received headers, skipping mitigation")

        is_reply = self.is_from_destination(sender)

        alias = self.alias_store.get(alias_name)
        if alias is None:
            if not self.alias_store.get_wildcard_policy():
                logger.info(f"Dropping message to {alias_name}: {DROP_WILDCARD_DISABLED}", extra=log_extra)
                return RelayResult.dropped(DROP_WILDCARD_DISABLED)
            self.alias_store.create_if_absent(
                alias_name,
                last_sender=None if is_reply else sender,
            )
            alias = self.alias_store.get(alias_name)
            if alias is None:
                return RelayResult.failed(f"Processing error: alias {alias_name} could not be created")

        if not alias.enabled:
            logger.info(f"Dropping message to {alias_name}: {DROP_ALIAS_BLOCKED}", extra=log_extra)
            return RelayResult.dropped(DROP_ALIAS_BLOCKED)

        if is_reply:
            return self._relay_reply(alias_name, alias_address, alias.last_sender, subject, message.body)
        return self._forward_inbound(alias_name, alias_address, sender, from_header, subject, message)

    def resolve_alias_name(self, message: ParsedMessage, recipient: Optional[str]) -> str:
        """Alias local part for this message, or '' if it is not ours.

        An explicit recipient is trusted as-is; a To header address must be
        at the alias domain.
        """
        if recipient:
            return normalize_alias_name(recipient)

        address = extract_address(message.get("To")).lower()
        if not address or not address.endswith(f"@{self.domain}"):
            return ""
        return normalize_alias_name(address)

    def is_from_destination(self, sender: str) -> bool:
        return bool(sender) and sender.lower() == self.destination_mailbox.lower()

    def _forward_inbound(
        self,
        alias_name: str,
        alias_address: str,
        sender: str,
        from_header: str,
        subject: str,
        message: ParsedMessage,
    ) -> RelayResult:
        self.alias_store.update_last_sender(alias_name, sender)

        body = (
            "Forwarded message\n"
            f"From: {from_header}\n"
            f"To: {message.get('To')}\n"
            f"Date: {message.get('Date')}\n"
            f"Subject: {subject}\n"
            "\n"
            f"{message.body}"
        )
        outgoing = OutgoingMessage(
            to=self.destination_mailbox,
            from_address=alias_address,
            reply_to=alias_address,
            subject=subject,
            body=body,
        )

        result = self.transmitter.send(outgoing)
        if not result.success:
            logger.error(f"Failed to forward message for {alias_name}: {result.reason}", extra={"alias": alias_name})
            return RelayResult.failed(f"SMTP error: {result.reason}")

        logger.info(f"Forwarded message for alias {alias_name}", extra={"alias": alias_name})
        return RelayResult.relayed(self.destination_mailbox)

    def _relay_reply(
        self,
        alias_name: str,
        alias_address: str,
        last_sender: Optional[str],
        subject: str,
        body: str,
    ) -> RelayResult:
        if not last_sender:
            logger.info(f"Dropping reply via {alias_name}: {DROP_NO_LAST_SENDER}", extra={"alias": alias_name})
            return RelayResult.dropped(DROP_NO_LAST_SENDER)

        outgoing = OutgoingMessage(
            to=last_sender,
            from_address=alias_address,
            reply_to=alias_address,
            subject=reply_subject(subject),
            body=body,
        )

        result = self.transmitter.send(outgoing)
        if not result.success:
            logger.error(f"Failed to relay reply via {alias_name}: {result.reason}", extra={"alias": alias_name})
            return RelayResult.failed(f"SMTP error: {result.reason}")

        logger.info(f"Relayed reply via alias {alias_name}", extra={"alias": alias_name})
        return RelayResult.relayed(last_sender)
