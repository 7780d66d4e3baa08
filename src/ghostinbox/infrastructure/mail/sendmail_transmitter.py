"""Sendmail adapter for the MailTransmitterPort.

Submits composed messages through the local MTA's sendmail-compatible
binary (`sendmail -t -oi -f <from>`). Recipients are read from the headers,
and the envelope sender is always the alias so bounces never reveal the
destination mailbox.

Architecture: Hexagonal - Infrastructure adapter implementing message submission
"""

import logging
import re
import subprocess
from typing import List

from ...domain.ports.mail_transmitter_port import (
    MailTransmitterPort,
    OutgoingMessage,
    TransmissionResult,
)

logger = logging.getLogger(__name__)

_LINE_BREAKS = re.compile(r"[\r\n]+")


def sanitize_header_value(value: str) -> str:
    """Fold any line breaks out of a header value.

    Values copied from inbound headers must not be able to inject extra
    headers (e.g. a second To) into the relayed message.
    """
    return _LINE_BREAKS.sub(" ", value or "").strip()


def render_message(message: OutgoingMessage) -> str:
    """Render headers and body in the form sendmail -t expects."""
    lines: List[str] = [
        f"From: {sanitize_header_value(message.from_address)}",
        f"To: {sanitize_header_value(message.to)}",
    ]
    if message.reply_to:
        lines.append(f"Reply-To: {sanitize_header_value(message.reply_to)}")
    lines.append(f"Subject: {sanitize_header_value(message.subject)}")
    lines.append("")
    return "\n".join(lines) + "\n" + (message.body or "")


class SendmailTransmitter(MailTransmitterPort):
    """Pipe messages into sendmail.

    No timeout is imposed beyond what the MTA binary itself enforces, and
    failures are not retried here.
    """

    def __init__(self, sendmail_path: str = "/usr/sbin/sendmail"):
        self.sendmail_path = sendmail_path

    def build_command(self, message: OutgoingMessage) -> List[str]:
        return [
            self.sendmail_path,
            "-t",
            "-oi",
            "-f",
            sanitize_header_value(message.from_address),
        ]

    def send(self, message: OutgoingMessage) -> TransmissionResult:
        command = self.build_command(message)
        payload = render_message(message).encode("utf-8")

        try:
            completed = subprocess.run(
                command,
                input=payload,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            logger.error(f"Failed to start {self.sendmail_path}: {e}")
            return TransmissionResult.failed(str(e))

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            logger.error(
                f"sendmail exited with code {completed.returncode}: {stderr[:500]}"
            )
            return TransmissionResult.failed(
                f"sendmail exited with code {completed.returncode}"
            )

        return TransmissionResult.ok()
