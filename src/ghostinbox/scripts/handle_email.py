"""MTA pipe entrypoint: relay one message read from stdin.

Invoked by the mail transfer agent once per inbound message, e.g. from a
Postfix pipe transport:

    ghostinbox unix - n n - - pipe
      flags=Rq user=ghostinbox argv=/usr/local/bin/ghostinbox-handle-email ${recipient}

Usage:
    ghostinbox-handle-email [recipient] < message.eml

Environment Variables:
    ORIGINAL_RECIPIENT: Recipient used when none is passed as an argument
    (plus every setting in ghostinbox.config.Settings)

Exit codes:
    0: Relayed, or intentionally dropped by policy
    1: No recipient, alias store unusable, or the message could not be
       processed or sent (the MTA may retry or bounce)
"""

import argparse
import logging
import os
import sys
from typing import BinaryIO, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..aliases.store import create_alias_store
from ..config import Settings, get_settings
from ..infrastructure.clock import SystemClock
from ..infrastructure.ingest.message_parser import get_header, parse_message
from ..infrastructure.mail.sendmail_transmitter import SendmailTransmitter
from ..observability.correlation import set_correlation_id
from ..observability.logging_config import configure_logging
from ..relay.relay_router import RelayRouter
from ..security.factory import create_mitigation_engine

logger = logging.getLogger(__name__)


def build_router(settings: Settings) -> RelayRouter:
    """Wire a RelayRouter from settings.

    Raises:
        OSError, SQLAlchemyError: If the alias store cannot be opened
    """
    clock = SystemClock()
    return RelayRouter(
        alias_store=create_alias_store(settings, clock),
        mitigation=create_mitigation_engine(settings, clock),
        transmitter=SendmailTransmitter(settings.SENDMAIL_PATH),
        domain=settings.DOMAIN,
        destination_mailbox=settings.DESTINATION_MAILBOX,
    )


def main(
    argv: Optional[List[str]] = None,
    stdin: Optional[BinaryIO] = None,
    settings: Optional[Settings] = None,
    router: Optional[RelayRouter] = None,
) -> int:
    """Relay one message.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
        stdin: Binary stream carrying the raw message (defaults to sys.stdin)
        settings: Settings to use (defaults to environment)
        router: Pre-wired router (defaults to one built from settings)

    Returns:
        int: Process exit code
    """
    parser = argparse.ArgumentParser(
        prog="ghostinbox-handle-email",
        description="Relay one message from stdin through its alias",
    )
    parser.add_argument("recipient", nargs="?", help="Alias address the message was sent to")
    args = parser.parse_args(argv)

    if settings is None:
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON, settings.SECURITY_LOG_FILE)

    recipient = args.recipient or os.environ.get("ORIGINAL_RECIPIENT")
    if not recipient:
        logger.error("No recipient provided (argument or ORIGINAL_RECIPIENT)")
        return 1

    stream = stdin if stdin is not None else sys.stdin.buffer
    raw_message = stream.read().decode("utf-8", errors="replace")

    set_correlation_id(get_header(parse_message(raw_message).header_items, "Message-ID"))

    if router is None:
        try:
            router = build_router(settings)
        except (OSError, SQLAlchemyError) as e:
            logger.error(f"Cannot open alias database: {e}", exc_info=True)
            return 1

    result = router.handle(raw_message, recipient)
    if not result.success:
        logger.error(f"Message processing failed: {result.reason}")
        return 1

    if result.forwarded:
        logger.info(f"Message relayed for {recipient}")
    else:
        logger.info(f"Message dropped for {recipient}: {result.reason}")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
