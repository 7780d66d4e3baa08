"""Security administration CLI.

Usage:
    ghostinbox-security stats
    ghostinbox-security cleanup            # run from cron, e.g. every 5 minutes
    ghostinbox-security ban <ip> [reason]
    ghostinbox-security unban <ip>
    ghostinbox-security events [--limit N]

Exit codes:
    0: Success
    1: Security system unavailable, or the ban was refused (whitelisted IP)
    2: Usage error
"""

import argparse
import json
import logging
import sys
from typing import List, Optional, TextIO

from ..config import Settings, get_settings
from ..infrastructure.clock import SystemClock
from ..observability.logging_config import configure_logging
from ..security.factory import create_mitigation_engine
from ..security.policy import BanTier
from ..security.ports import AbuseMitigationPort

logger = logging.getLogger(__name__)

MANUAL_BAN_REASON = "Manual ban"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghostinbox-security",
        description="Inspect and manage GhostInbox IP bans",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Print security statistics as JSON")
    subparsers.add_parser("cleanup", help="Remove expired temporary bans")

    ban = subparsers.add_parser("ban", help="Ban an IP at the medium tier")
    ban.add_argument("ip")
    ban.add_argument("reason", nargs="?", default=MANUAL_BAN_REASON)

    unban = subparsers.add_parser("unban", help="Lift a ban")
    unban.add_argument("ip")

    events = subparsers.add_parser("events", help="Print recent security events as JSON")
    events.add_argument("--limit", type=int, default=50)

    return parser


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    mitigation: Optional[AbuseMitigationPort] = None,
    out: Optional[TextIO] = None,
) -> int:
    """Run one admin command and return the exit code."""
    args = build_parser().parse_args(argv)
    out = out or sys.stdout

    if settings is None:
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON, settings.SECURITY_LOG_FILE)

    if mitigation is None:
        mitigation = create_mitigation_engine(settings, SystemClock())

    if not mitigation.available:
        print("ERROR: Security system unavailable", file=sys.stderr)
        return 1

    if args.command == "stats":
        print(json.dumps(mitigation.get_security_stats(), indent=2), file=out)
    elif args.command == "cleanup":
        removed = mitigation.cleanup_expired_bans()
        print(f"Removed {removed} expired bans", file=out)
    elif args.command == "ban":
        if not mitigation.ban_ip(args.ip, args.reason, BanTier.MEDIUM):
            print(f"ERROR: Failed to ban {args.ip} (may be whitelisted)", file=sys.stderr)
            return 1
        print(f"IP {args.ip} has been banned", file=out)
    elif args.command == "unban":
        mitigation.unban_ip(args.ip)
        print(f"IP {args.ip} has been unbanned", file=out)
    elif args.command == "events":
        print(json.dumps(mitigation.list_recent_events(limit=args.limit), indent=2), file=out)

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
