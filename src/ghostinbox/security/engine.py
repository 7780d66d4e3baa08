"""Abuse mitigation engine: per-IP rate limiting with escalating bans.

Per-IP state machine, independent of every other IP:

    Unknown -> Tracked -> Warned (temporary ban) -> Banned (permanent)

Whitelisted IPs sit outside the machine and always pass. Each tracked event
runs in one transaction: ban check, bucket reset, speculative increment,
threshold comparison and, when a threshold is exceeded, the ban and its
events. The packet filter is only touched after that transaction commits,
and its failures are logged, never raised.
"""

import logging
import subprocess
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..audit.service import log_security_event
from ..database import session_scope
from ..domain.ports.clock_port import ClockPort
from ..domain.ports.packet_filter_port import FilterAction, PacketFilterPort
from ..models.ip_tracking import IPTracking
from ..models.security_event import SecurityEventType
from .ledger import IPLedger
from .policy import (
    BanTier,
    EventKind,
    MitigationPolicy,
    Window,
    WINDOW_TIERS,
    extend_duration,
)
from .ports import AbuseMitigationPort, MitigationDecision

logger = logging.getLogger(__name__)

UNAVAILABLE_REASON = "security system unavailable"
RECENT_EVENT_WINDOW_SECONDS = 3600


class AbuseMitigationEngine(AbuseMitigationPort):
    """Storage-backed implementation of the mitigation port."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: ClockPort,
        policy: MitigationPolicy,
        packet_filter: PacketFilterPort,
        ledger: Optional[IPLedger] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.policy = policy
        self.packet_filter = packet_filter
        self.ledger = ledger or IPLedger()

    @property
    def available(self) -> bool:
        return True

    def track_email(self, ip: str) -> MitigationDecision:
        """Count an inbound email from `ip` against the minute/hour/day limits."""
        return self._track(ip, EventKind.EMAIL)

    def track_connection(self, ip: str) -> MitigationDecision:
        """Count a connection from `ip` against the minute/hour limits."""
        return self._track(ip, EventKind.CONNECTION)

    def _track(self, ip: str, kind: EventKind) -> MitigationDecision:
        if self.policy.is_whitelisted(ip):
            return MitigationDecision.allow("whitelisted")

        now = self.clock.now()
        try:
            with session_scope(self.session_factory) as db:
                decision, enforce = self._track_in_session(db, ip, kind, now)
        except SQLAlchemyError as e:
            logger.error(f"Failed to track {kind.value} from {ip}, failing open: {e}")
            return MitigationDecision.allow(UNAVAILABLE_REASON)

        if enforce:
            self._enforce(ip, FilterAction.DROP)
        return decision

    def _track_in_session(
        self,
        db: Session,
        ip: str,
        kind: EventKind,
        now: int,
    ) -> Tuple[MitigationDecision, bool]:
        if self.ledger.get_active_ban(db, ip, now, lock=True) is not None:
            return MitigationDecision.deny("banned"), False

        record = self.ledger.get_or_create_tracking(db, ip, now)
        self.ledger.refresh_buckets(record, now)

        candidate = {
            window: count + 1
            for window, count in self.ledger.counts(record, kind).items()
        }

        exceeded = None
        for window, limit in self.policy.limits_for(kind).windows():
            if candidate.get(window, 0) > limit:
                exceeded = window
                break

        if exceeded is None:
            self.ledger.apply_counts(record, kind, candidate, now)
            return MitigationDecision.allow("within limits"), False

        violation = f"Too many {kind.plural} per {exceeded.value}"
        permanent_reason = self._permanent_ban_reason(db, record, kind, candidate, now)
        if permanent_reason:
            banned = self._ban_in_session(
                db, ip, f"{violation} ({permanent_reason})", BanTier.HEAVY, True, now
            )
        else:
            banned = self._ban_in_session(
                db, ip, violation, WINDOW_TIERS[exceeded], False, now
            )

        log_security_event(
            db,
            timestamp=now,
            event_type=SecurityEventType.RATE_LIMIT,
            ip=ip,
            details=violation,
            action_taken="Permanent ban" if permanent_reason else "Temporary ban",
        )
        logger.warning(f"Rate limit exceeded for {ip}: {violation}", extra={"ip": ip})

        return (
            MitigationDecision.deny(
                f"Rate limit exceeded: {kind.plural} per {exceeded.value}"
            ),
            banned,
        )

    def should_permanently_ban(self, ip: str) -> bool:
        """Evaluate the permanent-ban heuristic against stored state."""
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            record = self.ledger.get_tracking(db, ip)
            if record is None:
                return False
            self.ledger.refresh_buckets(record, now)
            counts = self.ledger.counts(record, EventKind.EMAIL)
            reason = self._permanent_ban_reason(db, record, EventKind.EMAIL, counts, now)
            # Read-only evaluation
            db.rollback()
        return reason is not None

    def _permanent_ban_reason(
        self,
        db: Session,
        record: IPTracking,
        kind: EventKind,
        candidate: Dict[Window, int],
        now: int,
    ) -> Optional[str]:
        """Permanent-ban heuristic, first match wins.

        1. critical burst: a current-minute counter over its hard ceiling
           while the IP was seen within the burst window
        2. repeat offender: ban_count at or over the limit
        3. persistent violator: violation_count at or over the limit
        4. rapid violations: recent BAN/RATE_LIMIT events at or over the limit
        """
        policy = self.policy

        minute_counts = {
            EventKind.EMAIL: record.email_count_minute or 0,
            EventKind.CONNECTION: record.connection_count_minute or 0,
        }
        minute_counts[kind] = candidate.get(Window.MINUTE, minute_counts[kind])
        recently_seen = now - (record.last_seen or 0) <= policy.critical_burst_window
        if recently_seen and any(
            count > policy.critical_burst_for(counted_kind)
            for counted_kind, count in minute_counts.items()
        ):
            return "critical burst"

        if (record.ban_count or 0) >= policy.repeat_offender_ban_count:
            return "repeat offender"

        if (record.violation_count or 0) >= policy.persistent_violation_count:
            return "persistent violator"

        since = now - policy.rapid_violation_window
        if self.ledger.count_recent_violations(db, record.ip, since) >= policy.rapid_violation_count:
            return "rapid violations"

        return None

    def ban_ip(
        self,
        ip: str,
        reason: str,
        severity: BanTier = BanTier.MEDIUM,
        permanent: bool = False,
    ) -> bool:
        """Issue, escalate or promote a ban for `ip`.

        Returns:
            bool: False if the IP is whitelisted, else True
        """
        if self.policy.is_whitelisted(ip):
            logger.info(f"Attempted to ban whitelisted IP {ip} for: {reason}")
            return False

        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            banned = self._ban_in_session(db, ip, reason, BanTier(severity), permanent, now)

        if banned:
            self._enforce(ip, FilterAction.DROP)
        return banned

    def _ban_in_session(
        self,
        db: Session,
        ip: str,
        reason: str,
        tier: BanTier,
        permanent: bool,
        now: int,
    ) -> bool:
        if self.policy.is_whitelisted(ip):
            logger.info(f"Attempted to ban whitelisted IP {ip} for: {reason}")
            return False

        tier_duration = self.policy.tier_duration(tier)
        record = self.ledger.get_or_create_tracking(db, ip, now)
        existing = self.ledger.get_ban(db, ip, lock=True)
        counts_as_ban = True

        if existing is not None and existing.is_active(now):
            if existing.is_permanent:
                counts_as_ban = False
                action = "Already permanently banned"
            elif permanent:
                existing.is_permanent = True
                existing.expires_at = None
                existing.reason = reason
                counts_as_ban = False
                action = "Promoted to permanent ban"
            else:
                new_duration = extend_duration(
                    existing.duration or 0, tier_duration, self.policy.extension_factor
                )
                existing.duration = new_duration
                existing.expires_at = now + new_duration
                existing.reason = reason
                action = f"Ban extended to {new_duration} seconds"
        else:
            if existing is None:
                existing = self.ledger.new_ban(db, ip)
            existing.banned_at = now
            existing.reason = reason
            existing.duration = tier_duration
            existing.is_permanent = bool(permanent)
            existing.expires_at = None if permanent else now + tier_duration
            action = (
                "Permanently banned" if permanent
                else f"Banned for {tier_duration} seconds"
            )

        record.violation_count = (record.violation_count or 0) + 1
        if counts_as_ban:
            record.ban_count = (record.ban_count or 0) + 1

        log_security_event(
            db,
            timestamp=now,
            event_type=SecurityEventType.BAN,
            ip=ip,
            details=reason,
            action_taken=action,
        )
        logger.warning(f"{action}: IP {ip} ({reason})", extra={"ip": ip})
        return True

    def unban_ip(self, ip: str) -> bool:
        """Lift a ban (temporary or permanent) and retract the DROP rule."""
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            deleted = self.ledger.delete_ban(db, ip)
            if deleted:
                log_security_event(
                    db,
                    timestamp=now,
                    event_type=SecurityEventType.UNBAN,
                    ip=ip,
                    details="Manual unban",
                    action_taken="Ban removed",
                )

        self._enforce(ip, FilterAction.ACCEPT)
        logger.info(f"Unbanned IP {ip}", extra={"ip": ip})
        return deleted

    def is_banned(self, ip: str) -> bool:
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            return self.ledger.get_active_ban(db, ip, now) is not None

    def cleanup_expired_bans(self) -> int:
        """Delete expired temporary bans and retract their DROP rules.

        Each row is deleted in its own transaction with the expiry condition
        re-checked, so an IP re-banned in between keeps its new ban.
        """
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            candidates = self.ledger.find_expired_ban_ips(db, now)

        removed = []
        for ip in candidates:
            with session_scope(self.session_factory) as db:
                if self.ledger.delete_expired_ban(db, ip, now):
                    log_security_event(
                        db,
                        timestamp=now,
                        event_type=SecurityEventType.UNBAN,
                        ip=ip,
                        details="Ban expired",
                        action_taken="Ban removed",
                    )
                    removed.append(ip)

        for ip in removed:
            self._enforce(ip, FilterAction.ACCEPT)

        if removed:
            logger.info(f"Cleaned up {len(removed)} expired bans")
        return len(removed)

    def record_blocked_email(self, ip: str, details: str) -> None:
        """Audit a message dropped because its origin IP was denied."""
        logger.warning(f"Blocked email from {ip}: {details}", extra={"ip": ip})
        try:
            with session_scope(self.session_factory) as db:
                log_security_event(
                    db,
                    timestamp=self.clock.now(),
                    event_type=SecurityEventType.EMAIL_BLOCKED,
                    ip=ip,
                    details=details,
                    action_taken="Email dropped",
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to record blocked email from {ip}: {e}")

    def get_security_stats(self) -> Dict[str, Any]:
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            return {
                "total_banned_ips": self.ledger.count_bans(db),
                "active_bans": self.ledger.count_active_bans(db, now),
                "recent_events": self.ledger.count_events_since(
                    db, now - RECENT_EVENT_WINDOW_SECONDS
                ),
                "top_violators": [
                    {
                        "ip": row.ip,
                        "violation_count": row.violation_count,
                        "ban_count": row.ban_count,
                        "last_seen": row.last_seen,
                    }
                    for row in self.ledger.top_violators(db)
                ],
            }

    def list_active_bans(self) -> List[Dict[str, Any]]:
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            return [
                {**ban.to_dict(), "remaining": ban.remaining(now)}
                for ban in self.ledger.list_active_bans(db, now)
            ]

    def list_recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        with session_scope(self.session_factory) as db:
            return [event.to_dict() for event in self.ledger.list_recent_events(db, limit)]

    def list_recent_ips(self, within: int = 86400, limit: int = 20) -> List[Dict[str, Any]]:
        now = self.clock.now()
        with session_scope(self.session_factory) as db:
            return [row.to_dict() for row in self.ledger.recent_ips(db, now - within, limit)]

    def _enforce(self, ip: str, action: FilterAction) -> None:
        """Best-effort packet filter update."""
        try:
            self.packet_filter.apply(ip, action)
        except (OSError, subprocess.CalledProcessError, ValueError) as e:
            logger.error(
                f"Failed to apply {action.value} packet filter rule for {ip}: {e}",
                extra={"ip": ip},
            )


class UnavailableMitigationEngine(AbuseMitigationPort):
    """Fail-open stand-in used when mitigation storage cannot be opened.

    Every event is allowed; bans are refused. Mail keeps flowing without
    protection rather than being blocked wholesale.
    """

    def __init__(self, error: Optional[str] = None):
        self.error = error

    @property
    def available(self) -> bool:
        return False

    def track_email(self, ip: str) -> MitigationDecision:
        return MitigationDecision.allow(UNAVAILABLE_REASON)

    def track_connection(self, ip: str) -> MitigationDecision:
        return MitigationDecision.allow(UNAVAILABLE_REASON)

    def is_banned(self, ip: str) -> bool:
        return False

    def ban_ip(
        self,
        ip: str,
        reason: str,
        severity: BanTier = BanTier.MEDIUM,
        permanent: bool = False,
    ) -> bool:
        logger.warning(f"Cannot ban IP {ip}: {UNAVAILABLE_REASON}")
        return False

    def unban_ip(self, ip: str) -> bool:
        logger.warning(f"Cannot unban IP {ip}: {UNAVAILABLE_REASON}")
        return False

    def cleanup_expired_bans(self) -> int:
        logger.warning(f"Cannot clean up expired bans: {UNAVAILABLE_REASON}")
        return 0

    def record_blocked_email(self, ip: str, details: str) -> None:
        return None

    def get_security_stats(self) -> Dict[str, Any]:
        return {
            "total_banned_ips": 0,
            "active_bans": 0,
            "recent_events": 0,
            "top_violators": [],
            "error": "Security system unavailable",
        }

    def list_active_bans(self) -> List[Dict[str, Any]]:
        return []

    def list_recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        return []

    def list_recent_ips(self, within: int = 86400, limit: int = 20) -> List[Dict[str, Any]]:
        return []
