"""IPLedger - persistent per-IP counters, ban records and event queries.

Every method takes the caller's session so the mitigation engine can run a
whole read-reset-increment-compare sequence, including any resulting ban,
in a single transaction. Rows that are about to be modified are read with
SELECT ... FOR UPDATE (a no-op on SQLite, where the engine already holds the
write lock from BEGIN IMMEDIATE).
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.banned_ip import BannedIP
from ..models.ip_tracking import IPTracking
from ..models.security_event import SecurityEvent, SecurityEventType
from .policy import EventKind, Window

logger = logging.getLogger(__name__)


# Counter column per (kind, window); connections are not counted per day
COUNTER_COLUMNS = {
    (EventKind.EMAIL, Window.MINUTE): "email_count_minute",
    (EventKind.EMAIL, Window.HOUR): "email_count_hour",
    (EventKind.EMAIL, Window.DAY): "email_count_day",
    (EventKind.CONNECTION, Window.MINUTE): "connection_count_minute",
    (EventKind.CONNECTION, Window.HOUR): "connection_count_hour",
}

RESET_MARKERS = {
    Window.MINUTE: "last_reset_minute",
    Window.HOUR: "last_reset_hour",
    Window.DAY: "last_reset_day",
}

VIOLATION_EVENT_TYPES = (
    SecurityEventType.BAN.value,
    SecurityEventType.RATE_LIMIT.value,
)


class IPLedger:
    """Data access for ip_tracking, banned_ips and security_events."""

    # Tracking

    def get_tracking(self, db: Session, ip: str, lock: bool = False) -> Optional[IPTracking]:
        query = db.query(IPTracking).filter(IPTracking.ip == ip)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_or_create_tracking(self, db: Session, ip: str, now: int) -> IPTracking:
        """Return the locked tracking row for an IP, creating it lazily.

        A fresh row starts with zeroed counters valid for the current
        buckets. A concurrent creator losing the insert race re-reads the
        winner's row.
        """
        record = self.get_tracking(db, ip, lock=True)
        if record is not None:
            return record

        record = IPTracking(
            ip=ip,
            email_count_minute=0,
            email_count_hour=0,
            email_count_day=0,
            connection_count_minute=0,
            connection_count_hour=0,
            last_reset_minute=Window.MINUTE.bucket(now),
            last_reset_hour=Window.HOUR.bucket(now),
            last_reset_day=Window.DAY.bucket(now),
            first_seen=now,
            last_seen=now,
            violation_count=0,
            ban_count=0,
        )
        try:
            with db.begin_nested():
                db.add(record)
        except IntegrityError:
            logger.debug(f"Tracking row for {ip} created concurrently")
            record = self.get_tracking(db, ip, lock=True)
        return record

    def refresh_buckets(self, record: IPTracking, now: int) -> None:
        """Zero every counter whose time bucket has moved on.

        Email and connection counters share the reset markers, so both are
        reset together; a counter is only meaningful for the bucket in its
        marker.
        """
        for window, marker in RESET_MARKERS.items():
            current = window.bucket(now)
            if (getattr(record, marker) or 0) < current:
                for (kind, counter_window), column in COUNTER_COLUMNS.items():
                    if counter_window == window:
                        setattr(record, column, 0)
                setattr(record, marker, current)

    def counts(self, record: IPTracking, kind: EventKind) -> Dict[Window, int]:
        """Stored counters for a kind, by window."""
        return {
            window: getattr(record, column) or 0
            for (counter_kind, window), column in COUNTER_COLUMNS.items()
            if counter_kind == kind
        }

    def apply_counts(
        self,
        record: IPTracking,
        kind: EventKind,
        counts: Dict[Window, int],
        now: int,
    ) -> None:
        """Persist incremented counters for an allowed event."""
        for window, value in counts.items():
            setattr(record, COUNTER_COLUMNS[(kind, window)], value)
        record.last_seen = now

    # Bans

    def get_ban(self, db: Session, ip: str, lock: bool = False) -> Optional[BannedIP]:
        query = db.query(BannedIP).filter(BannedIP.ip == ip)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_active_ban(
        self,
        db: Session,
        ip: str,
        now: int,
        lock: bool = False,
    ) -> Optional[BannedIP]:
        ban = self.get_ban(db, ip, lock=lock)
        if ban is not None and ban.is_active(now):
            return ban
        return None

    def new_ban(self, db: Session, ip: str) -> BannedIP:
        """Add an empty ban row for the caller to fill in before flush."""
        ban = BannedIP(ip=ip)
        db.add(ban)
        return ban

    def delete_ban(self, db: Session, ip: str) -> bool:
        return db.query(BannedIP).filter(BannedIP.ip == ip).delete() > 0

    def find_expired_ban_ips(self, db: Session, now: int) -> List[str]:
        rows = (
            db.query(BannedIP.ip)
            .filter(
                BannedIP.is_permanent.is_(False),
                BannedIP.expires_at <= now,
            )
            .all()
        )
        return [row.ip for row in rows]

    def delete_expired_ban(self, db: Session, ip: str, now: int) -> bool:
        """Delete a ban only if it is still temporary and expired.

        The condition is re-checked in the DELETE itself so a ban re-armed
        by a concurrent violation survives the sweep.
        """
        deleted = (
            db.query(BannedIP)
            .filter(
                BannedIP.ip == ip,
                BannedIP.is_permanent.is_(False),
                BannedIP.expires_at <= now,
            )
            .delete(synchronize_session=False)
        )
        return deleted > 0

    def count_bans(self, db: Session) -> int:
        return db.query(func.count(BannedIP.ip)).scalar() or 0

    def list_active_bans(self, db: Session, now: int) -> List[BannedIP]:
        return (
            db.query(BannedIP)
            .filter((BannedIP.is_permanent.is_(True)) | (BannedIP.expires_at > now))
            .order_by(BannedIP.banned_at.desc())
            .all()
        )

    def count_active_bans(self, db: Session, now: int) -> int:
        return (
            db.query(func.count(BannedIP.ip))
            .filter((BannedIP.is_permanent.is_(True)) | (BannedIP.expires_at > now))
            .scalar()
        ) or 0

    # Events

    def count_recent_violations(self, db: Session, ip: str, since: int) -> int:
        """BAN and RATE_LIMIT events for an IP at or after `since`."""
        return (
            db.query(func.count(SecurityEvent.id))
            .filter(
                SecurityEvent.ip == ip,
                SecurityEvent.event_type.in_(VIOLATION_EVENT_TYPES),
                SecurityEvent.timestamp >= since,
            )
            .scalar()
        ) or 0

    def count_events_since(self, db: Session, since: int) -> int:
        return (
            db.query(func.count(SecurityEvent.id))
            .filter(SecurityEvent.timestamp > since)
            .scalar()
        ) or 0

    def list_recent_events(self, db: Session, limit: int = 50) -> List[SecurityEvent]:
        return (
            db.query(SecurityEvent)
            .order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc())
            .limit(limit)
            .all()
        )

    # Reporting

    def top_violators(self, db: Session, limit: int = 10) -> List[IPTracking]:
        return (
            db.query(IPTracking)
            .filter(IPTracking.violation_count > 0)
            .order_by(IPTracking.violation_count.desc())
            .limit(limit)
            .all()
        )

    def recent_ips(self, db: Session, since: int, limit: int = 20) -> List[IPTracking]:
        return (
            db.query(IPTracking)
            .filter(IPTracking.last_seen > since)
            .order_by(IPTracking.email_count_day.desc())
            .limit(limit)
            .all()
        )
