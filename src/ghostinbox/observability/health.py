"""Health checks for the alias database and the security system."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from ..database import ping
from ..security.ports import AbuseMitigationPort

logger = logging.getLogger(__name__)

# More active bans than this is reported as a warning
ACTIVE_BAN_WARNING_THRESHOLD = 10


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status.value,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }
        data.update(self.details)
        return data


def check_database_health(session_factory: sessionmaker) -> ComponentHealth:
    """Check alias database connectivity."""
    try:
        start = time.time()
        ping(session_factory)
        latency_ms = (time.time() - start) * 1000

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Database connection OK",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database error: {str(e)}",
        )


def check_security_health(mitigation: AbuseMitigationPort) -> ComponentHealth:
    """Report whether abuse mitigation is operational.

    An unavailable security system degrades health but does not make the
    relay unhealthy, since mail still flows (fail-open).
    """
    if not mitigation.available:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message="Security system unavailable",
            details={"security_status": "unavailable"},
        )

    try:
        stats = mitigation.get_security_stats()
    except Exception as e:
        logger.error(f"Security health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message=f"Security error: {str(e)}",
            details={"security_status": "unavailable"},
        )

    details = {
        "security_status": "operational",
        "active_bans": stats.get("active_bans", 0),
        "recent_events": stats.get("recent_events", 0),
    }
    if details["active_bans"] > ACTIVE_BAN_WARNING_THRESHOLD:
        details["warning"] = f"High number of active bans: {details['active_bans']}"

    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Security system operational",
        details=details,
    )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component statuses."""
    if all(c.status == HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.HEALTHY

    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY

    return HealthStatus.DEGRADED
