"""Wiring for the abuse mitigation engine.

If the security database cannot be opened or its schema created, callers
get the fail-open UnavailableMitigationEngine instead of an exception.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..database import create_db_engine, create_session_factory, init_schema
from ..domain.ports.clock_port import ClockPort
from ..domain.ports.packet_filter_port import PacketFilterPort
from ..infrastructure.firewall.iptables_filter import (
    IptablesPacketFilter,
    NullPacketFilter,
)
from ..models.base import SecurityBase
from .engine import AbuseMitigationEngine, UnavailableMitigationEngine
from .policy import MitigationPolicy
from .ports import AbuseMitigationPort

logger = logging.getLogger(__name__)


def create_packet_filter(settings: Settings) -> PacketFilterPort:
    if settings.FIREWALL_ENABLED:
        return IptablesPacketFilter(settings.IPTABLES_PATH)
    return NullPacketFilter()


def create_mitigation_engine(
    settings: Settings,
    clock: ClockPort,
    packet_filter: Optional[PacketFilterPort] = None,
) -> AbuseMitigationPort:
    """Build the mitigation engine for the configured security database.

    Returns:
        AbuseMitigationPort: AbuseMitigationEngine, or
            UnavailableMitigationEngine when storage is unusable
    """
    try:
        engine = create_db_engine(settings.SECURITY_DATABASE_URL)
        init_schema(engine, SecurityBase)
    except (OSError, SQLAlchemyError) as e:
        logger.warning(f"Security system unavailable, running without protection: {e}")
        return UnavailableMitigationEngine(str(e))

    return AbuseMitigationEngine(
        session_factory=create_session_factory(engine),
        clock=clock,
        policy=MitigationPolicy.from_settings(settings),
        packet_filter=packet_filter or create_packet_filter(settings),
    )
