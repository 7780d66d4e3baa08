"""Pytest fixtures shared by unit and integration tests.

Provides reusable test fixtures for:
- Settings pointing at temporary SQLite files
- A manual clock, a recording packet filter and a recording transmitter
- Wired AliasStore, IPLedger, AbuseMitigationEngine and RelayRouter

Usage:
    def test_inbound(relay_router, transmitter):
        result = relay_router.handle(raw_message)
        assert transmitter.sent[0].to == "you@example.net"
"""

from typing import List, Optional, Tuple

import pytest

from ghostinbox.aliases.store import AliasStore, create_alias_store
from ghostinbox.config import Settings
from ghostinbox.database import create_db_engine, create_session_factory, init_schema
from ghostinbox.domain.ports.clock_port import ClockPort
from ghostinbox.domain.ports.mail_transmitter_port import (
    MailTransmitterPort,
    OutgoingMessage,
    TransmissionResult,
)
from ghostinbox.domain.ports.packet_filter_port import FilterAction, PacketFilterPort
from ghostinbox.models.base import SecurityBase
from ghostinbox.relay.relay_router import RelayRouter
from ghostinbox.security.engine import AbuseMitigationEngine
from ghostinbox.security.ledger import IPLedger
from ghostinbox.security.policy import MitigationPolicy


# Midnight UTC: the start of a minute, hour and day bucket
START_TIME = 1_700_006_400

DOMAIN = "example.com"
DESTINATION_MAILBOX = "owner@example.net"
EXTERNAL_IP = "203.0.113.9"


class ManualClock(ClockPort):
    """Clock that only moves when told to."""

    def __init__(self, start: int = START_TIME):
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class RecordingPacketFilter(PacketFilterPort):
    """Records every action; raises OSError when `fail` is set."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Tuple[str, FilterAction]] = []

    def apply(self, ip: str, action: FilterAction) -> None:
        self.calls.append((ip, action))
        if self.fail:
            raise OSError("iptables: not permitted")


class RecordingTransmitter(MailTransmitterPort):
    """Records sent messages and answers with a preset result."""

    def __init__(self, result: Optional[TransmissionResult] = None):
        self.result = result or TransmissionResult.ok()
        self.sent: List[OutgoingMessage] = []

    def send(self, message: OutgoingMessage) -> TransmissionResult:
        self.sent.append(message)
        return self.result


def build_message(
    to: str = "shop@example.com",
    from_: str = "Jane Doe <jane@external.org>",
    subject: str = "Order 1234",
    body: str = "Hello,\nwhere is my order?",
    received: Tuple[str, ...] = (
        f"from mail.external.org (mail.external.org [{EXTERNAL_IP}]) by mx.example.com",
    ),
    date: str = "Mon, 6 Jan 2025 10:00:00 +0000",
) -> str:
    """Raw CRLF message text as the MTA would hand it over."""
    lines = [f"Received: {value}" for value in received]
    lines += [
        f"From: {from_}",
        f"To: {to}",
        f"Subject: {subject}",
        f"Date: {date}",
        "Message-ID: <abc123@external.org>",
        "",
        body,
    ]
    return "\r\n".join(lines)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DOMAIN=DOMAIN,
        DESTINATION_MAILBOX=DESTINATION_MAILBOX,
        ALIAS_DATABASE_URL=f"sqlite:///{tmp_path}/aliases.db",
        SECURITY_DATABASE_URL=f"sqlite:///{tmp_path}/security.db",
        FIREWALL_ENABLED=False,
        LOG_JSON=False,
        ADMIN_API_TOKEN=None,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def packet_filter() -> RecordingPacketFilter:
    return RecordingPacketFilter()


@pytest.fixture
def transmitter() -> RecordingTransmitter:
    return RecordingTransmitter()


@pytest.fixture
def alias_store(settings, clock) -> AliasStore:
    return create_alias_store(settings, clock)


@pytest.fixture
def security_session_factory(settings):
    engine = create_db_engine(settings.SECURITY_DATABASE_URL)
    init_schema(engine, SecurityBase)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def ledger() -> IPLedger:
    return IPLedger()


@pytest.fixture
def policy(settings) -> MitigationPolicy:
    return MitigationPolicy.from_settings(settings)


@pytest.fixture
def mitigation(security_session_factory, clock, policy, packet_filter, ledger) -> AbuseMitigationEngine:
    return AbuseMitigationEngine(
        session_factory=security_session_factory,
        clock=clock,
        policy=policy,
        packet_filter=packet_filter,
        ledger=ledger,
    )


@pytest.fixture
def relay_router(alias_store, mitigation, transmitter) -> RelayRouter:
    return RelayRouter(
        alias_store=alias_store,
        mitigation=mitigation,
        transmitter=transmitter,
        domain=DOMAIN,
        destination_mailbox=DESTINATION_MAILBOX,
    )
