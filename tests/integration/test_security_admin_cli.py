"""Integration tests for the security administration CLI."""

import io
import json

import pytest

from ghostinbox.scripts.security_admin import main
from ghostinbox.security.engine import UnavailableMitigationEngine

pytestmark = pytest.mark.integration


def _run(argv, settings, mitigation):
    out = io.StringIO()
    code = main(argv, settings=settings, mitigation=mitigation, out=out)
    return code, out.getvalue()


def test_ban_then_stats(settings, mitigation, packet_filter):
    code, output = _run(["ban", "198.51.100.7", "Spam run"], settings, mitigation)

    assert code == 0
    assert output.strip() == "IP 198.51.100.7 has been banned"

    code, output = _run(["stats"], settings, mitigation)
    stats = json.loads(output)
    assert stats["active_bans"] == 1
    assert stats["top_violators"][0]["ip"] == "198.51.100.7"


def test_ban_whitelisted_exits_one(settings, mitigation):
    code, output = _run(["ban", "127.0.0.1"], settings, mitigation)

    assert code == 1
    assert output == ""


def test_unban(settings, mitigation):
    mitigation.ban_ip("198.51.100.7", "Manual ban")

    code, output = _run(["unban", "198.51.100.7"], settings, mitigation)

    assert code == 0
    assert output.strip() == "IP 198.51.100.7 has been unbanned"
    assert mitigation.is_banned("198.51.100.7") is False


def test_cleanup(settings, mitigation, clock):
    mitigation.ban_ip("198.51.100.7", "Manual ban")
    clock.advance(7201)

    code, output = _run(["cleanup"], settings, mitigation)

    assert code == 0
    assert output.strip() == "Removed 1 expired bans"


def test_events_limit(settings, mitigation):
    for last_octet in range(1, 4):
        mitigation.ban_ip(f"198.51.100.{last_octet}", "Manual ban")

    code, output = _run(["events", "--limit", "2"], settings, mitigation)

    events = json.loads(output)
    assert code == 0
    assert len(events) == 2
    assert {event["event_type"] for event in events} == {"BAN"}


def test_unavailable_exits_one(settings):
    code, output = _run(["stats"], settings, UnavailableMitigationEngine("disk I/O error"))

    assert code == 1
    assert output == ""


def test_unknown_command_is_usage_error(settings, mitigation):
    with pytest.raises(SystemExit) as excinfo:
        _run(["explode"], settings, mitigation)

    assert excinfo.value.code == 2
