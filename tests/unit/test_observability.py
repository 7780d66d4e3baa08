"""Unit tests for logging, correlation IDs and health checks."""

import json
import logging

from ghostinbox.observability.correlation import get_correlation_id, set_correlation_id
from ghostinbox.observability.health import (
    ComponentHealth,
    HealthStatus,
    check_security_health,
    get_overall_health,
)
from ghostinbox.observability.logging_config import CorrelationIDFilter, JSONFormatter
from ghostinbox.security.engine import UnavailableMitigationEngine


def _record(msg="Banned for 7200 seconds", **extra):
    record = logging.LogRecord("ghostinbox.security.engine", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationID:
    def test_message_id_brackets_stripped(self):
        assert set_correlation_id("<abc123@external.org>") == "abc123@external.org"
        assert get_correlation_id() == "abc123@external.org"

    def test_generated_when_missing(self):
        value = set_correlation_id("")

        assert value
        assert get_correlation_id() == value


class TestJSONFormatter:
    def test_includes_correlation_and_extras(self):
        set_correlation_id("req-1")
        record = _record(ip="203.0.113.9", alias="shop")
        CorrelationIDFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["correlation_id"] == "req-1"
        assert data["message"] == "Banned for 7200 seconds"
        assert data["ip"] == "203.0.113.9"
        assert data["alias"] == "shop"

    def test_omits_absent_extras(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert "ip" not in data
        assert "alias" not in data


class TestHealth:
    def test_operational_security(self, mitigation):
        health = check_security_health(mitigation)

        assert health.status == HealthStatus.HEALTHY
        assert health.details["security_status"] == "operational"
        assert "warning" not in health.details

    def test_many_active_bans_warn(self, mitigation):
        for last_octet in range(1, 12):
            mitigation.ban_ip(f"198.51.100.{last_octet}", "Manual ban")

        health = check_security_health(mitigation)

        assert health.status == HealthStatus.HEALTHY
        assert health.details["warning"] == "High number of active bans: 11"

    def test_unavailable_security_degrades(self):
        health = check_security_health(UnavailableMitigationEngine())

        assert health.status == HealthStatus.DEGRADED

    def test_overall_status(self):
        healthy = ComponentHealth(status=HealthStatus.HEALTHY)
        degraded = ComponentHealth(status=HealthStatus.DEGRADED)
        unhealthy = ComponentHealth(status=HealthStatus.UNHEALTHY)

        assert get_overall_health({"a": healthy, "b": healthy}) == HealthStatus.HEALTHY
        assert get_overall_health({"a": healthy, "b": degraded}) == HealthStatus.DEGRADED
        assert get_overall_health({"a": degraded, "b": unhealthy}) == HealthStatus.UNHEALTHY
