"""Unit tests for the iptables packet filter adapter."""

import subprocess

import pytest

from ghostinbox.domain.ports.packet_filter_port import FilterAction
from ghostinbox.infrastructure.firewall import iptables_filter
from ghostinbox.infrastructure.firewall.iptables_filter import IptablesPacketFilter, NullPacketFilter


class TestIptablesPacketFilter:
    def test_drop_inserts_rule(self):
        command = IptablesPacketFilter().build_command("203.0.113.9", FilterAction.DROP)

        assert command == ["iptables", "-I", "INPUT", "-s", "203.0.113.9", "-j", "DROP"]

    def test_accept_deletes_rule(self):
        command = IptablesPacketFilter("/sbin/iptables").build_command("203.0.113.9", FilterAction.ACCEPT)

        assert command == ["/sbin/iptables", "-D", "INPUT", "-s", "203.0.113.9", "-j", "DROP"]

    def test_rejects_non_ip_argument(self):
        with pytest.raises(ValueError):
            IptablesPacketFilter().build_command("1.2.3.4; rm -rf /", FilterAction.DROP)

    def test_apply_runs_command(self, monkeypatch):
        calls = []

        def fake_run(command, **kwargs):
            calls.append((command, kwargs))
            return subprocess.CompletedProcess(command, 0)

        monkeypatch.setattr(iptables_filter.subprocess, "run", fake_run)

        IptablesPacketFilter().apply("203.0.113.9", FilterAction.DROP)

        command, kwargs = calls[0]
        assert command[1] == "-I"
        assert kwargs["check"] is True

    def test_apply_propagates_failure(self, monkeypatch):
        def fake_run(command, **kwargs):
            raise subprocess.CalledProcessError(1, command)

        monkeypatch.setattr(iptables_filter.subprocess, "run", fake_run)

        with pytest.raises(subprocess.CalledProcessError):
            IptablesPacketFilter().apply("203.0.113.9", FilterAction.ACCEPT)


def test_null_filter_does_nothing():
    assert NullPacketFilter().apply("203.0.113.9", FilterAction.DROP) is None
