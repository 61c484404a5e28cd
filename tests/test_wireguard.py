import asyncio
import os
import subprocess
import time
from types import SimpleNamespace

import pytest

from tonneru.vpn import wireguard
from tonneru.vpn.wireguard import (
    VpnHealthCheck,
    WgStatus,
    WireGuardError,
    check_vpn_routing,
    has_meaningful_traffic,
    is_handshake_stale,
    parse_wg_show_output,
)

WG_SHOW = """interface: wg0
  public key: PUBLICKEYPLACEHOLDER
  listening port: 51820

peer: PEERKEYPLACEHOLDER
  endpoint: 203.0.113.5:51820
  allowed ips: 0.0.0.0/0
  latest handshake: 12 seconds ago
  transfer: 2.31 MiB received, 450.12 KiB sent
"""


class _FakeProcess:
    def __init__(self, returncode, stdout, stderr):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def communicate(self, data=None):
        return self._stdout, self._stderr

    def kill(self):
        pass

    async def wait(self):
        return self.returncode


class _System:
    """Scripted answers for the helper and for plain commands."""

    def __init__(self):
        self.helper = {}
        self.commands = {}
        self.helper_calls = []
        self.command_calls = []

    async def create_subprocess_exec(self, *argv, **kwargs):
        key = tuple(argv[2:])
        self.helper_calls.append(key)
        if key not in self.helper:
            raise FileNotFoundError(argv[0])
        return _FakeProcess(*self.helper[key])

    def run(self, argv, **kwargs):
        key = tuple(argv)
        self.command_calls.append(key)
        if key not in self.commands:
            raise FileNotFoundError(argv[0])
        returncode, stdout = self.commands[key]
        return subprocess.CompletedProcess(list(argv), returncode, stdout, b"")


@pytest.fixture
def system(monkeypatch):
    fake = _System()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake.create_subprocess_exec)
    monkeypatch.setattr(subprocess, "run", fake.run)
    return fake


@pytest.mark.parametrize(
    "handshake, stale",
    [
        ("12 seconds ago", False),
        ("1 minute, 5 seconds ago", False),
        ("3 minutes, 2 seconds ago", True),
        ("2 hours, 1 minute ago", True),
        ("1 day ago", True),
        ("", True),
        ("never", True),
    ],
)
def test_is_handshake_stale(handshake, stale):
    assert is_handshake_stale(handshake) is stale


def test_meaningful_traffic_above_threshold():
    assert has_meaningful_traffic(" 1.50 KiB received", " 0 B sent") is True


def test_meaningful_traffic_exact_threshold_is_not_enough():
    assert has_meaningful_traffic("512 B received", "512 B sent") is False


def test_meaningful_traffic_unparseable():
    assert has_meaningful_traffic("garbage", "x") is False


def test_parse_wg_show_output(system):
    system.commands[("ip", "route", "show", "default")] = (0, b"default dev wg0 scope link\n")
    status = parse_wg_show_output(WG_SHOW)
    assert status.connected is True
    assert status.interface == "wg0"
    assert status.endpoint == "203.0.113.5:51820"
    assert status.latest_handshake == "12 seconds ago"
    assert status.handshake_stale is False
    assert status.transfer_rx == "2.31 MiB received"
    assert status.transfer_tx == "450.12 KiB sent"
    assert status.has_traffic is True
    assert status.routing_ok is True


def test_parse_without_handshake_assumes_stale(system):
    status = parse_wg_show_output("interface: wg0\n")
    assert status.handshake_stale is True
    assert status.routing_ok is False


def test_routing_via_split_routes(system):
    system.commands[("ip", "route", "show", "default")] = (0, b"default via 192.0.2.1 dev eth0\n")
    system.commands[("ip", "route", "show")] = (0, b"0.0.0.0/1 dev wg0 scope link\n")
    assert check_vpn_routing("wg0") is True


def test_routing_not_through_vpn(system):
    system.commands[("ip", "route", "show", "default")] = (0, b"default via 192.0.2.1 dev eth0\n")
    system.commands[("ip", "route", "show")] = (0, b"192.0.2.0/24 dev eth0\n10.0.0.0/8 dev wg0\n")
    assert check_vpn_routing("wg0") is False


def test_routing_when_ip_missing(system):
    assert check_vpn_routing("wg0") is False


def test_get_status_from_helper(system):
    system.helper[("status",)] = (0, WG_SHOW.encode(), b"")
    status = asyncio.run(wireguard.get_status())
    assert status.interface == "wg0"
    assert status.endpoint == "203.0.113.5:51820"


def test_get_status_falls_back_to_ip_link(system):
    system.commands[("ip", "link", "show", "type", "wireguard")] = (
        0,
        b"7: wg1: <POINTOPOINT,NOARP,UP,LOWER_UP> mtu 1420\n    link/none\n",
    )
    status = asyncio.run(wireguard.get_status())
    assert status == WgStatus(connected=True, interface="wg1")


def test_get_status_nothing_found(system):
    system.helper[("status",)] = (1, b"", b"error")
    assert asyncio.run(wireguard.get_status()) == WgStatus()


def test_connect_disconnects_first(system):
    system.helper[("disconnect",)] = (0, b"", b"")
    system.helper[("connect", "wg0")] = (0, b"", b"")
    assert asyncio.run(wireguard.connect("wg0")) is None
    assert system.helper_calls == [("disconnect",), ("connect", "wg0")]


def test_connect_failure(system):
    system.helper[("connect", "wg0")] = (1, b"", b"boom")
    with pytest.raises(WireGuardError, match="Failed to connect: boom"):
        asyncio.run(wireguard.connect("wg0"))


def test_connect_helper_missing(system):
    with pytest.raises(WireGuardError, match="Failed to execute connect"):
        asyncio.run(wireguard.connect("wg0"))


def test_disconnect_swallows_failure(system):
    system.helper[("disconnect",)] = (1, b"", b"no interface")
    assert asyncio.run(wireguard.disconnect()) is None
    assert system.helper_calls == [("disconnect",)]


def test_health_check_not_connected(system):
    assert asyncio.run(wireguard.health_check()) == VpnHealthCheck()


def test_health_check_ping_ok(system):
    system.helper[("status",)] = (0, WG_SHOW.encode(), b"")
    system.commands[("ip", "route", "show", "default")] = (0, b"default dev wg0\n")
    system.commands[("ping", "-c", "1", "-W", "3", "1.1.1.1")] = (0, b"")
    result = asyncio.run(wireguard.health_check())
    assert result.interface_exists and result.has_peer
    assert result.can_reach_internet is True
    assert result.latency_ms is not None and result.latency_ms >= 0
    assert result.is_healthy() is True
    assert result.is_degraded() is False


def test_health_check_curl_fallback(system):
    system.helper[("status",)] = (0, WG_SHOW.encode(), b"")
    system.commands[("ping", "-c", "1", "-W", "3", "1.1.1.1")] = (1, b"")

    original_run = system.run

    def run(argv, **kwargs):
        if argv[0] == "curl":
            system.command_calls.append(tuple(argv))
            return subprocess.CompletedProcess(argv, 0, b"204", b"")
        return original_run(argv, **kwargs)

    system.run = run
    subprocess.run = run
    result = asyncio.run(wireguard.health_check())
    assert result.can_reach_internet is True
    assert any(call[0] == "curl" for call in system.command_calls)
    assert result.is_degraded() is True


def test_health_check_flags():
    check = VpnHealthCheck(interface_exists=True, has_peer=True, handshake_recent=True)
    assert check.is_healthy() is False
    assert check.is_degraded() is True
    full = VpnHealthCheck(True, True, True, True, True, 10)
    assert full.is_healthy() is True
    assert full.is_degraded() is False


def test_interface_uptime_missing():
    assert wireguard.get_interface_uptime("no-such-iface-xyz") is None


def test_interface_uptime(monkeypatch):
    monkeypatch.setattr(os, "stat", lambda path: SimpleNamespace(st_mtime=time.time() - 100))
    uptime = wireguard.get_interface_uptime("wg0")
    assert 99 <= uptime <= 101


def test_is_alive(system):
    system.helper[("status",)] = (0, WG_SHOW.encode(), b"")
    assert asyncio.run(wireguard.is_alive()) is True


def test_is_alive_when_down(system):
    assert asyncio.run(wireguard.is_alive()) is False


def test_refresh_not_connected(system):
    with pytest.raises(WireGuardError, match="VPN not connected"):
        asyncio.run(wireguard.refresh_connection())


def test_refresh_pings_endpoint(system):
    system.helper[("status",)] = (0, WG_SHOW.encode(), b"")
    assert asyncio.run(wireguard.refresh_connection()) is None
    assert ("ping", "-c", "1", "-W", "2", "203.0.113.5") in system.command_calls
    assert ("ping", "-c", "1", "-W", "2", "1.1.1.1") in system.command_calls