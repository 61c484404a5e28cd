"""WireGuard status, connection control and health checks."""

from __future__ import annotations

import logging
import math
import os
import re
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from .helper import HelperError, run_helper

logger = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")

_UNIT_FACTORS = {
    "B": 1,
    "KIB": 1024,
    "KB": 1024,
    "MIB": 1024 * 1024,
    "MB": 1024 * 1024,
    "GIB": 1024 * 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}


class WireGuardError(RuntimeError):
    """A WireGuard operation failed."""


@dataclass
class WgStatus:
    """State of the active WireGuard interface, if any."""

    connected: bool = False
    interface: Optional[str] = None
    endpoint: Optional[str] = None
    latest_handshake: Optional[str] = None
    transfer_rx: Optional[str] = None
    transfer_tx: Optional[str] = None
    handshake_stale: bool = False
    has_traffic: bool = False
    routing_ok: bool = False


@dataclass
class VpnHealthCheck:
    """Result of an extended VPN health check."""

    interface_exists: bool = False
    has_peer: bool = False
    handshake_recent: bool = False
    routing_configured: bool = False
    can_reach_internet: bool = False
    latency_ms: Optional[int] = None

    def is_healthy(self) -> bool:
        """True when the VPN is fully operational."""
        return (
            self.interface_exists
            and self.has_peer
            and self.routing_configured
            and self.can_reach_internet
        )

    def is_degraded(self) -> bool:
        """True when the VPN is up but needs attention."""
        return (
            self.interface_exists
            and self.has_peer
            and (not self.handshake_recent or not self.routing_configured)
        )


def _capture(argv: Sequence[str]) -> Optional[str]:
    """Run a command; return its output if it succeeded, else None."""
    try:
        result = subprocess.run(
            list(argv),
            stdin=subprocess.DEVNULL,
            capture_output=True,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8", errors="replace")


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _to_u64(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    if math.isinf(value):
        return _U64_MAX
    return min(int(value), _U64_MAX)


def is_handshake_stale(handshake: str) -> bool:
    """Whether a ``wg show`` handshake age is three minutes or older."""
    lower = handshake.lower()
    if "hour" in lower or "day" in lower:
        return True
    if "minute" in lower:
        for part in lower.split():
            if _UNSIGNED.fullmatch(part) and int(part) <= _U32_MAX:
                return int(part) >= 3
    if "second" in lower and "minute" not in lower:
        return False
    return True


def _parse_bytes(text: str) -> int:
    parts = text.split()
    if len(parts) < 2:
        return 0
    try:
        number = float(parts[0])
    except ValueError:
        number = 0.0
    factor = _UNIT_FACTORS.get(parts[1].upper(), 1)
    return _to_u64(number * factor)


def has_meaningful_traffic(rx: str, tx: str) -> bool:
    """True when more than 1 KiB has moved in total."""
    return _parse_bytes(rx) + _parse_bytes(tx) > 1024


def check_vpn_routing(vpn_interface: str) -> bool:
    """Whether the default route (or WireGuard's split routes) uses the VPN."""
    default_routes = _capture(["ip", "route", "show", "default"])
    if default_routes is not None and vpn_interface in default_routes:
        return True

    routes = _capture(["ip", "route", "show"])
    if routes is not None:
        for line in routes.splitlines():
            if vpn_interface in line and line.startswith(
                ("0.0.0.0/1", "128.0.0.0/1", "default")
            ):
                return True
    return False


def parse_wg_show_output(stdout: str) -> WgStatus:
    """Build a status from the text printed by ``wg show``."""
    status = WgStatus(connected=True, handshake_stale=True)

    for raw in stdout.splitlines():
        line = raw.strip()
        if line.startswith("interface:"):
            status.interface = line.replace("interface:", "").strip()
        elif line.startswith("endpoint:"):
            status.endpoint = line.replace("endpoint:", "").strip()
        elif line.startswith("latest handshake:"):
            handshake = line.replace("latest handshake:", "").strip()
            status.handshake_stale = is_handshake_stale(handshake)
            status.latest_handshake = handshake
        elif line.startswith("transfer:"):
            transfer = line.replace("transfer:", "").strip()
            parts = transfer.split(",")
            if len(parts) >= 2:
                status.transfer_rx = parts[0].strip()
                status.transfer_tx = parts[1].strip()
                status.has_traffic = has_meaningful_traffic(parts[0], parts[1])

    if status.interface is not None:
        status.routing_ok = check_vpn_routing(status.interface)
    return status


async def get_status() -> WgStatus:
    """Current WireGuard connection status."""
    try:
        result = await run_helper(["status"])
    except HelperError:
        result = None
    if result is not None and result.returncode == 0:
        stdout = _decode(result.stdout)
        if stdout.strip():
            return parse_wg_show_output(stdout)

    links = _capture(["ip", "link", "show", "type", "wireguard"])
    if links is not None and links.strip():
        for line in links.splitlines():
            fields = line.split(":")
            if len(fields) > 1:
                name = fields[1].strip().split("@")[0]
                return WgStatus(connected=True, interface=name)

    return WgStatus()


async def disconnect() -> None:
    """Bring down the active WireGuard interface; failures are only logged."""
    try:
        result = await run_helper(["disconnect"])
    except HelperError as exc:
        logger.warning("Disconnect command failed: %s", exc)
        return
    if result.returncode != 0:
        logger.warning("Failed to disconnect: %s", _decode(result.stderr))


async def connect(profile_name: str) -> None:
    """Connect to a profile, dropping any existing connection first."""
    await disconnect()
    try:
        result = await run_helper(["connect", profile_name])
    except HelperError as exc:
        raise WireGuardError(f"Failed to execute connect: {exc}") from exc
    if result.returncode != 0:
        raise WireGuardError(f"Failed to connect: {_decode(result.stderr)}")


async def health_check() -> VpnHealthCheck:
    """Check interface, peer, handshake, routing and internet reachability."""
    result = VpnHealthCheck()
    status = await get_status()
    if not status.connected:
        return result

    result.interface_exists = True
    result.has_peer = status.endpoint is not None
    result.handshake_recent = not status.handshake_stale
    result.routing_configured = status.routing_ok

    start = time.monotonic()

    if _capture(["ping", "-c", "1", "-W", "3", "1.1.1.1"]) is not None:
        result.can_reach_internet = True
        result.latency_ms = int((time.monotonic() - start) * 1000)

    if not result.can_reach_internet:
        response = _capture(
            [
                "curl",
                "-s",
                "-o",
                "/dev/null",
                "-w",
                "%{http_code}",
                "--connect-timeout",
                "3",
                "--max-time",
                "5",
                "http://detectportal.firefox.com/success.txt",
            ]
        )
        if response is not None and response.startswith(("200", "204")):
            result.can_reach_internet = True
            result.latency_ms = int((time.monotonic() - start) * 1000)

    return result


def get_interface_uptime(interface: str) -> Optional[int]:
    """Seconds since the interface was created, from its sysfs uevent file."""
    try:
        modified = os.stat(f"/sys/class/net/{interface}/uevent").st_mtime
    except OSError:
        return None
    elapsed = time.time() - modified
    if elapsed < 0:
        return None
    return int(elapsed)


async def is_alive() -> bool:
    """True when an interface is up and its handshake is recent."""
    status = await get_status()
    return status.connected and not status.handshake_stale


async def refresh_connection() -> None:
    """Send pings through the tunnel to prompt a fresh handshake."""
    status = await get_status()
    if not status.connected:
        raise WireGuardError("VPN not connected")

    if status.endpoint is not None:
        endpoint_ip = status.endpoint.split(":")[0]
        _capture(["ping", "-c", "1", "-W", "2", endpoint_ip])

    _capture(["ping", "-c", "1", "-W", "2", "1.1.1.1"])