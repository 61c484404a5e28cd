"""Kill switch control through the privileged helper."""

from __future__ import annotations

import logging

from . import wireguard
from .helper import HelperError, run_helper

logger = logging.getLogger(__name__)


class KillSwitchError(RuntimeError):
    """The kill switch could not be changed."""


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def enable() -> None:
    """Block all traffic except through the active WireGuard interface.

    Raises HelperError if the helper cannot be run at all.
    """
    status = await wireguard.get_status()
    interface = status.interface or "wg0"
    result = await run_helper(["killswitch-on", interface])
    if result.returncode != 0:
        raise KillSwitchError(f"Failed to enable kill switch: {_decode(result.stderr)}")
    logger.info("Kill switch enabled for interface: %s", interface)


async def disable() -> None:
    """Turn the kill switch off, retrying once and verifying the result."""
    try:
        result = await run_helper(["killswitch-off"])
    except HelperError as exc:
        logger.warning("Kill switch disable attempt 1 failed: %s", exc)
    else:
        if result.returncode != 0:
            stderr = _decode(result.stderr)
            if "No such file" not in stderr and "does not exist" not in stderr:
                logger.warning("Kill switch disable warning: %s", stderr)

    if await is_enabled():
        logger.warning("Kill switch still enabled after first attempt, retrying...")
        try:
            result = await run_helper(["killswitch-off"])
        except HelperError:
            pass
        else:
            if result.returncode != 0:
                logger.error("Kill switch disable retry failed: %s", _decode(result.stderr))

        if await is_enabled():
            logger.error("CRITICAL: Kill switch could not be disabled!")
            raise KillSwitchError("Failed to disable kill switch after multiple attempts")

    logger.info("Kill switch disabled successfully")


async def is_enabled() -> bool:
    """Whether the helper reports the kill switch as enabled."""
    try:
        result = await run_helper(["killswitch-status"])
    except HelperError:
        return False
    return _decode(result.stdout).strip() == "enabled"