"""Running the privileged helper and other external commands with a timeout."""

from __future__ import annotations

import asyncio
import subprocess
from typing import Optional, Sequence

SUDO_TIMEOUT = 5.0
HELPER_PATH = "/usr/lib/tonneru/tonneru-sudo"

_HELPER_TIMEOUT_MESSAGE = (
    "Command timed out (sudo may need password or user not in tonneru group)"
)


class HelperError(RuntimeError):
    """An external command could not be run or did not finish in time."""


async def _run(
    argv: Sequence[str],
    *,
    stdin_data: Optional[str],
    failure: str,
    timed_out: str,
) -> subprocess.CompletedProcess:
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise HelperError(f"{failure}: {exc}") from exc

    data = stdin_data.encode() if stdin_data is not None else None
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(data), SUDO_TIMEOUT)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        raise HelperError(timed_out) from None
    return subprocess.CompletedProcess(list(argv), proc.returncode, stdout, stderr)


async def run_helper(args: Sequence[str]) -> subprocess.CompletedProcess:
    """Run the privileged helper through sudo with the given arguments."""
    return await _run(
        ["sudo", HELPER_PATH, *args],
        stdin_data=None,
        failure="Helper execution failed",
        timed_out=_HELPER_TIMEOUT_MESSAGE,
    )


async def run_helper_with_stdin(
    args: Sequence[str], stdin_data: str
) -> subprocess.CompletedProcess:
    """Run the privileged helper, feeding ``stdin_data`` to its input."""
    return await _run(
        ["sudo", HELPER_PATH, *args],
        stdin_data=stdin_data,
        failure="Helper execution failed",
        timed_out=_HELPER_TIMEOUT_MESSAGE,
    )


async def run_command_with_timeout(
    cmd: str, args: Sequence[str]
) -> subprocess.CompletedProcess:
    """Run an arbitrary command, giving up after the helper timeout."""
    return await _run(
        [cmd, *args],
        stdin_data=None,
        failure="Command execution failed",
        timed_out="Command timed out (sudo may need password)",
    )