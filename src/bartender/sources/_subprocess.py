"""Subprocess helpers shared by the timer and process sources."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
from typing import Any

from bartender.exceptions import SourceStartupFailure
from bartender.models import Command

_logger = logging.getLogger(__name__)

#: Seconds a child gets to exit after SIGTERM before it is killed.
TERMINATE_GRACE_SECONDS: float = 2.0


def describe(command: Command) -> str:
    if isinstance(command, str):
        return command
    return shlex.join(command)


def strip_line(raw: bytes) -> str:
    """Decode one line of output and drop its line terminator."""
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def single_line(raw: bytes) -> str:
    """Decode command output into one line.

    Trailing newlines are trimmed and embedded ones removed, so a value
    can never split the status line.
    """
    return strip_line(raw).replace("\r", "").replace("\n", "")


async def spawn(command: Command, *, key: str, stderr: Any = None) -> asyncio.subprocess.Process:
    """Start ``command`` with a piped stdout in its own process group.

    Strings run through ``sh -c``; sequences are exec'd directly.

    Raises
    ------
    SourceStartupFailure
        When the command cannot be started at all.
    """
    kwargs: dict[str, Any] = {
        "stdin": asyncio.subprocess.DEVNULL,
        "stdout": asyncio.subprocess.PIPE,
        "stderr": stderr,
        "start_new_session": True,
    }
    try:
        if isinstance(command, str):
            proc = await asyncio.create_subprocess_shell(command, **kwargs)
        else:
            proc = await asyncio.create_subprocess_exec(*command, **kwargs)
    except OSError as exc:
        raise SourceStartupFailure(f"cannot spawn `{describe(command)}`: {exc}", key=key) from exc
    _logger.debug("Spawned key=%s pid=%s command=%s", key, proc.pid, describe(command))
    return proc


def _signal_group(proc: asyncio.subprocess.Process, signum: int) -> None:
    try:
        os.killpg(proc.pid, signum)
    except ProcessLookupError:
        pass


async def terminate(proc: asyncio.subprocess.Process, *, grace: float = TERMINATE_GRACE_SECONDS) -> None:
    """Stop ``proc`` and everything it spawned; no-op if it already exited."""
    if proc.returncode is not None:
        return
    _signal_group(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(proc.wait(), grace)
    except TimeoutError:
        _logger.debug("pid=%s ignored SIGTERM, killing", proc.pid)
        _signal_group(proc, signal.SIGKILL)
        await proc.wait()


def exit_reason(returncode: int) -> str:
    if returncode < 0:
        return f"got killed by signal {-returncode}"
    return f"exited with code {returncode}"
