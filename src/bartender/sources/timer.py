"""Periodic command source."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

from bartender.exceptions import SourceError, SourceRuntimeFailure
from bartender.models import TimerConfig
from bartender.sources._subprocess import describe, exit_reason, single_line, spawn, terminate
from bartender.sources.base import SourceContext

#: Default upper bound for a single command run, in seconds.
DEFAULT_COMMAND_TIMEOUT: float = 30.0


def first_tick_delay(interval: float, align: bool, now: float) -> float:
    """Seconds from wall-clock time ``now`` until the first tick.

    Without alignment the first tick is immediate. With alignment it falls on
    the next multiple of ``interval`` since the epoch (a 60s timer fires on
    the minute), or immediately when ``now`` is exactly on a boundary.
    """
    if not align:
        return 0.0
    remainder = now % interval
    if remainder == 0:
        return 0.0
    return interval - remainder


def next_tick_index(current: int, elapsed: float, interval: float) -> int:
    """Index of the next tick to run after tick ``current`` finished.

    ``elapsed`` is the time since the anchor. Ticks whose slot has already
    passed while the command was running are skipped.
    """
    return max(current + 1, math.floor(elapsed / interval) + 1)


class Timer:
    """Run a command every ``interval`` seconds and store its output.

    Ticks are scheduled at ``anchor + n * interval`` on the monotonic clock,
    so slow commands never accumulate drift.
    """

    def __init__(
        self,
        config: TimerConfig,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._timeout = timeout or config.timeout or DEFAULT_COMMAND_TIMEOUT
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    @property
    def key(self) -> str:
        return self._config.key

    @property
    def config(self) -> TimerConfig:
        return self._config

    async def run(self, context: SourceContext) -> None:
        interval = self._config.interval
        delay = first_tick_delay(interval, self._config.align, self._clock())
        anchor = self._monotonic() + delay
        self._logger.debug("Timer %s: first tick in %.3fs, every %ss", self.key, delay, interval)

        tick = 0
        while True:
            wait = anchor + tick * interval - self._monotonic()
            if wait > 0:
                await self._sleep(wait)
            await self._tick(context)
            tick = next_tick_index(tick, self._monotonic() - anchor, interval)

    async def _tick(self, context: SourceContext) -> None:
        try:
            value = await self.execute()
        except SourceError as exc:
            # The previous value stays; the next tick runs as scheduled.
            context.report(exc)
            return
        context.update(value)

    async def execute(self) -> str:
        """Run the command once and return its output as a single line.

        Raises
        ------
        SourceStartupFailure
            The command could not be spawned.
        SourceRuntimeFailure
            The command exited non-zero, was killed, or timed out.
        """
        command = self._config.command
        proc = await spawn(command, key=self.key, stderr=asyncio.subprocess.PIPE)
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except TimeoutError:
            raise SourceRuntimeFailure(
                f"`{describe(command)}` timed out after {self._timeout:g}s",
                key=self.key,
            ) from None
        finally:
            await terminate(proc)

        returncode = proc.returncode if proc.returncode is not None else -1
        if returncode != 0:
            message = f"`{describe(command)}` {exit_reason(returncode)}"
            detail = single_line(stderr or b"").strip()
            if detail:
                message = f"{message}: {detail}"
            raise SourceRuntimeFailure(message, key=self.key, returncode=returncode)
        return single_line(stdout or b"")
