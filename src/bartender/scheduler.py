"""Source supervision.

Owns one task per source, turns source failures into backoff-and-retry,
and tracks per-source state for logging and inspection.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from enum import StrEnum
from types import MappingProxyType

from bartender.exceptions import SourceError, SourceRuntimeFailure
from bartender.sources.base import Source
from bartender.state.store import KeyWriter


class SourceStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    STOPPED = "stopped"


@dataclasses.dataclass(frozen=True)
class BackoffPolicy:
    """Exponential retry delay for failing sources.

    Parameters
    ----------
    initial : float
        Delay after the first failure, in seconds.
    maximum : float
        Upper bound for any delay, in seconds.
    factor : float
        Multiplier applied per additional consecutive failure.
    """

    initial: float = 1.0
    maximum: float = 60.0
    factor: float = 2.0

    def delay(self, failures: int) -> float:
        """Delay before the next attempt after ``failures`` consecutive failures."""
        if failures <= 0:
            return 0.0
        return min(self.maximum, self.initial * self.factor ** (failures - 1))


@dataclasses.dataclass
class SourceState:
    """Supervision bookkeeping for one source."""

    key: str
    status: SourceStatus = SourceStatus.PENDING
    attempts: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    updates: int = 0
    last_error: str | None = None


class _SupervisedContext:
    """The :class:`~bartender.sources.base.SourceContext` handed to a running source."""

    def __init__(self, writer: KeyWriter, state: SourceState, logger: logging.Logger) -> None:
        self._writer = writer
        self._state = state
        self._logger = logger

    @property
    def key(self) -> str:
        return self._writer.key

    def update(self, value: str) -> None:
        self._writer(value)
        self._state.updates += 1

    def report(self, error: SourceError) -> None:
        self._state.failures += 1
        self._state.last_error = str(error)
        self._logger.warning("Source %s failed: %s", self.key, error)


class Scheduler:
    """Run sources concurrently and keep them alive.

    Usage::

        scheduler = Scheduler(sources, writer_for=store.writer)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        sources: Iterable[Source],
        *,
        writer_for: Callable[[str], KeyWriter],
        backoff: BackoffPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sources = list(sources)
        self._writer_for = writer_for
        self._backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._states: dict[str, SourceState] = {source.key: SourceState(key=source.key) for source in self._sources}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def states(self) -> Mapping[str, SourceState]:
        return MappingProxyType(self._states)

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start one task per source. Calling it twice is a no-op."""
        if self._tasks:
            return
        for source in self._sources:
            context = _SupervisedContext(self._writer_for(source.key), self._states[source.key], self._logger)
            self._tasks[source.key] = asyncio.create_task(
                self._supervise(source, context),
                name=f"bartender-source-{source.key}",
            )
        self._logger.debug("Started %d source(s)", len(self._tasks))

    async def stop(self) -> None:
        """Cancel every source and wait until all of them finished."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for state in self._states.values():
            state.status = SourceStatus.STOPPED
        self._logger.debug("Stopped %d source(s)", len(tasks))

    async def _supervise(self, source: Source, context: _SupervisedContext) -> None:
        state = self._states[source.key]
        while True:
            state.attempts += 1
            state.status = SourceStatus.RUNNING
            updates_before = state.updates
            failure: SourceError | None = None
            try:
                await source.run(context)
            except SourceError as exc:
                failure = exc
            except Exception as exc:
                self._logger.error("Source %s crashed", source.key, exc_info=True)
                failure = SourceRuntimeFailure(f"unexpected error: {exc!r}", key=source.key)

            if state.updates > updates_before:
                state.consecutive_failures = 0
            if failure is None:
                self._logger.debug("Source %s finished, restarting", source.key)
                continue

            state.consecutive_failures += 1
            context.report(failure)
            delay = self._backoff.delay(state.consecutive_failures)
            state.status = SourceStatus.RETRYING
            self._logger.info(
                "Source %s retrying in %.1fs (attempt %d, %d consecutive failure(s))",
                source.key,
                delay,
                state.attempts,
                state.consecutive_failures,
            )
            await self._sleep(delay)
