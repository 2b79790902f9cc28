"""Long-running subprocess line source."""

from __future__ import annotations

import logging

from bartender.exceptions import SourceRuntimeFailure
from bartender.models import ProcessConfig
from bartender.sources._subprocess import describe, exit_reason, spawn, strip_line, terminate
from bartender.sources.base import SourceContext


class ProcessReader:
    """Run a command and store each line it prints.

    The command is expected to run forever. Every exit, clean or not, ends
    the attempt with a :class:`SourceRuntimeFailure` so the scheduler
    restarts it after a backoff delay.
    """

    def __init__(self, config: ProcessConfig, *, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)

    @property
    def key(self) -> str:
        return self._config.key

    @property
    def config(self) -> ProcessConfig:
        return self._config

    async def run(self, context: SourceContext) -> None:
        command = self._config.command
        proc = await spawn(command, key=self.key)
        assert proc.stdout is not None
        try:
            while True:
                try:
                    line = await proc.stdout.readline()
                except ValueError as exc:
                    context.report(SourceRuntimeFailure(f"line too long: {exc}", key=self.key))
                    continue
                if not line:
                    break
                context.update(strip_line(line))
            returncode = await proc.wait()
        finally:
            await terminate(proc)

        raise SourceRuntimeFailure(
            f"`{describe(command)}` {exit_reason(returncode)}",
            key=self.key,
            returncode=returncode,
        )
