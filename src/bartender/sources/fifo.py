"""Named-pipe line source."""

from __future__ import annotations

import asyncio
import logging
import os
import stat

from bartender.exceptions import SourceRuntimeFailure, SourceStartupFailure
from bartender.models import FifoConfig
from bartender.sources._subprocess import strip_line
from bartender.sources.base import SourceContext

#: Pause before reopening after a writer connected and left without sending
#: anything, so a platform reporting EOF on an idle FIFO can't spin.
EMPTY_EOF_DELAY_SECONDS: float = 0.05

_FIFO_MODE = 0o600


class FifoReader:
    """Read a FIFO line by line, one update per line.

    Each attempt opens the pipe, reads until the last writer disconnects
    and returns, so the scheduler reopens it for the next writer. The
    descriptor is opened non-blocking and waited on through the event loop,
    which keeps every wait cancellable.
    """

    def __init__(self, config: FifoConfig, *, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)

    @property
    def key(self) -> str:
        return self._config.key

    @property
    def config(self) -> FifoConfig:
        return self._config

    def _ensure_fifo(self) -> None:
        path = self._config.path
        if not self._config.create or os.path.lexists(path):
            return
        try:
            os.mkfifo(path, _FIFO_MODE)
        except FileExistsError:
            return
        except OSError as exc:
            raise SourceStartupFailure(f"cannot create FIFO {path}: {exc.strerror}", key=self.key) from exc
        self._logger.info("Created FIFO %s for %s", path, self.key)

    def open(self) -> int:
        """Open the FIFO for non-blocking reads and return the descriptor.

        Raises
        ------
        SourceStartupFailure
            The path is missing, not a FIFO, or not readable.
        """
        self._ensure_fifo()
        path = self._config.path
        try:
            fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            raise SourceStartupFailure(f"cannot open {path}: {exc.strerror}", key=self.key) from exc
        try:
            is_fifo = stat.S_ISFIFO(os.fstat(fd).st_mode)
        except OSError:
            os.close(fd)
            raise
        if not is_fifo:
            os.close(fd)
            raise SourceStartupFailure(f"{path} is not a FIFO", key=self.key)
        return fd

    async def run(self, context: SourceContext) -> None:
        loop = asyncio.get_running_loop()
        pipe = os.fdopen(self.open(), "rb", buffering=0)
        reader = asyncio.StreamReader()
        try:
            transport, _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), pipe)
        except BaseException:
            pipe.close()
            raise

        received = 0
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError as exc:
                    # Over-long line: its data was discarded, keep reading.
                    context.report(SourceRuntimeFailure(f"line too long: {exc}", key=self.key))
                    continue
                if not line:
                    break
                context.update(strip_line(line))
                received += 1
        finally:
            transport.close()

        self._logger.debug("FIFO %s: end of stream after %d line(s), reopening", self.key, received)
        if not received:
            await asyncio.sleep(EMPTY_EOF_DELAY_SECONDS)
