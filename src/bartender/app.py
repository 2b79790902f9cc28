"""Wiring of store, sources, scheduler and output loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TextIO

from bartender.config import BartenderConfig
from bartender.models import FifoConfig
from bartender.output import OutputLoop
from bartender.render import Template
from bartender.scheduler import Scheduler
from bartender.sources import Source, build_source
from bartender.state.store import ValueStore

_logger = logging.getLogger(__name__)


def build_store(config: BartenderConfig, template: Template) -> ValueStore:
    """Create a store holding an entry for every source and template key.

    FIFO defaults are seeded here, before any source runs, so they show up
    in the first line without producing a line of their own.
    """
    store = ValueStore()
    for source in config.sources:
        default = source.default if isinstance(source, FifoConfig) else None
        store.seed(source.key, default or "")
    orphans = sorted(key for key in template.keys if key not in store)
    if orphans:
        _logger.warning("Template references key(s) without a source: %s", ", ".join(orphans))
    store.seed_many(orphans)
    return store


class Bartender:
    """A configured status line generator.

    The template is compiled on construction, so a malformed template fails
    before any source is started.

    Usage::

        app = Bartender(config)
        shutdown = asyncio.Event()
        await app.run(shutdown)  # until shutdown.set()
    """

    def __init__(
        self,
        config: BartenderConfig,
        *,
        stream: TextIO | None = None,
        sources: list[Source] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or _logger
        self.template = Template.compile(config.format)
        self.store = build_store(config, self.template)
        if sources is None:
            sources = [build_source(source, command_timeout=config.command_timeout) for source in config.sources]
        self.scheduler = Scheduler(
            sources,
            writer_for=self.store.writer,
            backoff=config.backoff,
            logger=self._logger.getChild("scheduler"),
        )
        self.output = OutputLoop(
            self.template,
            self.store,
            stream=stream if stream is not None else sys.stdout,
            logger=self._logger.getChild("output"),
        )

    @property
    def config(self) -> BartenderConfig:
        return self._config

    async def run(self, shutdown: asyncio.Event) -> None:
        """Run until ``shutdown`` is set or the output stream fails.

        On the way out every source is stopped first, then any change still
        pending is rendered. Errors from the output stream (e.g. a closed
        pipe) are re-raised after the sources stopped.
        """
        output_task = asyncio.create_task(self.output.run(), name="bartender-output")
        stop_task = asyncio.create_task(shutdown.wait(), name="bartender-shutdown")
        try:
            await self.scheduler.start()
            await asyncio.wait({output_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if stop_task.done():
                self._logger.debug("Shutdown requested")
        finally:
            stop_task.cancel()
            await self.scheduler.stop()
            self.store.signal.close()
            await output_task
