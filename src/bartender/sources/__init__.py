"""Source variants and the factory that builds them from configuration."""

from __future__ import annotations

from bartender.models import FifoConfig, ProcessConfig, SourceConfig, TimerConfig
from bartender.sources.base import Source, SourceContext
from bartender.sources.fifo import FifoReader
from bartender.sources.process import ProcessReader
from bartender.sources.timer import DEFAULT_COMMAND_TIMEOUT, Timer


def build_source(config: SourceConfig, *, command_timeout: float = DEFAULT_COMMAND_TIMEOUT) -> Source:
    """Create the source variant matching ``config``.

    ``command_timeout`` applies to timers without a ``timeout`` of their own.
    """
    if isinstance(config, TimerConfig):
        return Timer(config, timeout=config.timeout or command_timeout)
    if isinstance(config, FifoConfig):
        return FifoReader(config)
    if isinstance(config, ProcessConfig):
        return ProcessReader(config)
    raise TypeError(f"unsupported source config: {type(config).__name__}")


__all__ = [
    "DEFAULT_COMMAND_TIMEOUT",
    "FifoReader",
    "ProcessReader",
    "Source",
    "SourceContext",
    "Timer",
    "build_source",
]
