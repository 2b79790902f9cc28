"""bartender - merge timers, FIFOs and subprocess output into one status line."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bartender")
except PackageNotFoundError:
    __version__ = "0+local"
from bartender.app import Bartender
from bartender.config import BartenderConfig
from bartender.exceptions import (
    BartenderConfigError,
    BartenderError,
    RenderFailure,
    SourceError,
    SourceRuntimeFailure,
    SourceStartupFailure,
    TemplateError,
)
from bartender.models import FifoConfig, ProcessConfig, SourceConfig, TimerConfig
from bartender.output import OutputLoop
from bartender.render import Template, render
from bartender.scheduler import BackoffPolicy, Scheduler, SourceState, SourceStatus
from bartender.sources import FifoReader, ProcessReader, Timer, build_source
from bartender.state.signal import ChangeSignal
from bartender.state.store import RenderSnapshot, ValueStore

__all__ = [
    "__version__",
    "BackoffPolicy",
    "Bartender",
    "BartenderConfig",
    "BartenderConfigError",
    "BartenderError",
    "ChangeSignal",
    "FifoConfig",
    "FifoReader",
    "OutputLoop",
    "ProcessConfig",
    "ProcessReader",
    "RenderFailure",
    "RenderSnapshot",
    "Scheduler",
    "SourceConfig",
    "SourceError",
    "SourceRuntimeFailure",
    "SourceStartupFailure",
    "SourceState",
    "SourceStatus",
    "Template",
    "TemplateError",
    "Timer",
    "TimerConfig",
    "ValueStore",
    "build_source",
    "render",
]
