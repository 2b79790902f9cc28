"""Immutable source descriptions.

Every source in the configuration is validated into one of these frozen
models. They are created once at startup and never mutated.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_KEY_RE = re.compile(r"[A-Za-z0-9_-]+")

Command = str | tuple[str, ...]
"""A shell command line (run via ``sh -c``) or an argv sequence (exec'd directly)."""


class _SourceConfigBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    key: str = Field(..., description="Template name the source's value is stored under")

    @field_validator("key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        # Dots would turn into nested lookups in the template.
        if not _KEY_RE.fullmatch(value):
            raise ValueError(f"key {value!r} may only contain letters, digits, '_' and '-'")
        return value


def _check_command(value: Command) -> Command:
    if isinstance(value, str):
        if not value.strip():
            raise ValueError("command must be non-empty")
        return value
    if not value or not value[0]:
        raise ValueError("command must be non-empty")
    return value


class TimerConfig(_SourceConfigBase):
    """Run ``command`` every ``interval`` seconds and store its output.

    The interval may also be given as ``seconds``/``minutes``/``hours``
    parts, which are summed.
    """

    kind: Literal["timer"] = "timer"
    command: Command
    interval: float = Field(..., gt=0, description="Period between ticks in seconds")
    align: bool = Field(default=False, description="Anchor ticks to wall-clock multiples of the interval")
    timeout: float | None = Field(default=None, gt=0, description="Max command runtime in seconds")

    @model_validator(mode="before")
    @classmethod
    def _fold_period_parts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        parts = {name: data.get(name) for name in ("seconds", "minutes", "hours")}
        if all(value is None for value in parts.values()):
            return data
        if data.get("interval") is not None:
            raise ValueError("give either interval or seconds/minutes/hours, not both")
        folded = {k: v for k, v in data.items() if k not in parts}
        try:
            folded["interval"] = (
                float(parts["seconds"] or 0) + 60 * float(parts["minutes"] or 0) + 3600 * float(parts["hours"] or 0)
            )
        except (TypeError, ValueError) as exc:
            raise ValueError("seconds/minutes/hours must be numbers") from exc
        if folded["interval"] <= 0:
            raise ValueError(f"timer {data.get('key')!r} doesn't have a positive period")
        return folded

    @field_validator("command")
    @classmethod
    def _validate_command(cls, value: Command) -> Command:
        return _check_command(value)


class FifoConfig(_SourceConfigBase):
    """Read lines from the named pipe at ``path``."""

    kind: Literal["fifo"] = "fifo"
    path: Path = Field(..., alias="fifo_path")
    default: str | None = None
    create: bool = Field(default=True, description="mkfifo the path when it does not exist")

    @field_validator("path")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()


class ProcessConfig(_SourceConfigBase):
    """Run ``command`` indefinitely, one update per stdout line."""

    kind: Literal["process"] = "process"
    command: Command

    @field_validator("command")
    @classmethod
    def _validate_command(cls, value: Command) -> Command:
        return _check_command(value)


SourceConfig = Annotated[TimerConfig | FifoConfig | ProcessConfig, Field(discriminator="kind")]
