"""Configuration loading for bartender."""

from __future__ import annotations

import dataclasses
import os
import tomllib
from collections import Counter
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bartender.exceptions import BartenderConfigError
from bartender.models import FifoConfig, ProcessConfig, SourceConfig, TimerConfig
from bartender.scheduler import BackoffPolicy
from bartender.sources.timer import DEFAULT_COMMAND_TIMEOUT

DEFAULT_CONFIG_PATH = Path("~/.bartenderrc")

_SOURCE_TABLES: tuple[tuple[str, str, type[BaseModel]], ...] = (
    ("timers", "timer", TimerConfig),
    ("fifos", "fifo", FifoConfig),
    ("processes", "process", ProcessConfig),
)
_TOP_LEVEL_KEYS = frozenset({"format", "settings"} | {table for table, _, _ in _SOURCE_TABLES})

_ENV_SETTINGS_MAP = {
    "BARTENDER_COMMAND_TIMEOUT": "command_timeout",
    "BARTENDER_BACKOFF_INITIAL": "backoff_initial",
    "BARTENDER_BACKOFF_MAX": "backoff_max",
}


class _SettingsTable(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command_timeout: float = Field(default=DEFAULT_COMMAND_TIMEOUT, gt=0)
    backoff_initial: float = Field(default=1.0, gt=0)
    backoff_max: float = Field(default=60.0, gt=0)
    backoff_factor: float = Field(default=2.0, ge=1)


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


@dataclasses.dataclass(frozen=True)
class BartenderConfig:
    """Complete runtime configuration.

    Parameters
    ----------
    format : str
        Mustache template for the output line. Newlines are removed.
    sources : tuple of SourceConfig
        Every configured source. Keys must be unique.
    command_timeout : float
        Default upper bound, in seconds, for one timer command run.
    backoff_initial : float
        Retry delay after a source's first consecutive failure.
    backoff_max : float
        Upper bound for any retry delay.
    backoff_factor : float
        Growth factor between consecutive retry delays.
    """

    format: str
    sources: tuple[SourceConfig, ...] = ()
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    backoff_initial: float = 1.0
    backoff_max: float = 60.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", self.format.replace("\r", "").replace("\n", ""))
        object.__setattr__(self, "sources", tuple(self.sources))

        duplicates = sorted(key for key, count in Counter(s.key for s in self.sources).items() if count > 1)
        if duplicates:
            raise BartenderConfigError(f"duplicate source key(s): {', '.join(duplicates)}")
        if self.command_timeout <= 0:
            raise BartenderConfigError("command_timeout must be positive")
        if self.backoff_initial <= 0 or self.backoff_max <= 0:
            raise BartenderConfigError("backoff delays must be positive")
        if self.backoff_factor < 1:
            raise BartenderConfigError("backoff_factor must be at least 1")

    @property
    def backoff(self) -> BackoffPolicy:
        return BackoffPolicy(
            initial=self.backoff_initial,
            maximum=max(self.backoff_initial, self.backoff_max),
            factor=self.backoff_factor,
        )

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(source.key for source in self.sources)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> BartenderConfig:
        """Build configuration from a parsed config document.

        ``BARTENDER_*`` environment variables override the ``[settings]``
        table; explicit keyword arguments override both.

        Raises
        ------
        BartenderConfigError
            If the document is incomplete or invalid.
        """
        unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
        if unknown:
            raise BartenderConfigError(f"unknown top-level key(s): {', '.join(unknown)}")

        template = data.get("format")
        if not isinstance(template, str):
            raise BartenderConfigError("no `format` string found")

        settings_table = data.get("settings", {})
        if not isinstance(settings_table, Mapping):
            raise BartenderConfigError("`settings` must be a table")
        try:
            settings = _SettingsTable.model_validate(dict(settings_table))
        except ValidationError as exc:
            raise BartenderConfigError(f"settings: {_describe_validation_error(exc)}") from exc

        config_kwargs: dict[str, Any] = settings.model_dump()
        for env_key, field_name in _ENV_SETTINGS_MAP.items():
            value = os.environ.get(env_key)
            if value is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(value)
            except ValueError as exc:
                raise BartenderConfigError(f"{env_key} must be a number, got {value!r}") from exc

        config_kwargs["format"] = template
        config_kwargs["sources"] = _parse_sources(data)
        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str], **overrides: Any) -> BartenderConfig:
        """Read and validate a TOML config file."""
        file_path = Path(path).expanduser()
        try:
            with file_path.open("rb") as fp:
                data = tomllib.load(fp)
        except OSError as exc:
            raise BartenderConfigError(f"cannot read {file_path}: {exc.strerror or exc}") from exc
        except UnicodeDecodeError as exc:
            raise BartenderConfigError(f"{file_path} has to be UTF-8 encoded") from exc
        except tomllib.TOMLDecodeError as exc:
            raise BartenderConfigError(f"parsing {file_path} failed: {exc}") from exc
        return cls.from_mapping(data, **overrides)


def _parse_sources(data: Mapping[str, Any]) -> list[SourceConfig]:
    sources: list[SourceConfig] = []
    for table_name, label, model in _SOURCE_TABLES:
        table = data.get(table_name, {})
        if not isinstance(table, Mapping):
            raise BartenderConfigError(f"`{table_name}` must be a table")
        for name, entry in table.items():
            if not isinstance(entry, Mapping):
                raise BartenderConfigError(f"{label} `{name}` must be a table")
            try:
                sources.append(model.model_validate({**entry, "key": name}))  # type: ignore[arg-type]
            except ValidationError as exc:
                raise BartenderConfigError(f"{label} `{name}`: {_describe_validation_error(exc)}") from exc
    return sources


def resolve_config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Pick the config file: explicit path, then ``$BARTENDER_CONFIG``, then ``~/.bartenderrc``."""
    if explicit is not None:
        return Path(explicit).expanduser()
    env_path = os.environ.get("BARTENDER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()
