"""In-memory value store.

This is the only state shared between sources and the output loop. Each
source owns exactly one key and writes it through a :class:`KeyWriter`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from bartender.exceptions import BartenderError
from bartender.state.signal import ChangeSignal

_logger = logging.getLogger(__name__)

RenderSnapshot = Mapping[str, str]
"""Read-only copy of every key's value at one instant."""


class ValueStore:
    """Latest string value per key, with change notification.

    ``set`` and ``snapshot`` run on the event loop thread only, so a
    snapshot can never observe a half-applied update.
    """

    def __init__(
        self,
        initial: Mapping[str, str] | None = None,
        *,
        signal: ChangeSignal | None = None,
    ) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._signal = signal or ChangeSignal()
        self._writers: dict[str, KeyWriter] = {}

    @property
    def signal(self) -> ChangeSignal:
        return self._signal

    def seed(self, key: str, value: str = "") -> None:
        """Give ``key`` an initial value without raising a change.

        Keys that already hold a value are left alone.
        """
        self._values.setdefault(key, value)

    def seed_many(self, keys: Iterable[str], value: str = "") -> None:
        for key in keys:
            self.seed(key, value)

    def set(self, key: str, value: str) -> None:
        """Overwrite the value for ``key`` and notify the output loop."""
        self._values[key] = value
        _logger.debug("Store update key=%s value=%r", key, value)
        self._signal.notify()

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def snapshot(self) -> RenderSnapshot:
        return MappingProxyType(dict(self._values))

    def writer(self, key: str) -> KeyWriter:
        """Hand out the exclusive writer for ``key``.

        Raises
        ------
        BartenderError
            If a writer for ``key`` was already handed out.
        """
        if key in self._writers:
            raise BartenderError(f"key `{key}` already has a writer")
        self.seed(key)
        writer = KeyWriter(self, key)
        self._writers[key] = writer
        return writer

    def __contains__(self, key: object) -> bool:
        return key in self._values


class KeyWriter:
    """Write access to a single key of a :class:`ValueStore`."""

    def __init__(self, store: ValueStore, key: str) -> None:
        self._store = store
        self._key = key
        self._updates = 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def updates(self) -> int:
        """Number of values written so far."""
        return self._updates

    def __call__(self, value: str) -> None:
        self._store.set(self._key, value)
        self._updates += 1
