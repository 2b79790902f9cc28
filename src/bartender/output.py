"""The single consumer that turns store changes into output lines."""

from __future__ import annotations

import logging
from typing import TextIO

from bartender.exceptions import RenderFailure
from bartender.render import Template, render
from bartender.state.store import ValueStore


class OutputLoop:
    """Render the template whenever the store changes.

    This is the only writer of ``stream``, so lines are never interleaved.
    A burst of updates that lands while a render is in progress results in
    a single follow-up render showing the latest values.
    """

    def __init__(
        self,
        template: Template,
        store: ValueStore,
        *,
        stream: TextIO,
        logger: logging.Logger | None = None,
    ) -> None:
        self._template = template
        self._store = store
        self._stream = stream
        self._logger = logger or logging.getLogger(__name__)
        self._last_line: str | None = None
        self._renders = 0

    @property
    def last_line(self) -> str | None:
        """Most recent line written, or ``None`` before the first one."""
        return self._last_line

    @property
    def renders(self) -> int:
        return self._renders

    def render_once(self) -> str | None:
        """Render the current snapshot and write it as one line.

        On a render failure nothing is written, so the previous line stays
        on display, and ``None`` is returned.
        """
        snapshot = self._store.snapshot()
        try:
            line = render(self._template, snapshot)
        except RenderFailure:
            self._logger.error("Render failed, keeping previous output", exc_info=True)
            return None
        self._stream.write(line + "\n")
        self._stream.flush()
        self._last_line = line
        self._renders += 1
        return line

    async def run(self) -> None:
        """Render on every change until the store's signal is closed.

        A change still pending when the signal closes is rendered before
        returning.
        """
        signal = self._store.signal
        while await signal.wait():
            self.render_once()
        self._logger.debug("Output loop finished after %d render(s)", self._renders)
