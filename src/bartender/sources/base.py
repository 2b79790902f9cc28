"""Structural interfaces shared by all source variants."""

from __future__ import annotations

from typing import Protocol

from bartender.exceptions import SourceError


class SourceContext(Protocol):
    """What a running source may do: write its own key, report failures.

    The scheduler provides the production implementation; tests pass
    simple recorders.
    """

    @property
    def key(self) -> str: ...

    def update(self, value: str) -> None: ...

    def report(self, error: SourceError) -> None: ...


class Source(Protocol):
    """A producer of updates for one key.

    ``run`` performs one attempt. It may:

    - never return (timers), stopping only when cancelled;
    - return normally, meaning "restart me right away" (FIFO end-of-stream);
    - raise :class:`~bartender.exceptions.SourceError`, meaning "retry me
      after a backoff delay".

    Non-fatal problems that don't end the attempt go to ``context.report``.
    """

    @property
    def key(self) -> str: ...

    async def run(self, context: SourceContext) -> None: ...
