"""Single-slot coalescing change notification."""

from __future__ import annotations

import asyncio


class ChangeSignal:
    """Wake-up flag meaning "the store changed since you last looked".

    Any number of :meth:`notify` calls between two :meth:`wait` calls
    collapse into one pending notification. The signal is not a queue:
    the waiter is expected to read the latest state itself.

    All methods must be called from the event loop thread.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._pending = False
        self._closed = False
        self._version = 0

    @property
    def pending(self) -> bool:
        """Whether a notification is waiting to be consumed."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def version(self) -> int:
        """Number of notifications raised so far (coalesced or not)."""
        return self._version

    def notify(self) -> None:
        self._version += 1
        self._pending = True
        self._event.set()

    def close(self) -> None:
        """Release the waiter once any pending notification is consumed."""
        self._closed = True
        self._event.set()

    async def wait(self) -> bool:
        """Wait for a notification and consume it.

        Returns ``True`` when a notification was consumed, ``False`` once the
        signal is closed and nothing is pending. A notification raised while
        the caller is busy after a successful wait is kept for the next call,
        so the last change is never dropped.
        """
        while not self._pending and not self._closed:
            self._event.clear()
            await self._event.wait()
        if not self._pending:
            return False
        self._pending = False
        return True
