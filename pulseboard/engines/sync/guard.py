"""Per-source in-memory sync guard."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from pulseboard.models.sync_metadata import SYNC_SOURCES


class SyncGuard:
    """At most one running sync per source within this process.

    Acquire and release never await, so the check-and-set is atomic on the
    event loop. Each source has an idle event that waiters can block on.
    State is lost on restart.
    """

    def __init__(self, sources: Iterable[str] = SYNC_SOURCES) -> None:
        self._active: dict[str, bool] = {source: False for source in sources}
        self._idle: dict[str, asyncio.Event] = {}

    def _idle_event(self, source: str) -> asyncio.Event:
        event = self._idle.get(source)
        if event is None:
            event = self._idle[source] = asyncio.Event()
            if not self._active.get(source):
                event.set()
        return event

    def try_acquire(self, source: str) -> bool:
        if self._active.get(source):
            return False
        self._active[source] = True
        self._idle_event(source).clear()
        return True

    def release(self, source: str) -> None:
        self._active[source] = False
        self._idle_event(source).set()

    def is_syncing(self, source: str) -> bool:
        return self._active.get(source, False)

    async def wait_released(self, source: str) -> None:
        """Return once *source* has no sync running."""
        await self._idle_event(source).wait()

    def snapshot(self) -> dict[str, bool]:
        return dict(self._active)
