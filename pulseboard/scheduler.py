"""Periodic refresh of stale sources."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from pulseboard.core.config import Settings
from pulseboard.engines.sync.orchestrator import SyncOrchestrator

logger = structlog.get_logger("pulseboard.scheduler")


class EngineLoop:
    """Single scheduling loop, woken by its trigger or by the interval timeout."""

    def __init__(
        self,
        name: str,
        run_fn: Callable[[], Awaitable[int]],
        interval: float,
    ) -> None:
        self.name = name
        self.run_fn = run_fn
        self.interval = interval
        self.trigger = asyncio.Event()

    async def run_once(self) -> int:
        """One cycle; errors are logged and count as zero work."""
        try:
            processed = await self.run_fn()
        except Exception:
            logger.exception("engine.error", engine=self.name)
            return 0
        logger.info("engine.cycle", engine=self.name, processed=processed)
        return processed

    async def loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self.trigger.wait(), timeout=self.interval)
                self.trigger.clear()
            except asyncio.TimeoutError:
                pass
            await self.run_once()


class Scheduler:
    """Manages the lifecycle of EngineLoop tasks."""

    def __init__(self, loops: list[EngineLoop]) -> None:
        self._loops = loops
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start every loop as a task and wake each one immediately."""
        self._tasks = [
            asyncio.create_task(loop.loop(), name=f"engine-{loop.name}") for loop in self._loops
        ]
        for loop in self._loops:
            loop.trigger.set()
        logger.info("scheduler.started", engines=[loop.name for loop in self._loops])

    async def stop(self) -> None:
        """Cancel all loops and wait for them to exit."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")


def create_scheduler(orchestrator: SyncOrchestrator, settings: Settings) -> Scheduler:
    refresh_loop = EngineLoop(
        "stale_refresh", orchestrator.refresh_stale, settings.refresh_interval
    )
    return Scheduler([refresh_loop])
