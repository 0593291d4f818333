"""Periodic asyncio jobs with a cooperative stop.

Each job runs its tick, then sleeps `interval` seconds (or until stop() is
called). A tick that raises is logged and the loop carries on; the next tick
retries whatever failed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicJob:
    def __init__(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Awaitable[object]],
    ) -> None:
        self.name = name
        self.interval = interval
        self._tick = tick
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=f"job:{self.name}")
        logger.info("Job %s started (every %.1fs)", self.name, self.interval)

    async def stop(self, timeout: float = 10.0) -> None:
        if self._task is None:
            return
        self._stop.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Job %s did not stop within %.1fs, cancelling", self.name, timeout)
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Job %s stopped", self.name)

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self._tick()
            except Exception:
                logger.exception("Job %s tick failed", self.name)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


class JobRunner:
    def __init__(self, jobs: list[PeriodicJob]) -> None:
        self.jobs = jobs

    def start(self) -> None:
        for job in self.jobs:
            job.start()

    async def stop(self) -> None:
        for job in self.jobs:
            await job.stop()
