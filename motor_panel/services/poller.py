from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class Poller:
    """
    Fixed-interval cooperative timer.

    Calls `tick` immediately on start and then every `interval` seconds until
    stopped. A tick is awaited before sleeping, so `tick` should only spawn
    its remote calls and return.
    """

    def __init__(
        self,
        interval: float,
        tick: Callable[[], Awaitable[None] | None],
        name: str = "poller",
    ) -> None:
        self.interval = interval
        self._tick = tick
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("%s started (interval=%.2fs)", self.name, self.interval)

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("%s stopped", self.name)

    async def _run(self) -> None:
        while True:
            try:
                result = self._tick()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("%s tick failed: %s", self.name, e)
            await asyncio.sleep(self.interval)
