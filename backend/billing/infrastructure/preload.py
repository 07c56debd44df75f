"""Provider Preload: fire-and-forget warmup of the persistence providers.

Invariants:
    - preload() runs every provider's preload concurrently and raises the first failure
    - start() never blocks: it returns the scheduled task immediately
    - The task outcome is only logged; no request awaits it
    - The util keeps a reference to its task until it finishes
"""

import asyncio
import logging

from billing.core.provider_protocols import PreloadableProvider

logger = logging.getLogger(__name__)


class PreloadUtil:
    """Warms up persistence providers in the background."""

    def __init__(self):
        self._task: asyncio.Task | None = None

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    async def preload(self, *providers: PreloadableProvider) -> None:
        await asyncio.gather(*(p.preload() for p in providers))

    def start(self, *providers: PreloadableProvider) -> asyncio.Task:
        """Schedule preload() on the running loop. Must be called from async code."""
        task = asyncio.get_running_loop().create_task(
            self.preload(*providers), name="provider-preload",
        )
        task.add_done_callback(_log_outcome)
        self._task = task
        return task

    async def cancel(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


def _log_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.warning("DB preloads were cancelled.")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            f"DB preload failed: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return
    logger.info("DB preloads are completed.")
