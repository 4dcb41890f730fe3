"""
Metrics Collector - Persistence Service

Background service that saves the metric store on a fixed interval and once
more at shutdown.
"""

import asyncio
from typing import Optional

import structlog

from metrics_common.errors import StorageError

from ..storage import MetricStore

logger = structlog.get_logger(__name__)


class PersistenceService:
    """
    Periodically calls ``store.save()``.

    With an interval of 0 the store is expected to persist every mutation
    itself, so no loop is started; ``stop()`` still performs a final save.
    """

    def __init__(self, store: MetricStore, interval: int):
        self.store = store
        self.interval = interval
        self._running = False
        self._save_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start the periodic save loop."""
        if self._running:
            return

        self._running = True
        if self.interval > 0:
            self._save_task = asyncio.create_task(self._save_loop())

        logger.info("Persistence service started", interval=self.interval, backend=self.store.kind.value)

    async def stop(self):
        """Stop the loop and flush the store one last time."""
        self._running = False

        if self._save_task:
            self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
            self._save_task = None

        try:
            await self.store.save()
        except StorageError as e:
            logger.error("Final save failed", error=str(e))

        logger.info("Persistence service stopped")

    async def _save_loop(self):
        """Save loop - runs every ``interval`` seconds."""
        while self._running:
            await asyncio.sleep(self.interval)

            try:
                await self.store.save()
                logger.debug("Periodic save completed")
            except StorageError as e:
                logger.error("Periodic save failed", error=str(e))
