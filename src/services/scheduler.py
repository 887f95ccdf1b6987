import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class FeedRefreshLoop:
    """
    Periodically ingests every due feed until stopped.
    External cron jobs can call `pipeline.ingest_due_feeds()` directly instead.
    """

    def __init__(self, pipeline, tick_seconds: float = 60.0):
        self.pipeline = pipeline
        self.tick_seconds = tick_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Feed refresh loop is already running")
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Feed refresh loop started (tick={self.tick_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Feed refresh loop stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.pipeline.ingest_due_feeds()
            except Exception as e:
                logger.exception(f"Refresh tick failed: {e}")
            await asyncio.sleep(self.tick_seconds)
