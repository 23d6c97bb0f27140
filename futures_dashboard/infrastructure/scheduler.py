"""
Background refresh loop that keeps the response cache and the archive warm.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from futures_dashboard.core.services import AccountService

logger = logging.getLogger(__name__)


class DataRefresher:
    """Runs AccountService.refresh every interval until stopped."""

    def __init__(self, service: AccountService, interval_seconds: float = 300):
        self.service = service
        self.interval_seconds = interval_seconds
        self.last_refreshed_at: Optional[datetime] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def refresh_once(self) -> Dict[str, int]:
        logger.info("Refresh cycle start")
        stats = await self.service.refresh()
        self.last_refreshed_at = datetime.now(timezone.utc)
        logger.info(f"Refresh cycle done: {stats}")
        return stats

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info(f"Refresher started, interval {self.interval_seconds}s")
        while not stop_event.is_set():
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # One bad cycle must not kill the loop
                logger.error(f"Refresh cycle failed: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Refresher stopped")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run(self._stop_event))
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
