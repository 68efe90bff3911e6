"""
Notification Cleanup Scheduler

Periodic job that deletes read notifications older than the retention
window. Started as an asyncio task on application startup; the interval
comes from NOTIFICATION_CLEANUP_INTERVAL_MINUTES.
"""

import asyncio
import logging
from typing import Optional

from .service import NotificationService

logger = logging.getLogger(__name__)


class NotificationCleanupScheduler:
    """Scheduler for removing stale read notifications."""

    def __init__(
        self,
        notification_service: NotificationService,
        retention_days: int = 30,
        interval_minutes: int = 60,
    ):
        """
        Initialize scheduler.

        Args:
            notification_service: NotificationService instance
            retention_days: Read notifications older than this are deleted
            interval_minutes: Minutes between runs (0 disables the loop)
        """
        self.notification_service = notification_service
        self.retention_days = retention_days
        self.interval_minutes = interval_minutes
        self._task: Optional[asyncio.Task] = None

    def run_cleanup(self) -> int:
        """
        Run one cleanup pass.

        Returns:
            Number of notifications deleted, 0 on error
        """
        try:
            return self.notification_service.cleanup_old_notifications(days=self.retention_days)
        except Exception as e:
            logger.error(f"Notification cleanup job error: {e}")
            return 0

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval_minutes * 60)
            await asyncio.to_thread(self.run_cleanup)

    def start(self) -> bool:
        """Start the periodic loop on the running event loop."""
        if self.interval_minutes <= 0:
            logger.info("Notification cleanup disabled")
            return False
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())
            logger.info(
                f"Notification cleanup every {self.interval_minutes} min "
                f"(retention {self.retention_days} days)"
            )
        return True

    async def stop(self):
        """Cancel the periodic loop."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
